"""Annotated text: markup-aware fragments and plain-text span translation.

Requests may carry text interleaved with markup. Detectors only ever see the
plain text rebuilt from the fragments, so every span they report has to be
translated back to the offsets of the original annotated input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ltapiserv.errors import MalformedAnnotationsError


@dataclass(frozen=True, slots=True)
class TextFragment:
    """Literal text, identical in plain and original space."""

    content: str


@dataclass(frozen=True, slots=True)
class MarkupFragment:
    """Structural markup, optionally standing for some text during analysis.

    E.g. ``<p>`` interpreted as ``"\\n\\n"``.
    """

    markup: str
    interpret_as: Optional[str] = None


Fragment = Union[TextFragment, MarkupFragment]


def _is_whitespace_markup(markup: str) -> bool:
    return bool(markup) and not markup.strip()


def fragment_text(fragment: Fragment) -> str:
    """Text a fragment contributes to the analyzed plain text."""
    if isinstance(fragment, TextFragment):
        return fragment.content
    # Whitespace markup is kept as is so sentence boundaries survive
    if _is_whitespace_markup(fragment.markup):
        return fragment.markup
    return fragment.interpret_as or ""


def fragment_lengths(fragment: Fragment) -> Tuple[int, int]:
    """Return ``(plain_length, original_length)`` of a fragment."""
    if isinstance(fragment, TextFragment):
        return len(fragment.content), len(fragment.content)
    return len(fragment_text(fragment)), len(fragment.markup)


def build_plain_text(fragments: Iterable[Fragment]) -> str:
    return "".join(fragment_text(fragment) for fragment in fragments)


def plain_text_length(fragments: Iterable[Fragment]) -> int:
    return sum(fragment_lengths(fragment)[0] for fragment in fragments)


def translate_span(fragments: Iterable[Fragment], start: int, end: int) -> Tuple[int, int]:
    """Translate a plain-text span ``[start, end)`` into original space.

    Each bound maps through the first fragment whose plain range contains it.
    A bound that lands in no fragment falls back to the beginning (start) or
    to the end (end) of the original text.
    """
    text_offset = 0
    markup_offset = 0
    mapped_start: Optional[int] = None
    mapped_end: Optional[int] = None

    for fragment in fragments:
        text_len, markup_len = fragment_lengths(fragment)
        if mapped_start is None and text_offset <= start < text_offset + text_len:
            mapped_start = markup_offset + (start - text_offset)
        if mapped_end is None and text_offset <= end < text_offset + text_len:
            mapped_end = markup_offset + (end - text_offset)
        text_offset += text_len
        markup_offset += markup_len

    return (
        mapped_start if mapped_start is not None else 0,
        mapped_end if mapped_end is not None else markup_offset,
    )


@dataclass(frozen=True, slots=True)
class AnnotatedText:
    """An ordered fragment sequence, in document order."""

    fragments: Tuple[Fragment, ...] = ()

    @classmethod
    def from_text(cls, text: str) -> "AnnotatedText":
        return cls((TextFragment(text),))

    @classmethod
    def from_fragments(cls, fragments: Sequence[Fragment]) -> "AnnotatedText":
        return cls(tuple(fragments))

    def text(self) -> str:
        return build_plain_text(self.fragments)

    def text_len(self) -> int:
        return plain_text_length(self.fragments)

    def original_len(self) -> int:
        return sum(fragment_lengths(fragment)[1] for fragment in self.fragments)

    def translate_span(self, start: int, end: int) -> Tuple[int, int]:
        return translate_span(self.fragments, start, end)


class _TextElement(BaseModel):
    text: str


class _MarkupElement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    markup: str
    interpret_as: Optional[str] = Field(default=None, alias="interpretAs")


class _TextDocument(BaseModel):
    text: str


class _AnnotationDocument(BaseModel):
    annotation: List[
        Annotated[Union[_TextElement, _MarkupElement], Field(union_mode="left_to_right")]
    ]


_DATA_ADAPTER = TypeAdapter(
    Annotated[Union[_TextDocument, _AnnotationDocument], Field(union_mode="left_to_right")]
)


def parse_annotation_data(data: str) -> AnnotatedText:
    """Parse the JSON ``data`` field of a check request."""
    try:
        document = _DATA_ADAPTER.validate_json(data)
    except ValidationError as exc:
        raise MalformedAnnotationsError(
            f"Unexpected json contents in `data`: {data!r}"
        ) from exc

    if isinstance(document, _TextDocument):
        return AnnotatedText.from_text(document.text)

    fragments: List[Fragment] = []
    for element in document.annotation:
        if isinstance(element, _TextElement):
            fragments.append(TextFragment(element.text))
        else:
            fragments.append(MarkupFragment(element.markup, element.interpret_as))
    return AnnotatedText.from_fragments(fragments)


def parse_request_data(text: Optional[str], data: Optional[str]) -> AnnotatedText:
    """Build annotated text from a request's ``text`` or ``data`` field."""
    if text is not None:
        return AnnotatedText.from_text(text)
    if data is not None:
        return parse_annotation_data(data)
    raise MalformedAnnotationsError("Neither `text` nor `data` are valid")
