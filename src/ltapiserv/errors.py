"""Exceptions raised by ltapiserv."""

from __future__ import annotations


class LtApiServError(Exception):
    """Base class for every error raised by ltapiserv."""


# Startup / packaging errors


class ArchiveFormatError(LtApiServError):
    """The language model archive could not be decompressed or unpacked."""


class LanguageFolderError(LtApiServError):
    """The archive does not contain exactly one language folder."""


class MissingResourceError(LtApiServError):
    """A required resource file is absent from the language folder."""


class PathError(LtApiServError):
    """A configured path cannot be created or used."""


class GrammarBackendError(LtApiServError):
    """The grammar engine is unavailable or failed to load its resources."""


# Per-request errors


class MalformedAnnotationsError(LtApiServError):
    """The request carries neither usable text nor annotation data."""


class UnsupportedLanguageError(LtApiServError):
    """The request language does not match the loaded model."""

    def __init__(self, supports: str, request: str) -> None:
        super().__init__(f"Unsupported language (supports {supports}, got {request})")
        self.supports = supports
        self.request = request


class TextTooLongError(LtApiServError):
    """The request text exceeds the configured size limit."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Text too long ({length} characters, limit is {limit})")
        self.length = length
        self.limit = limit


# Cache errors, never surfaced to callers


class SnapshotFormatError(LtApiServError):
    """A cached snapshot has an unknown header or format version."""
