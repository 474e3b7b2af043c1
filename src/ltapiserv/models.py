"""Core ltapiserv data models, serialized in the LanguageTool HTTP API layout."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

SPELLING_RULE_ID = "MORFOLOGIK_RULE"
REPETITION_RULE_ID = "WORD_REPEAT_RULE"

# Rule id prefixes known to misfire (quotes typography, dashes in lists)
FALSE_POSITIVE_PREFIXES = (
    "TYPOGRAPHY/EN_QUOTES",
    "PUNCTUATION/DASH_RULE",
)


class IssueType(str, Enum):
    GRAMMAR = "grammar"
    MISSPELLING = "misspelling"
    DUPLICATION = "duplication"
    STYLE = "style"


@dataclass(slots=True)
class Language:
    """Language identity, compared case-insensitively by code."""

    code: str = "en-US"
    name: str = "English"

    @classmethod
    def from_code(cls, code: str) -> "Language":
        """Build a language from a code such as ``en_US`` or ``en-US``."""
        return cls(code=code.replace("_", "-"), name="")

    @classmethod
    def from_request(cls, code: str) -> "Language":
        if code == "auto":
            return cls()
        return cls.from_code(code)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Language):
            return NotImplemented
        return self.code.lower() == other.code.lower()

    def __hash__(self) -> int:
        return hash(self.code.lower())

    def __str__(self) -> str:
        return self.code

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "code": self.code}


@dataclass(slots=True)
class RuleCategory:
    id: str = ""
    name: str = ""


@dataclass(slots=True)
class Rule:
    """Identity of the detector rule behind a match."""

    id: str = ""
    sub_id: Optional[str] = None
    description: str = ""
    issue_type: str = ""
    urls: Optional[List[str]] = None
    category: RuleCategory = field(default_factory=RuleCategory)
    is_premium: bool = False

    @classmethod
    def from_id(cls, rule_id: str) -> "Rule":
        return cls(id=rule_id, issue_type=IssueType.GRAMMAR.value)

    @classmethod
    def spelling(cls) -> "Rule":
        # Browser clients render this id as a spelling error
        return cls(id=SPELLING_RULE_ID, issue_type=IssueType.MISSPELLING.value)

    @classmethod
    def duplication(cls) -> "Rule":
        return cls(id=REPETITION_RULE_ID, issue_type=IssueType.DUPLICATION.value)

    def is_spelling(self) -> bool:
        return self.id == SPELLING_RULE_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subId": self.sub_id,
            "description": self.description,
            "issueType": self.issue_type,
            "urls": [{"value": url} for url in self.urls] if self.urls is not None else None,
            "category": {"id": self.category.id, "name": self.category.name},
            "isPremium": self.is_premium,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        category = data.get("category") or {}
        urls = data.get("urls")
        return cls(
            id=data.get("id", ""),
            sub_id=data.get("subId"),
            description=data.get("description", ""),
            issue_type=data.get("issueType", ""),
            urls=[url["value"] if isinstance(url, dict) else url for url in urls]
            if urls is not None
            else None,
            category=RuleCategory(id=category.get("id", ""), name=category.get("name", "")),
            is_premium=bool(data.get("isPremium", False)),
        )


@dataclass(slots=True)
class Replacement:
    value: str
    short_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "shortDescription": self.short_description}


@dataclass(slots=True)
class Match:
    """A flagged span in original (annotated) character space."""

    message: str
    offset: int
    length: int
    replacements: List[Replacement] = field(default_factory=list)
    rule: Rule = field(default_factory=Rule)
    short_message: str = ""
    sentence: str = ""
    context_for_sure_match: int = 0
    ignore_for_incomplete_sentence: bool = False
    type_name: str = ""

    def is_false_positive(self) -> bool:
        return any(self.rule.id.startswith(prefix) for prefix in FALSE_POSITIVE_PREFIXES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "shortMessage": self.short_message,
            "offset": self.offset,
            "length": self.length,
            "replacements": [replacement.to_dict() for replacement in self.replacements],
            "sentence": self.sentence,
            "contextForSureMatch": self.context_for_sure_match,
            "ignoreForIncompleteSentence": self.ignore_for_incomplete_sentence,
            "type": {"typeName": self.type_name},
            "rule": self.rule.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Match":
        return cls(
            message=data.get("message", ""),
            offset=int(data["offset"]),
            length=int(data["length"]),
            replacements=[
                Replacement(value=item["value"], short_description=item.get("shortDescription"))
                for item in data.get("replacements", [])
            ],
            rule=Rule.from_dict(data.get("rule") or {}),
            short_message=data.get("shortMessage", ""),
            sentence=data.get("sentence", ""),
            context_for_sure_match=int(data.get("contextForSureMatch", 0)),
            ignore_for_incomplete_sentence=bool(data.get("ignoreForIncompleteSentence", False)),
            type_name=(data.get("type") or {}).get("typeName", ""),
        )
