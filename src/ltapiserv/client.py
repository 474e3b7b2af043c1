"""Client for LanguageTool-compatible servers and terminal reports of matches."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import Any, Dict, List, Tuple

import httpx
from rich.console import Console
from rich.text import Text

from ltapiserv.errors import LtApiServError
from ltapiserv.models import Language, Match

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckResponse:
    matches: List[Match] = field(default_factory=list)
    language: Language = field(default_factory=Language)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckResponse":
        language = data.get("language") or {}
        return cls(
            matches=[Match.from_dict(item) for item in data.get("matches", [])],
            language=Language(code=language.get("code", "en-US"), name=language.get("name", "")),
            raw=data,
        )


class LanguageToolClient:
    """Posts text to the ``/v2/check`` endpoint of a server."""

    def __init__(
        self, server: str, *, timeout: float = 60.0, transport: httpx.BaseTransport | None = None
    ) -> None:
        self.server = server.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.server}/v2/check"

    def check(self, text: str, language: str = "en-US") -> CheckResponse:
        LOGGER.info("Sending request to %s", self.endpoint)
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(self.endpoint, data={"text": text, "language": language})
            response.raise_for_status()
            return CheckResponse.from_dict(response.json())


def _load_pandoc_filter() -> str:
    return files("ltapiserv").joinpath("filter.lua").read_text(encoding="utf-8")


def convert_with_pandoc(path: Path) -> str:
    """Convert a document to plain text with pandoc, removing code blocks.

    Line numbers are not preserved.
    """
    if shutil.which("pandoc") is None:
        raise LtApiServError("pandoc not found")
    with tempfile.TemporaryDirectory(prefix="ltapiserv-") as tmp_dir:
        filter_path = Path(tmp_dir) / "filter.lua"
        filter_path.write_text(_load_pandoc_filter(), encoding="utf-8")
        result = subprocess.run(
            ["pandoc", str(path), "--to", "plain", "--lua-filter", str(filter_path)],
            capture_output=True,
            check=False,
        )
    if result.returncode != 0:
        raise LtApiServError(
            f"pandoc did not execute successfully: {result.stderr.decode(errors='replace').strip()}"
        )
    return result.stdout.decode("utf-8", errors="replace")


def line_and_column(text: str, offset: int) -> Tuple[int, int]:
    """1-based line and column of a character offset."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def render_match(match: Match, text: str, *, suggestions: int = 3, source: str = "<stdin>") -> Text:
    """Render one match as a source excerpt with the flagged span underlined."""
    start = max(0, min(match.offset, len(text)))
    end = max(start, min(match.offset + match.length, len(text)))
    line, column = line_and_column(text, start)

    spelling = match.rule.is_spelling()
    severity, color = ("warning", "yellow") if spelling else ("advice", "cyan")

    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", start)
    if line_end == -1:
        line_end = len(text)
    excerpt = text[line_start:line_end]
    span_end = min(end, line_end) - line_start
    span_start = start - line_start

    report = Text()
    report.append(f"{severity}", style=f"bold {color}")
    report.append(f": {match.message}\n", style="bold")
    report.append(f"  --> {source}:{line}:{column}\n", style="dim")
    gutter = f"{line} | "
    report.append(gutter, style="dim")
    report.append(excerpt[:span_start])
    report.append(excerpt[span_start:span_end], style=f"underline {color}")
    report.append(excerpt[span_end:] + "\n")

    label = " / ".join(replacement.value for replacement in match.replacements[:suggestions])
    marker = "^" * max(span_end - span_start, 1)
    report.append(" " * (len(gutter) + span_start) + marker, style=color)
    if label:
        report.append(f" {label}", style=color)
    return report


def print_report(
    console: Console, response: CheckResponse, text: str, *, suggestions: int = 3, source: str = "<stdin>"
) -> None:
    for match in response.matches:
        console.print(render_match(match, text, suggestions=suggestions, source=source))
        console.print()
