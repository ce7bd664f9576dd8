"""Data models for Readwise highlight synchronisation."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


class MalformedDocumentError(ValueError):
    """Raised when an export payload is missing fields the sync depends on."""


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Highlight:
    """A single highlight belonging to one source document."""

    text: str
    highlight_id: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "Highlight":
        if not isinstance(payload, dict):
            raise MalformedDocumentError("Highlight entry is not an object")
        text = payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise MalformedDocumentError("Highlight entry has no text")
        return cls(
            text=text,
            highlight_id=_optional_str(payload.get("id")),
            note=_optional_str(payload.get("note")),
        )


@dataclass
class SourceDocument:
    """A book, article or other source grouping its highlights."""

    title: str
    author: Optional[str] = None
    cover_image_url: Optional[str] = None
    source_url: Optional[str] = None
    readwise_url: Optional[str] = None
    highlights: List[Highlight] = field(default_factory=list)

    @property
    def external_reference(self) -> str:
        """The URL correlating this document with a local note."""

        reference = self.source_url or self.readwise_url
        if not reference:
            raise MalformedDocumentError(f"Document {self.title!r} has no source or readwise URL")
        return reference

    @classmethod
    def from_payload(cls, payload: Any) -> "SourceDocument":
        if not isinstance(payload, dict):
            raise MalformedDocumentError("Export result is not an object")
        title = _optional_str(payload.get("title"))
        if title is None:
            raise MalformedDocumentError("Export result has no title")
        raw_highlights = payload.get("highlights")
        if raw_highlights is None:
            raw_highlights = []
        if not isinstance(raw_highlights, list):
            raise MalformedDocumentError(f"Highlights of {title!r} are not a list")
        document = cls(
            title=title,
            author=_optional_str(payload.get("author")),
            cover_image_url=_optional_str(payload.get("cover_image_url")),
            source_url=_optional_str(payload.get("source_url")),
            readwise_url=_optional_str(payload.get("readwise_url")),
            highlights=[Highlight.from_payload(item) for item in raw_highlights],
        )
        # Fail here rather than when the note is written.
        _ = document.external_reference
        return document


@dataclass
class ExportPage:
    """One page of the export endpoint."""

    documents: List[SourceDocument]
    next_cursor: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class NoteHandle:
    """Location and identity of a note in the knowledge base."""

    node_id: str
    path: Path
    reference: str
