"""Helpers for creating highlight notes and appending to them."""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Callable, List, Sequence

from .index import ReferenceIndex
from .models import Highlight, NoteHandle, SourceDocument
from .org import (
    HIGHLIGHTS_HEADING,
    append_to_section,
    parse_properties,
    reference_values,
    render_note,
    slugify,
)

logger = logging.getLogger(__name__)


class NoteConflictError(RuntimeError):
    """Raised when a note on disk does not belong to the document being synced."""


class NoteFile:
    """Represents an on-disk org file for a document's highlights."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> str:
        if not self.path.exists():
            return ""
        try:
            return self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise NoteConflictError(f"{self.path} is not valid UTF-8: {exc}") from exc

    def write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(text, encoding="utf-8")


def build_note_filename(notes_root: Path, subdir: str, title: str, suffix: str = ".org") -> Path:
    relative = Path(subdir) / f"{slugify(title)}{suffix}"
    return notes_root / relative


class NoteResolver:
    """Finds the note for a source document, creating it on first sight."""

    def __init__(
        self,
        index: ReferenceIndex,
        notes_root: Path,
        subdir: str = "highlights",
        suffix: str = ".org",
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.index = index
        self.notes_root = notes_root
        self.subdir = subdir
        self.suffix = suffix
        self._id_factory = id_factory

    def resolve(self, document: SourceDocument) -> NoteHandle:
        reference = document.external_reference
        existing = self.index.find(reference)
        if existing is not None:
            return existing

        path = build_note_filename(self.notes_root, self.subdir, document.title, self.suffix)
        note_file = NoteFile(path)
        if path.exists():
            properties = parse_properties(note_file.read())
            owners = reference_values(properties)
            if reference in owners and properties.get("ID"):
                # Written by an earlier run that stopped before indexing it.
                handle = NoteHandle(node_id=properties["ID"], path=path, reference=reference)
                self.index.register(handle)
                logger.info("Re-indexed existing note %s for %s", path, reference)
                return handle
            raise NoteConflictError(
                f"{path} already exists for {' '.join(owners) or 'another note'}; "
                f"refusing to reuse it for {reference}."
            )

        handle = NoteHandle(node_id=self._id_factory(), path=path, reference=reference)
        note_file.write(
            render_note(
                handle.node_id,
                reference,
                document.title,
                author=document.author,
                cover_image_url=document.cover_image_url,
            )
        )
        self.index.register(handle)
        logger.info("Created note %s for %s", path, reference)
        return handle


class HighlightMerger:
    """Appends highlight text to the Highlights section of a note."""

    heading = HIGHLIGHTS_HEADING

    def select(self, handle: NoteHandle, highlights: Sequence[Highlight]) -> List[Highlight]:
        """Return the highlights that should be appended to ``handle``.

        Every highlight is appended, including ones already present in the note.
        Override to add deduplication.
        """

        return list(highlights)

    def merge(self, handle: NoteHandle, highlights: Sequence[Highlight]) -> int:
        selected = self.select(handle, highlights)
        if not selected:
            return 0

        note_file = NoteFile(handle.path)
        text = note_file.read()
        if handle.reference not in reference_values(parse_properties(text)):
            raise NoteConflictError(
                f"{handle.path} does not reference {handle.reference}; not appending highlights."
            )
        updated = append_to_section(text, self.heading, [h.text for h in selected])
        if updated is None:
            raise NoteConflictError(f"{handle.path} has no '{self.heading}' heading.")
        note_file.write(updated)
        logger.debug("Appended %d highlight(s) to %s", len(selected), handle.path)
        return len(selected)
