"""Reverse lookup from external references to notes."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .models import NoteHandle
from .org import parse_properties, reference_values

logger = logging.getLogger(__name__)


class ReferenceIndex(ABC):
    """Maps an external reference (URL) to the note that cites it."""

    @abstractmethod
    def find(self, reference: str) -> Optional[NoteHandle]:
        """Return the note registered for ``reference``, if any."""

    @abstractmethod
    def register(self, handle: NoteHandle) -> None:
        """Record ``handle`` under its reference."""


class MemoryReferenceIndex(ReferenceIndex):
    """In-memory index for tests."""

    def __init__(self) -> None:
        self._entries: Dict[str, NoteHandle] = {}

    def find(self, reference: str) -> Optional[NoteHandle]:
        return self._entries.get(reference)

    def register(self, handle: NoteHandle) -> None:
        self._entries[handle.reference] = handle

    def __len__(self) -> int:
        return len(self._entries)


class JsonReferenceIndex(ReferenceIndex):
    """Index persisted as a JSON object ``{reference: {"id": ..., "path": ...}}``.

    Paths are stored relative to ``notes_root``. When the file does not exist
    yet the index is rebuilt by scanning note property drawers for ``:ID:``
    and ``:ROAM_REFS:``.
    """

    def __init__(self, path: Path, notes_root: Path, suffix: str = ".org") -> None:
        self.path = path
        self.notes_root = notes_root
        self.suffix = suffix
        self._entries: Optional[Dict[str, NoteHandle]] = None

    def find(self, reference: str) -> Optional[NoteHandle]:
        handle = self._load().get(reference)
        if handle is not None and not handle.path.exists():
            logger.warning("Indexed note %s for %s no longer exists.", handle.path, reference)
            return None
        return handle

    def register(self, handle: NoteHandle) -> None:
        self._load()[handle.reference] = handle
        self._save()

    def rebuild(self) -> Dict[str, NoteHandle]:
        entries: Dict[str, NoteHandle] = {}
        if self.notes_root.exists():
            for note_path in sorted(self.notes_root.rglob(f"*{self.suffix}")):
                try:
                    properties = parse_properties(note_path.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError) as exc:
                    logger.warning("Skipping unreadable note %s: %s", note_path, exc)
                    continue
                node_id = properties.get("ID")
                if not node_id:
                    continue
                for reference in reference_values(properties):
                    entries.setdefault(reference, NoteHandle(node_id, note_path, reference))
        logger.info("Indexed %d reference(s) under %s", len(entries), self.notes_root)
        self._entries = entries
        self._save()
        return entries

    def _load(self) -> Dict[str, NoteHandle]:
        if self._entries is not None:
            return self._entries
        if not self.path.exists():
            return self.rebuild()
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                entries = self._parse(json.load(handle))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Reference index %s is corrupt (%s); rebuilding.", self.path, exc)
            return self.rebuild()
        self._entries = entries
        return entries

    def _parse(self, raw: object) -> Dict[str, NoteHandle]:
        if not isinstance(raw, dict):
            raise TypeError("index is not a JSON object")
        entries: Dict[str, NoteHandle] = {}
        for reference, entry in raw.items():
            if not isinstance(entry, dict):
                raise TypeError(f"entry for {reference!r} is not an object")
            entries[reference] = NoteHandle(
                node_id=str(entry["id"]),
                path=self.notes_root / str(entry["path"]),
                reference=reference,
            )
        return entries

    def _save(self) -> None:
        data = {}
        for reference, handle in (self._entries or {}).items():
            try:
                stored_path = handle.path.relative_to(self.notes_root)
            except ValueError:
                stored_path = handle.path
            data[reference] = {"id": handle.node_id, "path": stored_path.as_posix()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".roam_refs", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
