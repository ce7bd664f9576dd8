"""Utilities for syncing Readwise highlights into Org-roam notes."""

from .config import SyncConfig
from .models import Highlight, NoteHandle, SourceDocument
from .sync import HighlightSync, SyncReport

__all__ = ["SyncConfig", "Highlight", "NoteHandle", "SourceDocument", "HighlightSync", "SyncReport"]
