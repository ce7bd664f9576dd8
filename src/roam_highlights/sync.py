"""Incremental pull of Readwise highlights into the notes directory."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import SyncConfig
from .fetchers import ReadwiseExportFetcher, ReadwiseFetchError
from .index import JsonReferenceIndex, ReferenceIndex
from .state import LastSyncStore, SyncLockedError
from .storage import HighlightMerger, NoteConflictError, NoteResolver

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    since: Optional[str] = None
    pages: int = 0
    documents: int = 0
    highlights: int = 0
    completed_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        if not self.ok:
            return f"Readwise sync failed: {self.error}"
        return (
            f"Readwise sync complete: {self.highlights} new highlight(s) across "
            f"{self.documents} document(s) in {self.pages} page(s)."
        )


class HighlightSync:
    """Drives one pull: read last sync, drain every page, then advance the timestamp.

    Every document on a page is resolved and merged before the next page is
    requested. The stored timestamp only moves after the final page, so an
    aborted run is retried from the same point next time.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        fetcher: Optional[ReadwiseExportFetcher] = None,
        store: Optional[LastSyncStore] = None,
        index: Optional[ReferenceIndex] = None,
        merger: Optional[HighlightMerger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        if fetcher is None:
            fetcher = ReadwiseExportFetcher(
                config.api_token, base_url=config.base_url, timeout=config.timeout
            )
        self.fetcher = fetcher
        self.store = store if store is not None else LastSyncStore(config.resolved_state_path)
        notes_root = config.resolved_notes_root
        if index is None:
            index = JsonReferenceIndex(
                config.resolved_index_path, notes_root, suffix=config.note_suffix
            )
        self.index = index
        self.resolver = NoteResolver(
            self.index, notes_root, subdir=config.notes_subdir, suffix=config.note_suffix
        )
        self.merger = merger if merger is not None else HighlightMerger()
        self._clock = clock

    def pull(self) -> SyncReport:
        report = SyncReport()
        try:
            with self.store.lock():
                self._run(report)
        except (ReadwiseFetchError, NoteConflictError, SyncLockedError, OSError) as exc:
            logger.info("Sync aborted after %d page(s): %s", report.pages, exc)
            report.error = str(exc)
        return report

    def _run(self, report: SyncReport) -> None:
        report.since = self.store.read()
        if report.since:
            logger.info("Fetching highlights updated after %s", report.since)
        else:
            logger.info("No previous sync recorded; fetching all highlights")

        for page in self.fetcher.iter_pages(since=report.since, max_pages=self.config.max_pages):
            report.pages += 1
            for document in page.documents:
                handle = self.resolver.resolve(document)
                report.highlights += self.merger.merge(handle, document.highlights)
                report.documents += 1
            logger.info("Merged page %d (%d document(s))", report.pages, len(page.documents))

        report.completed_at = self.store.write(self._clock())
