"""Fetch highlights from the Readwise export API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Set

import requests

from roam_highlights.config import DEFAULT_BASE_URL
from roam_highlights.models import ExportPage, MalformedDocumentError, SourceDocument

logger = logging.getLogger(__name__)


class ReadwiseFetchError(RuntimeError):
    """Raised when highlights cannot be fetched from Readwise."""


class MalformedResponseError(ReadwiseFetchError):
    """Raised when an export page does not have the expected shape."""


class PaginationError(ReadwiseFetchError):
    """Raised when the server keeps handing out cursors without end."""


def extract_cursor(payload: Dict[str, Any]) -> Optional[str]:
    """Return the next page cursor of a raw export payload, if any."""

    cursor = payload.get("nextPageCursor")
    if cursor is None:
        return None
    cursor = str(cursor).strip()
    return cursor or None


class ReadwiseExportFetcher:
    """Retrieve highlights from the Readwise ``export/`` endpoint.

    The endpoint groups highlights by source document and pages through them
    with an opaque ``pageCursor``. Every request is a GET authenticated with a
    static ``Authorization: Token <key>`` header.

    Parameters
    ----------
    token:
        Readwise access token.
    base_url:
        API root, ``https://readwise.io/api/v2/`` unless overridden.
    timeout:
        Per-request timeout in seconds handed to ``requests``.
    session:
        Optional ``requests.Session`` instance. Primarily intended for tests so
        that HTTP requests can be mocked.
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.token = token
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def iter_pages(self, since: Optional[str] = None, max_pages: int = 1000) -> Iterator[ExportPage]:
        """Yield export pages in cursor order until the server stops paging.

        Each page is yielded before the next one is requested, so callers can
        persist a page before more data is pulled.
        """

        seen: Set[str] = set()
        cursor: Optional[str] = None
        count = 0

        while True:
            if count >= max_pages:
                raise PaginationError(f"Gave up after {max_pages} pages; the export never ended.")
            page = self.fetch_page(since=since, cursor=cursor)
            count += 1
            yield page
            if page.next_cursor is None:
                break
            if page.next_cursor in seen:
                raise PaginationError(f"Readwise repeated page cursor {page.next_cursor!r}.")
            seen.add(page.next_cursor)
            cursor = page.next_cursor

    def fetch_page(self, since: Optional[str] = None, cursor: Optional[str] = None) -> ExportPage:
        """Request a single export page."""

        if not self.token:
            raise ReadwiseFetchError("No Readwise API token configured.")
        params = self.build_params(since, cursor)
        logger.debug("GET %s params=%s", self.export_url, params)
        try:
            response = self._session.get(
                self.export_url,
                params=params,
                headers=self._default_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ReadwiseFetchError(f"Readwise request failed: {exc}") from exc
        self._ensure_success(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Received invalid JSON from Readwise export API") from exc
        return self._parse_page(payload)

    @staticmethod
    def build_params(since: Optional[str], cursor: Optional[str]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if since:
            params["updatedAfter"] = since
        if cursor:
            params["pageCursor"] = cursor
        return params

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @property
    def export_url(self) -> str:
        return f"{self.base_url}export/"

    @property
    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self.token}",
            "Accept": "application/json",
            "User-Agent": "readwise-roam/1.0",
        }

    def _ensure_success(self, response: object) -> None:
        status = getattr(response, "status_code", None)
        if status is None or not 200 <= status < 300:
            if status in (401, 403):
                raise ReadwiseFetchError(
                    f"Readwise rejected the API token (status code {status})."
                )
            raise ReadwiseFetchError(f"Readwise request failed with status code {status}.")

    def _parse_page(self, payload: object) -> ExportPage:
        if not isinstance(payload, dict):
            raise MalformedResponseError("Unexpected response format from Readwise export API")
        results = payload.get("results")
        if not isinstance(results, list):
            raise MalformedResponseError("Readwise export response has no 'results' list")
        documents: List[SourceDocument] = []
        for index, item in enumerate(results):
            try:
                documents.append(SourceDocument.from_payload(item))
            except MalformedDocumentError as exc:
                raise MalformedResponseError(f"Export result {index} is malformed: {exc}") from exc
        next_cursor = extract_cursor(payload)
        logger.debug("Fetched %d document(s), next cursor %r", len(documents), next_cursor)
        return ExportPage(documents=documents, next_cursor=next_cursor, raw=payload)
