"""Tests for the Readwise export fetcher using mocked HTTP sessions."""
from __future__ import annotations

from typing import Dict, Iterable, List

import pytest
import requests

from roam_highlights.fetchers import (
    MalformedResponseError,
    PaginationError,
    ReadwiseExportFetcher,
    ReadwiseFetchError,
    extract_cursor,
)


class FakeResponse:
    def __init__(self, payload: object = None, *, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self) -> object:
        if self._payload is None:
            raise ValueError("No JSON payload provided")
        return self._payload


class FakeSession:
    def __init__(self, responses: Iterable[object]) -> None:
        self.calls: List[tuple[str, Dict[str, str], Dict[str, str]]] = []
        self._responses = list(responses)

    def get(self, url: str, *, params=None, headers=None, timeout=None) -> FakeResponse:
        self.calls.append((url, dict(params or {}), dict(headers or {})))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def document(title: str, *texts: str, source_url: str | None = None) -> Dict[str, object]:
    return {
        "title": title,
        "author": "Jane Doe",
        "source_url": source_url,
        "readwise_url": f"https://readwise.io/bookreview/{title.replace(' ', '-')}",
        "cover_image_url": None,
        "highlights": [{"id": index, "text": text} for index, text in enumerate(texts)],
    }


def page(results: List[Dict[str, object]], cursor: str | None = None) -> FakeResponse:
    return FakeResponse({"count": len(results), "nextPageCursor": cursor, "results": results})


def test_iter_pages_follows_cursor_until_null() -> None:
    session = FakeSession(
        [
            page([document("Book One", "first")], cursor="foo"),
            page([document("Book Two", "second", "third")], cursor=None),
        ]
    )
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    pages = list(fetcher.iter_pages(since="2023-01-01T00:00:00Z"))

    assert len(pages) == 2
    assert [d.title for p in pages for d in p.documents] == ["Book One", "Book Two"]
    assert [h.text for h in pages[1].documents[0].highlights] == ["second", "third"]
    assert extract_cursor(pages[0].raw) == "foo"
    assert len(session.calls) == 2
    url, first_params, headers = session.calls[0]
    assert url == "https://readwise.io/api/v2/export/"
    assert headers["Authorization"] == "Token secret"
    assert first_params == {"updatedAfter": "2023-01-01T00:00:00Z"}
    assert session.calls[1][1] == {"updatedAfter": "2023-01-01T00:00:00Z", "pageCursor": "foo"}


def test_build_params_omits_absent_values() -> None:
    assert ReadwiseExportFetcher.build_params(None, None) == {}
    assert ReadwiseExportFetcher.build_params("2023-01-01T00:00:00Z", None) == {
        "updatedAfter": "2023-01-01T00:00:00Z"
    }
    assert ReadwiseExportFetcher.build_params(None, "abc") == {"pageCursor": "abc"}


def test_first_request_without_since_has_no_parameters() -> None:
    session = FakeSession([page([])])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    pages = list(fetcher.iter_pages())

    assert len(pages) == 1
    assert session.calls[0][1] == {}


def test_extract_cursor_treats_missing_and_empty_as_end() -> None:
    assert extract_cursor({"nextPageCursor": "foo"}) == "foo"
    assert extract_cursor({"nextPageCursor": None}) is None
    assert extract_cursor({"nextPageCursor": ""}) is None
    assert extract_cursor({}) is None


def test_repeated_cursor_raises_pagination_error() -> None:
    session = FakeSession(
        [
            page([], cursor="loop"),
            page([], cursor="loop"),
        ]
    )
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    with pytest.raises(PaginationError):
        list(fetcher.iter_pages())
    assert len(session.calls) == 2


def test_max_pages_guard() -> None:
    session = FakeSession([page([], cursor=f"c{n}") for n in range(5)])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    with pytest.raises(PaginationError):
        list(fetcher.iter_pages(max_pages=3))
    assert len(session.calls) == 3


@pytest.mark.parametrize("status", [401, 500])
def test_http_error_raises(status: int) -> None:
    session = FakeSession([FakeResponse({}, status_code=status)])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    with pytest.raises(ReadwiseFetchError):
        fetcher.fetch_page()


def test_transport_error_is_wrapped() -> None:
    session = FakeSession([requests.ConnectionError("offline")])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    with pytest.raises(ReadwiseFetchError, match="offline"):
        fetcher.fetch_page()


def test_missing_token_fails_before_request() -> None:
    session = FakeSession([])
    fetcher = ReadwiseExportFetcher(None, session=session)  # type: ignore[arg-type]

    with pytest.raises(ReadwiseFetchError):
        fetcher.fetch_page()
    assert session.calls == []


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "dict"],
        {"nextPageCursor": None},
        {"results": [{"title": "No URLs", "highlights": [{"text": "x"}]}]},
        {"results": [{"title": "Bad", "source_url": "https://a", "highlights": [{"id": 1}]}]},
    ],
)
def test_malformed_payload_raises(payload: object) -> None:
    session = FakeSession([FakeResponse(payload)])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    with pytest.raises(MalformedResponseError):
        fetcher.fetch_page()


def test_invalid_json_raises() -> None:
    session = FakeSession([FakeResponse(None)])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    with pytest.raises(MalformedResponseError):
        fetcher.fetch_page()


def test_source_url_preferred_over_readwise_url() -> None:
    session = FakeSession([page([document("Article", "x", source_url="https://example.com/a")])])
    fetcher = ReadwiseExportFetcher("secret", session=session)  # type: ignore[arg-type]

    (doc,) = fetcher.fetch_page().documents

    assert doc.external_reference == "https://example.com/a"
