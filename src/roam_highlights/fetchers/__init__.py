"""HTTP fetchers for retrieving highlights from remote services."""
from .readwise import (
    MalformedResponseError,
    PaginationError,
    ReadwiseExportFetcher,
    ReadwiseFetchError,
    extract_cursor,
)

__all__ = [
    "MalformedResponseError",
    "PaginationError",
    "ReadwiseExportFetcher",
    "ReadwiseFetchError",
    "extract_cursor",
]
