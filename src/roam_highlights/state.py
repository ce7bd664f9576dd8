"""Persistence of the last successful sync time."""
from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class SyncLockedError(RuntimeError):
    """Raised when another sync run holds the lock file."""


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as ``YYYY-MM-DDTHH:MM:SSZ`` in UTC."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class LastSyncStore:
    """A single-line file holding the time of the last complete sync."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s (%s); syncing everything.", self.path, exc)
            return None
        if not value:
            return None
        try:
            parse_timestamp(value)
        except ValueError:
            logger.warning("Ignoring invalid timestamp %r in %s; syncing everything.", value, self.path)
            return None
        return value

    def write(self, moment: Union[datetime, str]) -> str:
        value = format_timestamp(moment) if isinstance(moment, datetime) else moment
        parse_timestamp(value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".last_sync", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value + "\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Stored last sync time %s in %s", value, self.path)
        return value

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold an advisory lock file for the duration of a sync run."""

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise SyncLockedError(
                f"Another sync appears to be running; remove {self.lock_path} if it is stale."
            ) from exc
        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
            os.close(fd)
            yield
        finally:
            self.lock_path.unlink(missing_ok=True)
