"""Command line entry point for pulling Readwise highlights into Org-roam notes."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable

from roam_highlights.config import SyncConfig, apply_environment, load_config
from roam_highlights.state import LastSyncStore
from roam_highlights.sync import HighlightSync

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, help="Path to JSON configuration file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    parser.add_argument(
        "command",
        nargs="?",
        choices=("pull", "status"),
        default="pull",
        help="'pull' syncs new highlights (default); 'status' shows the last sync time",
    )
    return parser.parse_args(list(argv))


def _combine_config(args: argparse.Namespace) -> SyncConfig:
    try:
        config = SyncConfig.from_mapping(load_config(args.config))
    except FileNotFoundError as exc:  # pragma: no cover - user error
        raise SystemExit(f"Configuration file not found: {args.config}") from exc
    except (OSError, ValueError, TypeError) as exc:
        raise SystemExit(f"Failed to read configuration file: {exc}") from exc
    return apply_environment(config, os.environ)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )
    config = _combine_config(args)

    if args.command == "status":
        last_sync = LastSyncStore(config.resolved_state_path).read()
        print(f"Last sync: {last_sync}" if last_sync else "No sync recorded yet.")
        return 0

    report = HighlightSync(config).pull()
    print(report.summary())
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
