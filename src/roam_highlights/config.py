"""Configuration helpers for the Readwise synchroniser."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

DEFAULT_BASE_URL = "https://readwise.io/api/v2/"
TOKEN_ENV_VAR = "READWISE_TOKEN"


@dataclass
class SyncConfig:
    """Holds configuration for syncing Readwise highlights into Org-roam notes."""

    api_token: Optional[str] = None
    notes_root: Path = Path("~/org-roam")
    notes_subdir: str = "highlights"
    note_suffix: str = ".org"
    state_path: Path = Path("~/.readwise_roam/last_sync")
    index_path: Optional[Path] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 60.0
    max_pages: int = 1000

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "SyncConfig":
        kwargs: Dict[str, Any] = {}
        if "api_token" in data and data["api_token"]:
            kwargs["api_token"] = str(data["api_token"])
        if "notes_root" in data and data["notes_root"]:
            kwargs["notes_root"] = Path(data["notes_root"])
        if "notes_subdir" in data and data["notes_subdir"]:
            kwargs["notes_subdir"] = str(data["notes_subdir"])
        if "note_suffix" in data and data["note_suffix"]:
            suffix = str(data["note_suffix"])
            kwargs["note_suffix"] = suffix if suffix.startswith(".") else f".{suffix}"
        if "state_path" in data and data["state_path"]:
            kwargs["state_path"] = Path(data["state_path"])
        if "index_path" in data and data["index_path"]:
            kwargs["index_path"] = Path(data["index_path"])
        if "base_url" in data and data["base_url"]:
            kwargs["base_url"] = str(data["base_url"])
        if "timeout" in data and data["timeout"]:
            kwargs["timeout"] = float(data["timeout"])
        if "max_pages" in data and data["max_pages"]:
            kwargs["max_pages"] = int(data["max_pages"])
        return cls(**kwargs)

    @property
    def resolved_notes_root(self) -> Path:
        return self.notes_root.expanduser()

    @property
    def resolved_state_path(self) -> Path:
        return self.state_path.expanduser()

    @property
    def resolved_index_path(self) -> Path:
        if self.index_path is not None:
            return self.index_path.expanduser()
        return self.resolved_notes_root / ".roam_refs.json"


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    """Load a JSON configuration file if provided."""

    if path is None:
        return {}
    with path.expanduser().resolve().open("r", encoding="utf-8") as handle:
        return json.load(handle)


def apply_environment(config: SyncConfig, environ: Mapping[str, str]) -> SyncConfig:
    """Fill the API token from the environment when the config file has none."""

    if not config.api_token:
        token = environ.get(TOKEN_ENV_VAR, "").strip()
        if token:
            config.api_token = token
    return config
