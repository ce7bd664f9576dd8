import json
from pathlib import Path

from roam_highlights.config import SyncConfig, apply_environment, load_config


def test_from_mapping_reads_known_keys(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "api_token": "abc",
                "notes_root": str(tmp_path / "roam"),
                "note_suffix": "md",
                "max_pages": 5,
                "unknown": "ignored",
            }
        ),
        encoding="utf-8",
    )

    config = SyncConfig.from_mapping(load_config(config_path))

    assert config.api_token == "abc"
    assert config.notes_root == tmp_path / "roam"
    assert config.note_suffix == ".md"
    assert config.max_pages == 5
    assert config.notes_subdir == "highlights"
    assert config.resolved_index_path == tmp_path / "roam" / ".roam_refs.json"


def test_load_config_without_path_is_empty() -> None:
    assert load_config(None) == {}


def test_environment_token_only_fills_gaps() -> None:
    env = {"READWISE_TOKEN": "from-env"}

    assert apply_environment(SyncConfig(), env).api_token == "from-env"
    assert apply_environment(SyncConfig(api_token="from-file"), env).api_token == "from-file"
    assert apply_environment(SyncConfig(), {}).api_token is None
