from __future__ import annotations

import json
from pathlib import Path

from scenesync.config import feature_flags
from scenesync.config.server_config import ServerConfig, load_config


def _write_config(root: Path, payload: dict, name: str = "config/scenesync.json") -> None:
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_defaults_without_config(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "HOST",
        "PORT",
        "DATA_DIR",
        "UPLOADS_DIR",
        "CORS_ORIGINS",
        "SEND_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(f"SCENESYNC_{name}", raising=False)
    assert load_config() == ServerConfig()


def test_file_then_env_overrides(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _write_config(tmp_path, {"server": {"port": 6100, "cors_origins": ["http://a"]}})
    monkeypatch.setenv("SCENESYNC_HOST", "0.0.0.0")
    monkeypatch.setenv("SCENESYNC_CORS_ORIGINS", "http://b, http://c,http://b")
    monkeypatch.setenv("SCENESYNC_LOG_LEVEL", "debug")

    config = load_config()

    assert config.port == 6100
    assert config.host == "0.0.0.0"
    assert config.cors_origins == ("http://b", "http://c")
    assert config.log_level == "DEBUG"


def test_invalid_env_values_fall_back(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SCENESYNC_PORT", "not-a-port")
    monkeypatch.setenv("SCENESYNC_SEND_TIMEOUT", "-3")
    config = load_config()
    assert config.port == 5000
    assert config.send_timeout == 5.0


def test_feature_flags_merge_with_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _write_config(tmp_path, {"features": {"enable_presence": False}}, "scenesync.json")
    _write_config(
        tmp_path, {"features": {"enable_presence": True, "echo_mutations_to_sender": True}}
    )

    flags = feature_flags.load_feature_flags(refresh=True)

    assert flags["enable_collaboration"] is True
    assert flags["enable_presence"] is True
    assert flags["echo_mutations_to_sender"] is True
    assert feature_flags.is_enabled("unknown_flag", default=True) is True
    assert feature_flags.is_enabled("unknown_flag") is False


def test_feature_flags_ignore_non_boolean_values(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _write_config(tmp_path, {"features": {"enable_presence": "no"}})
    assert feature_flags.refresh_cache()["enable_presence"] is True
