from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Mapping

CONFIG_PATH = Path("config/scenesync.json")
CONFIG_CANDIDATES: tuple[Path, ...] = (CONFIG_PATH, Path("scenesync.json"))

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000
DEFAULT_DATA_DIR = Path("./data/projects")
DEFAULT_UPLOADS_DIR = Path("./data/uploads")
DEFAULT_CORS_ORIGINS: tuple[str, ...] = ("http://localhost:3000",)
DEFAULT_SEND_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "INFO"

ENV_HOST = "SCENESYNC_HOST"
ENV_PORT = "SCENESYNC_PORT"
ENV_DATA_DIR = "SCENESYNC_DATA_DIR"
ENV_UPLOADS_DIR = "SCENESYNC_UPLOADS_DIR"
ENV_CORS_ORIGINS = "SCENESYNC_CORS_ORIGINS"
ENV_SEND_TIMEOUT = "SCENESYNC_SEND_TIMEOUT"
ENV_LOG_LEVEL = "SCENESYNC_LOG_LEVEL"


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    data_dir: Path = DEFAULT_DATA_DIR
    uploads_dir: Path = DEFAULT_UPLOADS_DIR
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    send_timeout: float = DEFAULT_SEND_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL

    def to_dict(self) -> dict[str, object]:
        return {
            "host": self.host,
            "port": self.port,
            "data_dir": str(self.data_dir),
            "uploads_dir": str(self.uploads_dir),
            "cors_origins": list(self.cors_origins),
            "send_timeout": self.send_timeout,
            "log_level": self.log_level,
        }


def _load_raw_config() -> dict:
    for path in CONFIG_CANDIDATES:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            continue
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    return {}


def _config_section(payload: Mapping[str, object]) -> Mapping[str, object]:
    server = payload.get("server")
    if isinstance(server, Mapping):
        return server
    return {}


def _coerce_port(value: object, default: int) -> int:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if port <= 0 or port > 65535:
        return default
    return port


def _coerce_timeout(value: object, default: float) -> float:
    try:
        timeout = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if timeout <= 0:
        return default
    return timeout


def _normalise_origins(values: Iterable[object]) -> tuple[str, ...]:
    origins = [str(item).strip() for item in values if str(item).strip()]
    # Preserve order while removing duplicates
    return tuple(dict.fromkeys(origins))


def _apply_env_overrides(cfg: ServerConfig) -> ServerConfig:
    updates: dict[str, object] = {}

    env_host = os.getenv(ENV_HOST)
    if env_host and env_host.strip():
        updates["host"] = env_host.strip()

    env_port = os.getenv(ENV_PORT)
    if env_port:
        updates["port"] = _coerce_port(env_port, cfg.port)

    env_data = os.getenv(ENV_DATA_DIR)
    if env_data and env_data.strip():
        updates["data_dir"] = Path(env_data.strip()).expanduser()

    env_uploads = os.getenv(ENV_UPLOADS_DIR)
    if env_uploads and env_uploads.strip():
        updates["uploads_dir"] = Path(env_uploads.strip()).expanduser()

    env_origins = os.getenv(ENV_CORS_ORIGINS)
    if env_origins:
        origins = _normalise_origins(env_origins.split(","))
        if origins:
            updates["cors_origins"] = origins

    env_timeout = os.getenv(ENV_SEND_TIMEOUT)
    if env_timeout:
        updates["send_timeout"] = _coerce_timeout(env_timeout, cfg.send_timeout)

    env_level = os.getenv(ENV_LOG_LEVEL)
    if env_level and env_level.strip():
        updates["log_level"] = env_level.strip().upper()

    return replace(cfg, **updates) if updates else cfg


def load_config() -> ServerConfig:
    """Return the server configuration with environment overrides applied."""
    section = _config_section(_load_raw_config())

    origins_raw = section.get("cors_origins")
    if isinstance(origins_raw, (list, tuple)):
        origins = _normalise_origins(origins_raw) or DEFAULT_CORS_ORIGINS
    else:
        origins = DEFAULT_CORS_ORIGINS

    data_dir = section.get("data_dir")
    uploads_dir = section.get("uploads_dir")
    config = ServerConfig(
        host=str(section.get("host") or DEFAULT_HOST),
        port=_coerce_port(section.get("port"), DEFAULT_PORT),
        data_dir=Path(str(data_dir)) if data_dir else DEFAULT_DATA_DIR,
        uploads_dir=Path(str(uploads_dir)) if uploads_dir else DEFAULT_UPLOADS_DIR,
        cors_origins=origins,
        send_timeout=_coerce_timeout(
            section.get("send_timeout"), DEFAULT_SEND_TIMEOUT
        ),
        log_level=str(section.get("log_level") or DEFAULT_LOG_LEVEL).upper(),
    )
    return _apply_env_overrides(config)


__all__ = ["ServerConfig", "load_config", "CONFIG_CANDIDATES"]
