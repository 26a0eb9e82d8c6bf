from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

from scenesync.config.server_config import CONFIG_CANDIDATES

FEATURE_DEFAULTS: Dict[str, bool] = {
    "enable_collaboration": True,
    "enable_presence": True,
    # Transform and annotation echoes are suppressed unless this is set.
    "echo_mutations_to_sender": False,
}

_CACHE: Dict[str, bool] | None = None
_CACHE_SIGNATURE: tuple[float, ...] | None = None


def _candidate_paths() -> tuple[Path, ...]:
    return CONFIG_CANDIDATES


def _signature() -> tuple[float, ...]:
    values: list[float] = []
    for path in _candidate_paths():
        try:
            values.append(path.stat().st_mtime)
        except FileNotFoundError:
            values.append(0.0)
    return tuple(values)


def _read_features(path: Path) -> Dict[str, bool]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    if not isinstance(raw, dict):
        return {}
    data = raw.get("features")
    if not isinstance(data, dict):
        return {}
    result: Dict[str, bool] = {}
    for key, value in data.items():
        if isinstance(value, bool):
            result[key] = value
    return result


def load_feature_flags(*, refresh: bool = False) -> Dict[str, bool]:
    global _CACHE, _CACHE_SIGNATURE
    signature = _signature()
    if not refresh and _CACHE is not None and signature == _CACHE_SIGNATURE:
        return dict(_CACHE)

    flags: Dict[str, bool] = dict(FEATURE_DEFAULTS)
    # Later candidates are lower priority, so apply them first.
    for path in reversed(_candidate_paths()):
        if not path.exists():
            continue
        flags.update(_read_features(path))

    _CACHE = flags
    _CACHE_SIGNATURE = signature
    return dict(flags)


def is_enabled(
    name: str, *, default: bool | None = None, refresh: bool = False
) -> bool:
    flags = load_feature_flags(refresh=refresh)
    if name in flags:
        return bool(flags[name])
    if default is not None:
        return bool(default)
    return False


def refresh_cache() -> Dict[str, bool]:
    return load_feature_flags(refresh=True)


__all__ = ["FEATURE_DEFAULTS", "is_enabled", "load_feature_flags", "refresh_cache"]
