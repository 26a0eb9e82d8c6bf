"""Runtime configuration: server settings and feature flags."""

from __future__ import annotations

from .feature_flags import FEATURE_DEFAULTS, is_enabled, load_feature_flags
from .server_config import ServerConfig, load_config

__all__ = [
    "FEATURE_DEFAULTS",
    "ServerConfig",
    "is_enabled",
    "load_config",
    "load_feature_flags",
]
