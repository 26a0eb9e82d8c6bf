from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from scenesync.collab import CollabHub, ProjectGateway
from scenesync.config.feature_flags import load_feature_flags

LOGGER = logging.getLogger(__name__)


def build_hub(
    store: ProjectGateway, *, feature_flags: Optional[Dict[str, Any]] = None
) -> CollabHub:
    flags = feature_flags if feature_flags is not None else load_feature_flags()
    hub = CollabHub(store, feature_flags=flags)
    LOGGER.debug("Collaboration hub ready", extra={"feature_flags": flags})
    return hub


def get_hub(app) -> CollabHub:
    return app.state.collab


def refresh_feature_flags(hub: CollabHub) -> Dict[str, Any]:
    flags = load_feature_flags(refresh=True)
    hub.update_feature_flags(flags)
    return flags


__all__ = ["build_hub", "get_hub", "refresh_feature_flags"]
