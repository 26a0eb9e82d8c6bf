"""
SceneSync FastAPI entrypoint.

Provides a ``create_app`` factory that configures logging, CORS, middleware,
the project store and the collaboration hub, then mounts the project and
collaboration routers.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from scenesync.config import ServerConfig, load_config
from scenesync.logging_config import init_logging
from scenesync.server.core.asset_store import ModelAssetStore
from scenesync.server.core.collab import build_hub
from scenesync.server.core.errors import register_exception_handlers
from scenesync.server.core.middleware_ex import RequestContextMiddleware
from scenesync.server.core.storage import ProjectStore
from scenesync.server.modules import collab_api, projects_api

LOGGER = logging.getLogger(__name__)
APP_VERSION = os.getenv("SCENESYNC_VERSION", "0.1.0")
DEFAULT_LOG_FILE = "server.log"


def _configure_logging(config: ServerConfig) -> tuple[Path, str]:
    level = os.getenv("LOG_LEVEL") or config.log_level
    log_dir_env = os.getenv("LOG_DIR")
    log_path = init_logging(
        log_dir=Path(log_dir_env).expanduser() if log_dir_env else None,
        level=level,
        filename=DEFAULT_LOG_FILE,
    )
    LOGGER.info(
        "Server logging configured",
        extra={"log_path": str(log_path), "log_level": level},
    )
    return log_path, level


def create_app(
    config: Optional[ServerConfig] = None,
    *,
    store: Optional[ProjectStore] = None,
    assets: Optional[ModelAssetStore] = None,
    feature_flags: Optional[Dict[str, Any]] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Application factory used by both CLI launches and ASGI servers."""
    config = config or load_config()
    log_path, log_level = _configure_logging(config)

    app = FastAPI(title="SceneSync", version=APP_VERSION)
    app.state.version = APP_VERSION
    app.state.config = config
    app.state.log_path = log_path
    app.state.log_level = log_level
    app.state.store = store or ProjectStore(config.data_dir)
    app.state.assets = assets or ModelAssetStore(config.uploads_dir)
    app.state.collab = build_hub(app.state.store, feature_flags=feature_flags)

    if enable_cors:
        origins = list(config.cors_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        LOGGER.info("CORS enabled", extra={"origins": origins})

    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    app.include_router(projects_api.router)
    app.include_router(collab_api.router)

    @app.get("/health", tags=["System"], summary="Simple health check")
    async def core_health():
        return {"status": "ok"}

    @app.get("/healthz", include_in_schema=False)
    async def _healthz():
        return {"ok": True}

    @app.get("/status", tags=["System"], summary="Service status overview")
    async def core_status():
        routes = sorted(
            {route.path for route in app.routes if isinstance(route, APIRoute)}
        )
        return {
            "ok": True,
            "version": APP_VERSION,
            "routes": routes,
            "collab": app.state.collab.stats(),
            "log_path": str(app.state.log_path),
        }

    LOGGER.info(
        "FastAPI application ready",
        extra={"routes": len(app.routes), "version": APP_VERSION},
    )
    return app


if os.getenv("SCENESYNC_SKIP_APP_AUTOLOAD", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}:
    app: FastAPI | None = None
else:
    app = create_app()
