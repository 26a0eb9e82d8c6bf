from __future__ import annotations

import json
import logging
import os
from typing import Optional

import typer
import uvicorn

from scenesync.config import load_config, load_feature_flags

app = typer.Typer(add_completion=False, help="SceneSync command line utilities.")
logger = logging.getLogger(__name__)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (defaults to config)."),
    port: Optional[int] = typer.Option(None, help="Bind port (defaults to config)."),
    reload: bool = typer.Option(False, help="Reload on source changes."),
    log_level: Optional[str] = typer.Option(None, help="Server log level."),
) -> None:
    """Run the collaboration server under uvicorn."""
    config = load_config()
    bind_host = host or config.host
    bind_port = port or config.port
    level = (log_level or config.log_level).lower()
    # uvicorn builds the app through the factory; skip the import-time copy.
    os.environ["SCENESYNC_SKIP_APP_AUTOLOAD"] = "1"
    logger.info("Starting SceneSync on %s:%s", bind_host, bind_port)
    uvicorn.run(
        "scenesync.server.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=level,
    )


@app.command()
def config() -> None:
    """Print the resolved server configuration and feature flags."""
    payload = {
        "server": load_config().to_dict(),
        "features": load_feature_flags(refresh=True),
    }
    print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    app()
