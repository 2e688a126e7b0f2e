"""
Varadhi control plane - Main entry point.

Starts the admin API (FastAPI on uvicorn) over a ServerContext built from
environment configuration:
- Node tree backend (ZooKeeper, SQLite or in-memory)
- Versioned metadata store and owning services
- Authorization provider (role definitions from YAML)

Usage:
    python -m controlplane.varadhi_server.main

Configuration is entirely via environment variables.
See config.py and api/settings.py for all available settings.

Invariants:
    - The metadata store is connected before the API accepts requests
    - Role definitions load exactly once at startup
    - Invalid configuration exits with status 1 before anything starts

How to change safely:
    - Keep uvicorn's own logging config disabled so setup_logging owns the root
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import Settings, create_app
from .config import ServerConfig
from .context import ServerContext

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("kazoo").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    settings = Settings()
    app = create_app(ServerContext(config), settings)

    logger.info(f"Starting Varadhi admin API on {settings.bind_address}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
