"""Console entrypoint: load settings, configure logging and serve with uvicorn."""

from __future__ import annotations

import logging

import uvicorn

from homeswift_api.app import configure_logging, create_app
from homeswift_api.config import Settings, resolve_config

logger = logging.getLogger(__name__)


def main() -> None:
    config = resolve_config(Settings())
    configure_logging(config)
    app = create_app(config)

    logger.info("Starting HomeSwift API on %s:%d", config.host, config.port)
    logger.info("Environment: %s", config.environment)
    # uvicorn stops accepting connections on SIGINT/SIGTERM, drains in-flight
    # requests, then runs the lifespan shutdown that closes the database.
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        proxy_headers=False,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()
