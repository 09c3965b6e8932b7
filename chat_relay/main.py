"""
Entry point: load configuration, configure logging and serve the API.
"""

from __future__ import annotations

import logging

import uvicorn

from chat_relay.api.app import create_app
from chat_relay.config import Configuration
from chat_relay.logging_utils import setup_logging


def main() -> None:
    """Run the relay server until interrupted."""
    config = Configuration()
    level = config.get_logging_config()["level"]
    setup_logging(level)

    server_config = config.get_server_config()
    app = create_app(config)

    logging.info(
        f"Serving chat relay on {server_config['host']}:{server_config['port']}"
    )
    uvicorn.run(
        app,
        host=server_config["host"],
        port=server_config["port"],
        log_level=str(level).lower(),
    )


if __name__ == "__main__":
    main()
