"""Process entry point: ``python -m accounts.main``."""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from accounts.app import create_app
from accounts.core.config import ConfigError, get_settings
from accounts.core.logging import configure_logging


def main() -> None:
    load_dotenv()
    configure_logging()
    try:
        settings = get_settings()
    except ConfigError as exc:
        logging.getLogger("accounts").error("%s. Exiting...", exc)
        sys.exit(1)
    configure_logging(settings.log_level)

    app = create_app(settings)
    logging.getLogger("accounts").info("Listening on %s:%s", settings.server_host, settings.server_port)
    # uvicorn installs SIGINT/SIGTERM handlers and drains in-flight requests on shutdown.
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    main()
