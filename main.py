# main.py
import sys

import structlog

from app import create_app
from config import Settings
from errors import ConfigurationError
from logging_config import setup_logging


def main():
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        setup_logging()
        structlog.get_logger(__name__).error("invalid_configuration", error=str(e))
        sys.exit(1)

    setup_logging(settings.log_level)
    log = structlog.get_logger(__name__)

    try:
        settings.ensure_configured()
        app = create_app(settings)
    except ConfigurationError as e:
        log.error("invalid_configuration", error=str(e))
        sys.exit(1)

    log.info("server_starting", host=settings.host, port=settings.port, storage=settings.storage_provider)
    app.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
