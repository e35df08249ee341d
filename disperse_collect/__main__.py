"""
Run the disperse/collect HTTP service.

Configuration is read from the environment (or a ``.env`` file); see
``disperse_collect.config`` for the variables.
"""
import logging
import sys

import uvicorn

from .api import create_app
from .config import AppConfig
from .exceptions import ConfigError, SigningError
from .service import DisperseCollectService

logger = logging.getLogger("disperse_collect")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main() -> int:
    try:
        config = AppConfig.from_env()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)

    try:
        service = DisperseCollectService.from_config(config)
    except SigningError as e:
        logger.error(f"Cannot start: {e}")
        return 2

    app = create_app(service)
    logger.info(f"Listening on {config.host}:{config.port} (contract {config.contract_address})")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
