"""Application entry point for SmartMarks server."""

import structlog

from smartmarks.app import App
from smartmarks.config import Config
from smartmarks.logging import setup_logging
from smartmarks.web.runner import run_server

logger = structlog.get_logger(__name__)


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    if config.site_url.startswith("https://") and not config.cookie_secure:
        logger.warning("insecure_session_cookies", site_url=config.site_url)
    logger.info("starting", host=config.host, port=config.port, site_url=config.site_url, auth_url=config.auth_url)
    run_server(App(config), config)


if __name__ == "__main__":
    main()
