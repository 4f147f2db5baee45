"""Uvicorn server runner with custom configuration."""

import copy

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from smartmarks.app import App
from smartmarks.config import Config
from smartmarks.web.server import create_fastapi_app

WS_PING_INTERVAL = 20.0  # Detect dead live-list sockets so their subscriptions get released


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server with custom logging and websocket keepalive."""
    fastapi_app = create_fastapi_app(app, config)

    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"

    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=log_config,
        access_log=True,
        proxy_headers=True,
        ws_ping_interval=WS_PING_INTERVAL,
        ws_ping_timeout=WS_PING_INTERVAL,
    )
