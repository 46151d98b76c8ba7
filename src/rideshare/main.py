"""Entry point for the RideShare API and chat server."""

import structlog

from rideshare.app import App
from rideshare.config import Config
from rideshare.logging import setup_logging
from rideshare.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    structlog.get_logger(__name__).info(
        "rideshare_starting",
        host=config.host,
        port=config.port,
        email_domain=config.allowed_email_domain,
        quick_match_ttl_minutes=config.quick_match_ttl_minutes,
        shared_realtime_queue=config.redis_url is not None,
    )
    run_server(App(config), config)


if __name__ == "__main__":
    main()
