"""Run the smart display control plane.

Start with::

    python -m smartdisplay --config /etc/smartdisplay.yaml
"""

import argparse
import logging
import sys

from .common.exceptions import ConfigurationError
from .core.config import SystemConfig

logger = logging.getLogger("smartdisplay")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smart display control plane")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--host", help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, help="Bind port (overrides config)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = SystemConfig.load(args.config)
        if args.host:
            config.server.host = args.host
        if args.port:
            config.server.port = args.port
        config.server.validate()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    import uvicorn

    from .api.app import init_app

    app = init_app(config=config)
    logger.info(f"Server running on {config.server.host}:{config.server.port}")
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
