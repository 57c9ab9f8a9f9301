import argparse
import logging

import uvicorn

from .config_manager import ConfigManager
from .logger import setup_logging
from .main import create_app
from .service import ChatService

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Bate-papo chat backend")
    parser.add_argument('--config', type=str, default=None, help='Path to a JSON config file')
    parser.add_argument('--host', type=str, default=None, help='Interface to bind')
    parser.add_argument('--port', type=int, default=None, help='Port to listen on')
    parser.add_argument('--backend', choices=['sqlite', 'mongo'], default=None,
                        help='Storage backend')
    parser.add_argument('--log-level', type=str, default=None, help='Logging level')
    return parser.parse_args(argv)


def load_config(args) -> ConfigManager:
    config = ConfigManager(args.config)
    if args.host is not None:
        config.update_config('server', 'host', args.host)
    if args.port is not None:
        config.update_config('server', 'port', args.port)
    if args.backend is not None:
        config.update_config('storage', 'backend', args.backend)
    if args.log_level is not None:
        config.update_config('logging', 'level', args.log_level)
    return config


def main(argv=None):
    args = parse_args(argv)
    config = load_config(args)

    log_config = config.get_logging_config()
    setup_logging(log_config.get('level', 'INFO'), log_config.get('file'))

    server = config.get_server_config()
    service = ChatService.from_config(config)
    app = create_app(service, server.get('cors_origins'))

    logger.info(f"Server listening on {server['host']}:{server['port']}")
    uvicorn.run(app, host=server['host'], port=server['port'], log_config=None)


if __name__ == "__main__":
    main()
