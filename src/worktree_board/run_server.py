"""Entry point for running the API server as a subprocess."""

import logging
import sys
from pathlib import Path

from .core.config import DEFAULT_CONFIG_FILENAME, load_config
from .utils.rich_logging import setup_logging
from .web.server import run_server


def main():
    """Main entry point for the API server.

    Usage: python -m worktree_board.run_server [port]
    """
    config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME
    setup_logging(load_config(config_path).log_level)
    logger = logging.getLogger(__name__)

    try:
        port = int(sys.argv[1]) if len(sys.argv) > 1 else None
    except ValueError:
        logger.error(f"Invalid port: {sys.argv[1]}")
        sys.exit(1)

    try:
        run_server(config_path, port=port)
    except KeyboardInterrupt:
        logger.info("Server interrupted, shutting down")
    except Exception as e:
        logger.exception(f"Server crashed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
