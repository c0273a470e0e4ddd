"""Run the model server over HTTP.

Usage:
    python -m credchain_risk.serve
    python -m credchain_risk.serve --config config/default.yaml --port 3001
"""

import argparse
import sys

import uvicorn

from .api.app import create_app
from .config import load_config
from .serving.server import ModelServer
from .utils.logging import logger_from_config


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Serve trained risk models over HTTP.")
    parser.add_argument("-c", "--config", type=str, default=None, help="Path to YAML configuration.")
    parser.add_argument("--host", type=str, default=None, help="Bind address; overrides serving.host.")
    parser.add_argument("-p", "--port", type=int, default=None, help="Port; overrides serving.port.")
    parser.add_argument("-m", "--models-dir", type=str, default=None, help="Artifact root to load from.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    logger = logger_from_config(config.logging, "credchain_risk.serving")
    server = ModelServer(config, logger=logger)
    loaded = server.load_latest(args.models_dir)
    logger.info("Models loaded", models=[a.name for a in loaded])

    app = create_app(server, config)
    uvicorn.run(
        app,
        host=args.host or config.serving.host,
        port=args.port or config.serving.port,
        log_level=config.logging.level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
