import argparse

import uvicorn

from api.app import create_app
from utils.config import load_settings
from utils.logger import get_logger, route_server_logs

_logger = get_logger("main")


def parse_args(argv=None) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Run the storefront API server.")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    app = create_app()
    route_server_logs()
    _logger.info(f"Server running on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
