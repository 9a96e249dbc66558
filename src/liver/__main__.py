"""
Command-line entry point: ``liver ROOT`` or ``python -m liver ROOT``.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from liver.app import watch
from liver.core.config import get_config
from liver.core.exceptions import ApplicationError


def _directory(value: str) -> Path:
    path = Path(value)
    if not path.is_dir():
        raise argparse.ArgumentTypeError(f"{value} is not an existing directory")
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="liver",
        description="Serve a directory and reload the browser when its files change.",
    )
    parser.add_argument("root", type=_directory, help="directory to serve and watch")
    parser.add_argument("--host", help="HTTP bind host (env: HOST, default 127.0.0.1)")
    parser.add_argument("--port", type=int, help="HTTP port (env: HTTP_PORT, default 8000)")
    parser.add_argument("--ws-port", type=int, help="WebSocket port (env: WS_PORT, default 8001)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="log level (env: LOG_LEVEL, default INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = get_config().with_overrides(
            host=args.host,
            http_port=args.port,
            ws_port=args.ws_port,
            log_level=args.log_level,
        )
        watch(args.root, config)
    except ApplicationError as e:
        print(f"liver: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
