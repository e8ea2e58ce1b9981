"""
Run the upload server directly.

Usage:
    python -m attachment_pipeline.admin
    python -m attachment_pipeline.admin --port 8000
"""

import argparse

from ..logging_config import setup_logging
from .server import run_server


def main():
    parser = argparse.ArgumentParser(description="Attachment Pipeline Upload Server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=5050, help="Port (default: 5050)")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    setup_logging()
    run_server(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
