"""
CLI entry point for the exit engine service.

Usage:
    # Serve the HTTP API (the OI poller starts with the app lifespan)
    python -m adaptive_exit.cli serve --port 8000

    # Same, through the installed script
    adaptive-exit serve
"""

import argparse
import logging
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI application under uvicorn."""
    import uvicorn

    logger.info("Starting exit engine at http://%s:%d", args.host, args.port)
    uvicorn.run("adaptive_exit.main:app", host=args.host, port=args.port, reload=False)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Adaptive exit engine CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Serve the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
