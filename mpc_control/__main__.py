"""
Main entry point when running the mpc_control module with python -m.
"""

import argparse
import asyncio
import logging
import sys

from .component_modes import parse_component_flags
from .config import WS_HOST, WS_PORT
from .server import main, setup_logging

if __name__ == "__main__":
    # Parse component isolation flags first
    component_mode, remaining_args = parse_component_flags()

    parser = argparse.ArgumentParser(
        description="WebSocket server running MPC path tracking for the simulator"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--host", default=WS_HOST, help=f"Interface to listen on (default: {WS_HOST})")
    parser.add_argument("--port", type=int, default=WS_PORT, help=f"Port to listen on (default: {WS_PORT})")
    parser.add_argument(
        "--output-dir", default=".", help="Base directory for results/ CSV logs (default: .)"
    )
    parser.add_argument("--no-log", action="store_true", help="Do not write CSV logs")
    args = parser.parse_args(remaining_args)

    setup_logging(args.verbose)

    try:
        asyncio.run(
            main(
                host=args.host,
                port=args.port,
                component_mode=component_mode,
                output_dir=None if args.no_log else args.output_dir,
            )
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
