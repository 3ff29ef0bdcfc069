"""
Main entry point when running the mpc_control module with python -m.
"""

import argparse
import asyncio
import logging
import sys

from .config import ACTUATION_DELAY, SERVER_HOST, SERVER_PORT, MPCConfig
from .server import main, setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Command-line interface of the MPC server."""
    parser = argparse.ArgumentParser(
        description="MPC path tracking controller serving a driving simulator over WebSocket"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--host", default=SERVER_HOST, help=f"Interface to bind (default: {SERVER_HOST})")
    parser.add_argument("--port", type=int, default=SERVER_PORT, help=f"Port to listen on (default: {SERVER_PORT})")
    parser.add_argument("--ref-speed", type=float, default=None, help="Target speed (m/s)")
    parser.add_argument("--latency", type=float, default=None, help="Actuation latency compensated by the MPC (s)")
    parser.add_argument("--horizon", type=int, default=None, help="Number of prediction steps N")
    parser.add_argument("--dt", type=float, default=None, help="Prediction step duration (s)")
    parser.add_argument(
        "--actuation-delay",
        type=float,
        default=ACTUATION_DELAY,
        help=f"Artificial delay before each reply (default: {ACTUATION_DELAY}s)",
    )
    parser.add_argument("--no-record", action="store_true", help="Do not record cycles to CSV")
    parser.add_argument(
        "--output-dir", default=".", help="Base directory for recorded runs (default: current directory)"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> MPCConfig:
    """Apply command-line overrides to the default configuration.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    overrides = {
        "ref_speed": args.ref_speed,
        "latency": args.latency,
        "horizon": args.horizon,
        "dt": args.dt,
    }
    return MPCConfig().with_overrides(**{k: v for k, v in overrides.items() if v is not None})


if __name__ == "__main__":
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    try:
        asyncio.run(
            main(
                config,
                host=args.host,
                port=args.port,
                actuation_delay=args.actuation_delay,
                record=not args.no_record,
                output_dir=args.output_dir,
            )
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
