#!/usr/bin/env python3
"""
WebSocket Server for MPC Path Tracking

This module provides a WebSocket server that a driving simulator connects to.
Each telemetry message is run through a PathTrackingController and answered
with a steering/throttle command plus the predicted trajectory and reference
path for display. Every connection gets its own controller, so control cycles
against one controller are strictly sequential.
"""

import asyncio
import json
import logging
import signal
import threading
from typing import Any, Dict, Optional, Union

import websockets

from .config import (
    ACTUATION_DELAY,
    RESEND_ON_INPUT_ERROR,
    SERVER_HOST,
    SERVER_PORT,
    TELEMETRY_SPEED_SCALE,
    TERM_BLUE,
    TERM_RESET,
    MPCConfig,
)
from .controller import PathTrackingController
from .data_collector import DataCollector
from .errors import InputError
from .telemetry import Telemetry


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class MPCServer:
    """Telemetry server driving one PathTrackingController per connection.

    Attributes:
        config: Controller configuration handed to every new controller.
        host: Interface to bind to.
        port: Port to listen on.
        actuation_delay: Sleep before each steering reply (seconds).
        speed_scale: Factor converting telemetry speed to m/s.
        resend_on_input_error: Re-send the previous command for rejected telemetry.
        data_collector: Optional CSV recorder for every completed cycle.
    """

    def __init__(
        self,
        config: Optional[MPCConfig] = None,
        host: str = SERVER_HOST,
        port: int = SERVER_PORT,
        actuation_delay: float = ACTUATION_DELAY,
        speed_scale: float = TELEMETRY_SPEED_SCALE,
        resend_on_input_error: bool = RESEND_ON_INPUT_ERROR,
        data_collector: Optional[DataCollector] = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Controller configuration (default: MPCConfig()).
            host: Interface to bind to.
            port: Port to listen on.
            actuation_delay: Sleep before each steering reply (seconds).
            speed_scale: Factor converting telemetry speed to m/s.
            resend_on_input_error: Re-send the previous command for rejected telemetry.
            data_collector: Optional CSV recorder. Its setup/cleanup is tied to
                the server's context manager.

        Raises:
            ValueError: If the configuration or the actuation delay is invalid.
        """
        if config is None:
            config = MPCConfig()
        config.validate()
        if actuation_delay < 0:
            raise ValueError(f"Actuation delay must be non-negative, got {actuation_delay}")

        self.config = config
        self.host = host
        self.port = port
        self.actuation_delay = actuation_delay
        self.speed_scale = speed_scale
        self.resend_on_input_error = resend_on_input_error
        self.data_collector = data_collector

        self._stop_event: Optional[asyncio.Event] = None
        self._record_lock = threading.Lock()
        self.connection_count: int = 0

    def create_controller(self) -> PathTrackingController:
        """Create the controller owned by a new connection."""
        return PathTrackingController(self.config)

    def handle_message(
        self, controller: PathTrackingController, message: Union[str, bytes]
    ) -> Optional[Dict[str, Any]]:
        """Parse one incoming message and compute the reply.

        Args:
            controller: Controller owned by the connection the message arrived on.
            message: Raw JSON message string or bytes from WebSocket.

        Returns:
            Reply message, or None if nothing should be sent.
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logging.error(f"Error parsing JSON: {e}")
            return None

        if not isinstance(data, dict):
            logging.error(f"Expected a JSON object, got {type(data).__name__}")
            return None

        message_type = data.get("message_type")
        if message_type != "telemetry":
            logging.debug(f"Ignoring message of type {message_type!r}")
            return None

        payload = {key: value for key, value in data.items() if key != "message_type"}
        if not payload:
            # Simulator is in manual mode
            return {"message_type": "manual"}

        try:
            telemetry = Telemetry.from_message(payload, speed_scale=self.speed_scale)
            output = controller.step(telemetry)
        except InputError as e:
            logging.warning(f"Skipping control cycle: {e}")
            if self.resend_on_input_error and controller.last_output is not None:
                return controller.last_output.to_message()
            return None

        if self.data_collector is not None:
            # Connections share one recorder
            with self._record_lock:
                self.data_collector.log_cycle(telemetry, output)

        return output.to_message()

    async def handle_connection(self, websocket: Any) -> None:
        """Serve one simulator connection until it closes.

        Args:
            websocket: Active WebSocket connection.
        """
        controller = self.create_controller()
        self.connection_count += 1
        connection_id = self.connection_count
        logging.info(f"{TERM_BLUE}✓ Simulator connected (connection {connection_id}){TERM_RESET}")

        try:
            async for message in websocket:
                # Solve off the event loop so other connections keep their I/O
                reply = await asyncio.to_thread(self.handle_message, controller, message)
                if reply is None:
                    continue
                if reply.get("message_type") == "steer" and self.actuation_delay > 0:
                    await asyncio.sleep(self.actuation_delay)
                await websocket.send(json.dumps(reply))
        except websockets.exceptions.ConnectionClosedError as e:
            logging.warning(f"Connection {connection_id} closed with error: {e}")
        finally:
            logging.info(
                f"Connection {connection_id} closed after {controller.cycle_count} cycles "
                f"({controller.fit_failures} fit reuses, {controller.solve_failures} fallbacks)"
            )

    async def serve(self) -> None:
        """Listen for connections until stop() is called."""
        self._stop_event = asyncio.Event()
        async with websockets.serve(self.handle_connection, self.host, self.port):
            logging.info(f"{TERM_BLUE}✓ MPC server listening on ws://{self.host}:{self.port}{TERM_RESET}")
            logging.info(
                f"  horizon={self.config.horizon} dt={self.config.dt}s "
                f"latency={self.config.latency}s ref_speed={self.config.ref_speed}m/s"
            )
            await self._stop_event.wait()

    def stop(self) -> None:
        """Signal the server to stop."""
        if self._stop_event is not None:
            self._stop_event.set()

    def __enter__(self) -> "MPCServer":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        if self.data_collector is not None:
            self.data_collector.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called."""
        if self.data_collector is not None:
            self.data_collector.cleanup()


async def main(
    config: Optional[MPCConfig] = None,
    host: str = SERVER_HOST,
    port: int = SERVER_PORT,
    actuation_delay: float = ACTUATION_DELAY,
    record: bool = True,
    output_dir: str = ".",
) -> None:
    """Main entry point for the MPC server.

    Creates an MPCServer, sets up signal handlers for graceful shutdown, and
    serves until a shutdown signal arrives.

    Args:
        config: Controller configuration (default: MPCConfig()).
        host: Interface to bind to.
        port: Port to listen on.
        actuation_delay: Sleep before each steering reply (seconds).
        record: If True, record every cycle to CSV.
        output_dir: Base directory for recorded runs.
    """
    data_collector = DataCollector(output_dir=output_dir) if record else None

    with MPCServer(
        config,
        host=host,
        port=port,
        actuation_delay=actuation_delay,
        data_collector=data_collector,
    ) as server:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            server.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await server.serve()
