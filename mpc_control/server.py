#!/usr/bin/env python3
"""
WebSocket Server for MPC Path Tracking

This module provides the WebSocket endpoint the simulator connects to. Every
connection gets its own ControlLoop; telemetry frames are processed one at a
time in arrival order and the resulting steer frames are sent back after an
optional artificial actuation delay.
"""

import asyncio
import itertools
import logging
import signal
from typing import Any, Optional

import websockets

from mpc_control.component_modes import ComponentMode
from mpc_control.config import (
    TERM_BLUE,
    TERM_ORANGE,
    TERM_RESET,
    WS_HOST,
    WS_PORT,
    WS_SEND_DELAY_SECONDS,
    MPCConfig,
)
from mpc_control.controller import ControlLoop
from mpc_control.data_collector import DataCollector


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
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
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class MPCServer:
    """WebSocket server hosting one MPC control loop per connection.

    Attributes:
        config: Controller configuration shared (read-only) by all sessions.
        host: Interface to listen on.
        port: Port to listen on.
        send_delay: Artificial actuation delay before each reply (seconds).
        component_mode: Optional loop features for every session.
        output_dir: Base directory for per-session CSV logs, or None to disable.
    """

    def __init__(
        self,
        config: MPCConfig,
        host: str = WS_HOST,
        port: int = WS_PORT,
        send_delay: float = WS_SEND_DELAY_SECONDS,
        component_mode: Optional[ComponentMode] = None,
        output_dir: Optional[str] = ".",
    ) -> None:
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}")
        if send_delay < 0:
            raise ValueError(f"send_delay must be non-negative, got {send_delay}")

        self.config = config
        self.host = host
        self.port = port
        self.send_delay = send_delay
        self.component_mode = component_mode if component_mode is not None else ComponentMode()
        self.output_dir = output_dir
        self._session_ids = itertools.count(1)
        self._stop_event: Optional[asyncio.Event] = None

        logging.info(f"{TERM_BLUE}Component Configuration: {self.component_mode}{TERM_RESET}")
        logging.debug(f"Component flags: {self.component_mode.to_dict()}")

    def create_session(self, session_name: str) -> ControlLoop:
        """Build an independent control loop (and its logger) for a new connection."""
        data_collector = None
        if self.output_dir is not None:
            data_collector = DataCollector(output_dir=self.output_dir, session_name=session_name)
            data_collector.setup()
        return ControlLoop(
            self.config,
            component_mode=self.component_mode,
            data_collector=data_collector,
            session_name=session_name,
        )

    async def handle_connection(self, websocket: Any) -> None:
        """Serve one simulator connection until it closes."""
        session_name = f"session{next(self._session_ids)}"
        logging.info(f"{TERM_BLUE}✓ Connected ({session_name}){TERM_RESET}")
        session = self.create_session(session_name)

        try:
            async for message in websocket:
                # The solve blocks; run it off the event loop so other sessions keep going
                reply = await asyncio.to_thread(session.handle_message, message)
                if reply is None:
                    continue
                if self.send_delay > 0:
                    await asyncio.sleep(self.send_delay)
                await websocket.send(reply)
                session.message_sent()
        except websockets.exceptions.ConnectionClosed:
            logging.warning(f"Connection closed unexpectedly ({session_name})")
        finally:
            session.disconnect()
            if session.data_collector is not None:
                session.data_collector.cleanup()

    async def run(self) -> None:
        """Listen for connections until stop() is called."""
        self._stop_event = asyncio.Event()
        async with websockets.serve(self.handle_connection, self.host, self.port):
            logging.info(f"{TERM_BLUE}Listening on ws://{self.host}:{self.port}{TERM_RESET}")
            await self._stop_event.wait()

    def stop(self) -> None:
        """Signal the server to stop."""
        if self._stop_event is not None:
            self._stop_event.set()


async def main(
    config: Optional[MPCConfig] = None,
    host: str = WS_HOST,
    port: int = WS_PORT,
    component_mode: Optional[ComponentMode] = None,
    output_dir: Optional[str] = ".",
) -> None:
    """Main entry point for the MPC server.

    Creates an MPCServer, sets up signal handlers for graceful shutdown, and
    serves until interrupted.
    """
    if config is None:
        config = MPCConfig()
    server = MPCServer(
        config, host=host, port=port, component_mode=component_mode, output_dir=output_dir
    )

    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        """Handle shutdown signals (SIGINT, SIGTERM)."""
        logging.info(f"\n{TERM_ORANGE}Shutdown signal received...{TERM_RESET}")
        server.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await server.run()
