"""
Tests for the websocket server wiring and command-line flags.
"""

import asyncio

import pytest

from mpc_control import protocol
from mpc_control.component_modes import ComponentMode, parse_component_flags
from mpc_control.controller import ControlLoop, LoopState
from mpc_control.server import MPCServer


class FakeWebSocket:
    """Async-iterable stand-in for a websockets connection."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message

    async def send(self, message):
        self.sent.append(message)


@pytest.fixture
def server(config):
    return MPCServer(config, send_delay=0.0, output_dir=None)


def test_invalid_port(config):
    with pytest.raises(ValueError):
        MPCServer(config, port=0)


def test_negative_delay(config):
    with pytest.raises(ValueError):
        MPCServer(config, send_delay=-0.1)


def test_sessions_are_independent(server):
    first = server.create_session("session1")
    second = server.create_session("session2")

    assert isinstance(first, ControlLoop)
    assert first is not second
    assert first.estimator is not second.estimator
    assert first.data_collector is None


def test_session_with_logging(config, tmp_path):
    server = MPCServer(config, output_dir=str(tmp_path))

    session = server.create_session("session1")
    session.data_collector.cleanup()

    assert session.data_collector.run_dir.parent == tmp_path / "results"


def test_connection_replies(server, monkeypatch):
    sessions = []
    create_session = server.create_session

    def recording_create_session(name):
        session = create_session(name)
        sessions.append(session)
        return session

    monkeypatch.setattr(server, "create_session", recording_create_session)
    websocket = FakeWebSocket(["0{}", "40", '42["telemetry",null]', "2"])

    asyncio.run(server.handle_connection(websocket))

    assert websocket.sent == [protocol.MANUAL_ACK]
    assert sessions[0].state is LoopState.DISCONNECTED


def test_component_flags():
    mode, remaining = parse_component_flags(["--no-latency", "-v", "--port", "4000"])

    assert mode.use_latency_compensation is False
    assert mode.use_warm_start is True
    assert remaining == ["-v", "--port", "4000"]


def test_component_mode_description():
    mode = ComponentMode(use_warm_start=False)

    assert "Latency Compensation" in str(mode)
    assert "cold start" in str(mode)
    assert mode.to_dict() == {"use_latency_compensation": True, "use_warm_start": False}
