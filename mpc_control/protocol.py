"""Message contract between the simulator and the controller.

Messages use the socket.io text framing the simulator speaks:

    42["telemetry", {"ptsx": [...], "ptsy": [...], "x": .., "y": .., "psi": .., "speed": ..}]
    42["steer", {"steering_angle": .., "throttle": .., "mpc_x": [...], ...}]
    42["manual", {}]

The "4" marks a websocket message and the "2" an event. Frames without the
"42" prefix (engine.io handshakes, pings) carry nothing for the controller.
"""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import MalformedTelemetry

EVENT_PREFIX = "42"

TELEMETRY_EVENT = "telemetry"
MANUAL_EVENT = "manual"
STEER_EVENT = "steer"

MANUAL_ACK = '42["manual",{}]'
"""Fixed acknowledgement for manual driving frames."""


@dataclass(frozen=True)
class Telemetry:
    """Inbound telemetry in the map frame."""

    ptsx: List[float]
    ptsy: List[float]
    x: float
    y: float
    psi: float
    speed: float


@dataclass
class SteerMessage:
    """Outbound actuator command plus trajectories for display.

    mpc_x/mpc_y are the predicted vehicle-frame positions (drawn green by the
    simulator), next_x/next_y the vehicle-frame waypoints (drawn yellow).
    """

    steering_angle: float
    throttle: float
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)


def extract_event(message: str) -> Optional[str]:
    """Return the JSON array of an event frame, or "" if it carries no data.

    Returns None for frames that are not socket.io events.
    """
    if len(message) <= 2 or not message.startswith(EVENT_PREFIX):
        return None
    if "null" in message:
        return ""
    start = message.find("[")
    end = message.rfind("}]")
    if start != -1 and end != -1:
        return message[start : end + 2]
    return ""


def decode(message) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
    """Decode a raw frame into (event name, payload).

    Returns:
        (None, None) for non-event frames, (MANUAL_EVENT, None) for event frames
        without data, otherwise the event name and its payload dict.

    Raises:
        MalformedTelemetry: If the frame claims data but is not valid JSON.
    """
    if isinstance(message, bytes):
        message = message.decode("utf-8")

    body = extract_event(message)
    if body is None:
        return None, None
    if body == "":
        return MANUAL_EVENT, None

    try:
        event = json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedTelemetry(f"Invalid JSON in event frame: {e}") from e

    if not isinstance(event, list) or not event or not isinstance(event[0], str):
        raise MalformedTelemetry(f"Event frame is not [name, payload]: {body[:80]}")
    payload = event[1] if len(event) > 1 else None
    if payload is not None and not isinstance(payload, dict):
        raise MalformedTelemetry(f"Event payload must be an object, got {type(payload).__name__}")
    return event[0], payload


def _finite_number(payload: Dict[str, Any], key: str) -> float:
    if key not in payload:
        raise MalformedTelemetry(f"Telemetry is missing '{key}'")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTelemetry(f"Telemetry field '{key}' is not a number: {value!r}")
    if not math.isfinite(value):
        raise MalformedTelemetry(f"Telemetry field '{key}' is not finite: {value!r}")
    return float(value)


def _finite_list(payload: Dict[str, Any], key: str) -> List[float]:
    if key not in payload:
        raise MalformedTelemetry(f"Telemetry is missing '{key}'")
    values = payload[key]
    if not isinstance(values, list):
        raise MalformedTelemetry(f"Telemetry field '{key}' is not a list")
    return [_finite_number({key: value}, key) for value in values]


def parse_telemetry(payload: Optional[Dict[str, Any]]) -> Telemetry:
    """Validate a telemetry payload.

    Raises:
        MalformedTelemetry: Missing fields, non-numeric or non-finite values,
            or waypoint lists of different lengths.
    """
    if not isinstance(payload, dict):
        raise MalformedTelemetry("Telemetry payload is missing")

    ptsx = _finite_list(payload, "ptsx")
    ptsy = _finite_list(payload, "ptsy")
    if len(ptsx) != len(ptsy):
        raise MalformedTelemetry(
            f"Waypoint lists differ in length: {len(ptsx)} x vs {len(ptsy)} y"
        )

    return Telemetry(
        ptsx=ptsx,
        ptsy=ptsy,
        x=_finite_number(payload, "x"),
        y=_finite_number(payload, "y"),
        psi=_finite_number(payload, "psi"),
        speed=_finite_number(payload, "speed"),
    )


def encode_steer(message: SteerMessage) -> str:
    """Frame a steer command for the simulator."""
    return f'{EVENT_PREFIX}["{STEER_EVENT}",{json.dumps(asdict(message))}]'
