"""Per-session control loop for MPC path tracking.

One ControlLoop instance serves one vehicle session. Each telemetry message is
processed completely before the next one is accepted:

    AWAITING_TELEMETRY -> BUILDING_PROBLEM -> SOLVING -> EMITTING -> AWAITING_TELEMETRY

A failure at any stage skips the cycle and returns directly to
AWAITING_TELEMETRY. DISCONNECTED is terminal.
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from . import protocol
from .component_modes import ComponentMode
from .config import MPCConfig, TERM_BLUE, TERM_RESET
from .data_collector import DataCollector
from .errors import MPCError
from .estimator import StateEstimator, VehicleState
from .mpc import MPCProblemBuilder
from .path import ReferencePath, fit_reference, to_map_frame
from .protocol import SteerMessage, Telemetry
from .solver import IpoptOptimizer, MPCSolution, Optimizer, solve


class LoopState(Enum):
    """States of the per-session control loop."""

    AWAITING_TELEMETRY = "awaiting_telemetry"
    BUILDING_PROBLEM = "building_problem"
    SOLVING = "solving"
    EMITTING = "emitting"
    DISCONNECTED = "disconnected"


ALLOWED_TRANSITIONS = {
    LoopState.AWAITING_TELEMETRY: {LoopState.BUILDING_PROBLEM, LoopState.DISCONNECTED},
    LoopState.BUILDING_PROBLEM: {
        LoopState.SOLVING,
        LoopState.AWAITING_TELEMETRY,
        LoopState.DISCONNECTED,
    },
    LoopState.SOLVING: {
        LoopState.EMITTING,
        LoopState.AWAITING_TELEMETRY,
        LoopState.DISCONNECTED,
    },
    LoopState.EMITTING: {LoopState.AWAITING_TELEMETRY, LoopState.DISCONNECTED},
    LoopState.DISCONNECTED: set(),
}


class ControlLoop:
    """MPC control loop with an explicit state machine.

    This class runs the complete pipeline for one session:
    - Decoding inbound frames (telemetry / manual)
    - Reference path fitting in the vehicle frame
    - Latency-compensated state estimation
    - MPC problem construction and solving
    - Packaging the actuator command and trajectories

    Attributes:
        config: Immutable controller configuration.
        state: Current LoopState.
        estimator: Latency-compensating state estimator.
        builder: MPC problem builder.
        optimizer: Nonlinear optimizer backend.
        cycles: Number of telemetry cycles started.
        skipped_cycles: Number of cycles that produced no command.
        last_error: Most recent cycle error, if any.
    """

    def __init__(
        self,
        config: MPCConfig,
        optimizer: Optional[Optimizer] = None,
        component_mode: Optional[ComponentMode] = None,
        data_collector: Optional[DataCollector] = None,
        session_name: str = "session",
    ) -> None:
        if component_mode is None:
            component_mode = ComponentMode()

        self.config = config
        self.session_name = session_name
        self.state = LoopState.AWAITING_TELEMETRY
        self.estimator = StateEstimator(
            config, compensate_latency=component_mode.use_latency_compensation
        )
        self.builder = MPCProblemBuilder(config)
        self.optimizer: Optimizer = optimizer if optimizer is not None else IpoptOptimizer(config)
        self.data_collector = data_collector
        self.use_warm_start = component_mode.use_warm_start and config.warm_start

        self.previous_solution: Optional[np.ndarray] = None
        self.cycles = 0
        self.skipped_cycles = 0
        self.last_error: Optional[MPCError] = None
        self.last_command: Optional[SteerMessage] = None

    def transition(self, new_state: LoopState) -> None:
        """Move to new_state.

        Raises:
            RuntimeError: If the transition is not allowed from the current state.
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {new_state.value} "
                f"({self.session_name})"
            )
        logging.debug(f"[{self.session_name}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    def handle_message(self, message) -> Optional[str]:
        """Process one raw frame and return the reply frame, if any.

        Args:
            message: Raw frame (str or bytes) from the transport.

        Returns:
            Encoded steer frame for a solved telemetry cycle, the manual
            acknowledgement for a manual frame, otherwise None.

        Raises:
            RuntimeError: If the session is already disconnected.
        """
        if self.state is LoopState.DISCONNECTED:
            raise RuntimeError(f"Session {self.session_name} is disconnected")
        if self.state is LoopState.EMITTING:
            # The transport did not confirm the previous send; it is gone either way
            self.message_sent()

        try:
            event, payload = protocol.decode(message)
        except MPCError as e:
            self._skip_cycle(e)
            return None

        if event is None:
            return None
        if event == protocol.MANUAL_EVENT:
            return protocol.MANUAL_ACK
        if event != protocol.TELEMETRY_EVENT:
            logging.debug(f"[{self.session_name}] Ignoring event '{event}'")
            return None

        command = self.process_telemetry(payload)
        if command is None:
            return None
        return protocol.encode_steer(command)

    def process_telemetry(self, payload: Optional[Dict[str, Any]]) -> Optional[SteerMessage]:
        """Run one full control cycle on a telemetry payload.

        Returns:
            The command to send (loop left in EMITTING), or None if the cycle
            was skipped (loop back in AWAITING_TELEMETRY).
        """
        self.cycles += 1
        self.transition(LoopState.BUILDING_PROBLEM)

        telemetry: Optional[Telemetry] = None
        state: Optional[VehicleState] = None
        try:
            telemetry = protocol.parse_telemetry(payload)
            reference = fit_reference(
                telemetry.ptsx, telemetry.ptsy, telemetry.x, telemetry.y, telemetry.psi
            )
            state = self.estimator.estimate(reference.coeffs, telemetry.speed)
            previous = self.previous_solution if self.use_warm_start else None
            problem = self.builder.build(state, reference.coeffs, previous)

            self.transition(LoopState.SOLVING)
            solution = solve(problem, self.optimizer)
        except MPCError as e:
            self._skip_cycle(e, telemetry, state)
            return None

        self.transition(LoopState.EMITTING)
        return self._package(solution, reference, state, telemetry)

    def _package(
        self,
        solution: MPCSolution,
        reference: ReferencePath,
        state: VehicleState,
        telemetry: Telemetry,
    ) -> SteerMessage:
        cfg = self.config
        steering = float(np.clip(cfg.steering_sign * solution.steering, -cfg.max_steer, cfg.max_steer))
        throttle = float(np.clip(solution.throttle, cfg.throttle_min, cfg.throttle_max))

        self.estimator.record_command(solution.steering, solution.throttle)
        if self.use_warm_start:
            self.previous_solution = solution.x

        command = SteerMessage(
            steering_angle=steering,
            throttle=throttle,
            mpc_x=solution.mpc_x,
            mpc_y=solution.mpc_y,
            next_x=reference.xs.tolist(),
            next_y=reference.ys.tolist(),
        )

        if self.last_command is None:
            logging.info(f"{TERM_BLUE}✓ Running MPC path tracking ({self.session_name}){TERM_RESET}")
        self.last_command = command

        logging.debug(
            f"[{self.session_name}] cycle {self.cycles}: cte={state.cte:.3f} epsi={state.epsi:.3f} "
            f"steer={steering:.3f} throttle={throttle:.3f} "
            f"cost={solution.cost:.2f} solve={solution.solve_time * 1000:.1f}ms"
        )

        if self.data_collector is not None:
            now = time.time()
            self.data_collector.log_cycle(
                now,
                telemetry.x,
                telemetry.y,
                telemetry.psi,
                telemetry.speed,
                cte=state.cte,
                epsi=state.epsi,
                steering=steering,
                throttle=throttle,
                cost=solution.cost,
                solve_time_ms=solution.solve_time * 1000.0,
                status=solution.status,
            )
            pose = (telemetry.x, telemetry.y, telemetry.psi)
            mpc_x, mpc_y = to_map_frame(command.mpc_x, command.mpc_y, *pose)
            self.data_collector.log_trajectory(now, "mpc", mpc_x, mpc_y)
            self.data_collector.log_trajectory(now, "reference", telemetry.ptsx, telemetry.ptsy)

        return command

    def _skip_cycle(
        self,
        error: MPCError,
        telemetry: Optional[Telemetry] = None,
        state: Optional[VehicleState] = None,
    ) -> None:
        self.skipped_cycles += 1
        self.last_error = error
        status = getattr(error, "status", None)
        detail = f" (status: {status})" if status else ""
        logging.warning(
            f"[{self.session_name}] Skipping cycle {self.cycles}: {error.kind}: {error}{detail}"
        )

        if self.data_collector is not None and telemetry is not None:
            self.data_collector.log_cycle(
                time.time(),
                telemetry.x,
                telemetry.y,
                telemetry.psi,
                telemetry.speed,
                cte=state.cte if state else None,
                epsi=state.epsi if state else None,
                status=error.kind,
            )

        if self.state is not LoopState.AWAITING_TELEMETRY:
            self.transition(LoopState.AWAITING_TELEMETRY)

    def message_sent(self) -> None:
        """Confirm the outbound command was handed to the transport."""
        if self.state is LoopState.EMITTING:
            self.transition(LoopState.AWAITING_TELEMETRY)

    def disconnect(self) -> None:
        """Terminate the session."""
        if self.state is not LoopState.DISCONNECTED:
            self.transition(LoopState.DISCONNECTED)
            self.estimator.reset()
            self.previous_solution = None
            logging.info(
                f"[{self.session_name}] Disconnected after {self.cycles} cycles "
                f"({self.skipped_cycles} skipped)"
            )
