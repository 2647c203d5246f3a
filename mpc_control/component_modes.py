"""
Component isolation modes for controller evaluation.

This module defines which optional parts of the control loop are active, so the
contribution of latency compensation and warm starting can be evaluated in
isolation against the simulator.
"""

from dataclasses import dataclass
import argparse
import sys


@dataclass
class ComponentMode:
    """Configuration for which control loop components are active."""

    use_latency_compensation: bool = True  # If False, plan from the raw telemetry state
    use_warm_start: bool = True  # If False, every solve starts from zeros

    def __str__(self):
        """Human-readable description of active components."""
        components = ["Polyfit"]

        if self.use_latency_compensation:
            components.append("Latency Compensation")
        else:
            components.append("Raw State")

        if self.use_warm_start:
            components.append("MPC(warm start)")
        else:
            components.append("MPC(cold start)")

        return " → ".join(components)

    def to_dict(self):
        """Convert to dictionary for logging."""
        return {
            'use_latency_compensation': self.use_latency_compensation,
            'use_warm_start': self.use_warm_start,
        }


def parse_component_flags(args=None):
    """
    Parse command-line flags to determine which components are active.

    Args:
        args: List of command-line arguments (default: sys.argv[1:])

    Returns:
        tuple: (ComponentMode, remaining_args)
            - ComponentMode with appropriate settings
            - List of remaining arguments not consumed
    """
    parser = argparse.ArgumentParser(add_help=False)

    parser.add_argument('--no-latency', action='store_true',
                        help='Disable latency compensation (plan from raw telemetry)')
    parser.add_argument('--no-warm-start', action='store_true',
                        help='Disable warm starting the optimizer with the previous solution')

    if args is None:
        args = sys.argv[1:]

    known_args, remaining_args = parser.parse_known_args(args)

    mode = ComponentMode(
        use_latency_compensation=not known_args.no_latency,
        use_warm_start=not known_args.no_warm_start,
    )

    return mode, remaining_args
