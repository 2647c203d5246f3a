"""MPC Control - Receding-Horizon Path Tracking for a Simulated Car

A model predictive controller that serves a driving simulator over a websocket.
Every telemetry frame is turned into one steering/throttle command.

## Architecture Overview

Each control cycle runs the same pipeline:

### Stage 1: Reference Fitting (path.py)
Re-expresses the map-frame waypoints in the vehicle frame and fits a cubic.
- Vehicle at the origin, x-axis along its heading
- Least-squares fit via QR decomposition
- Output: Polynomial coefficients c0..c3

### Stage 2: State Estimation (estimator.py)
Computes tracking errors and compensates for actuation latency.
- cte = f(0), epsi = -atan(c1)
- Propagates the state by the latency using the previous command
- Output: Planning state (x, y, psi, v, cte, epsi)

### Stage 3: Problem Construction (mpc.py, model.py)
Encodes the horizon as a nonlinear program using the kinematic bicycle model.
- Tracking, actuator magnitude and smoothness costs
- Model equality constraints, actuator bounds
- Output: MPCProblem (CasADi symbolic template + numeric bounds)

### Stage 4: Optimization (solver.py)
Solves the program with IPOPT and validates the result.
- Failures classified as non-convergence or internal failure
- Output: First actuator pair and predicted trajectory

## Modules

### Core Control Modules
- `config.py` - Centralized configuration parameters with documentation
- `path.py` - Frame transform and polynomial fitting
- `model.py` - Kinematic bicycle update
- `estimator.py` - Tracking errors and latency compensation
- `mpc.py` - NLP construction
- `solver.py` - Optimizer adapter
- `controller.py` - Per-session control loop state machine

### Communication & Data
- `protocol.py` - Message framing for the simulator
- `server.py` - WebSocket server, one control loop per connection
- `data_collector.py` - CSV data logging per control cycle

### Visualization
- `visualization.py` - Post-run plots of logged cycles
- `plot_results.py` - CLI for visualization tools

## Quick Start

```bash
python -m mpc_control
```

## Version

0.1.0 - Initial implementation
"""

__version__ = "0.1.0"

# Export key classes for convenience
from .config import MPCConfig
from .controller import ControlLoop, LoopState
from .data_collector import DataCollector
from .estimator import StateEstimator, VehicleState
from .mpc import MPCProblemBuilder
from .solver import IpoptOptimizer

__all__ = [
    "MPCConfig",
    "ControlLoop",
    "LoopState",
    "DataCollector",
    "StateEstimator",
    "VehicleState",
    "MPCProblemBuilder",
    "IpoptOptimizer",
]
