"""MPC Control - Model-Predictive Path Tracking for a Simulated Vehicle

Computes, once per control cycle, the steering and throttle commands that keep
a vehicle on a reference path while respecting actuator limits, actuation
latency and ride smoothness.

## Control Cycle

### Step 1: Body Frame (transform.py)
World-frame waypoints are translated and rotated into the vehicle frame, where
the vehicle always sits at (0, 0) facing along +x.

### Step 2: Reference Path (path.py)
A cubic y = f(x) is least-squares fitted to the body-frame waypoints.

### Step 3: Tracking Errors (estimator.py)
cte = f(0) and epsi = -atan(f'(0)).

### Step 4: Model-Predictive Control (mpc.py)
A finite-horizon problem over the kinematic bicycle model (model.py) and the
tracking/effort/smoothness cost (cost.py) is solved with IPOPT (solver.py).
The actuator pairs inside the latency window are pinned to the previous
command; the first free pair is applied.

## Modules

### Core Control Modules
- `config.py` - Centralized configuration parameters with documentation
- `transform.py` - World/body frame transforms
- `path.py` - Polynomial fitting and evaluation
- `estimator.py` - Cross-track and heading error
- `model.py` - Kinematic bicycle model and decision vector layout
- `cost.py` - MPC objective
- `solver.py` - NLP solver interface and IPOPT backend
- `mpc.py` - MPC formulation, latency compensation, warm start
- `controller.py` - Per-cycle pipeline with failure recovery

### Communication & Data
- `telemetry.py` - Telemetry parsing and reply messages
- `server.py` - WebSocket server and logging setup
- `data_collector.py` - CSV logging of every control cycle

### Visualization
- `plot_styles.py` - Shared plotting utilities and color scheme
- `visualization.py` - Post-run plots
- `plot_results.py` - CLI for visualization tools

## Quick Start

```bash
python -m mpc_control --ref-speed 20 --latency 0.1
python -m mpc_control.plot_results --save
```

## Version

0.1.0 - Initial implementation
"""

__version__ = "0.1.0"

from .config import CostWeights, MPCConfig
from .controller import PathTrackingController
from .data_collector import DataCollector
from .errors import FitError, InputError, MPCError, SolveFailed
from .mpc import MPCController, MPCSolution
from .solver import IpoptSolver, NLPSolver
from .telemetry import ControlOutput, Telemetry

__all__ = [
    "MPCConfig",
    "CostWeights",
    "MPCController",
    "MPCSolution",
    "PathTrackingController",
    "IpoptSolver",
    "NLPSolver",
    "Telemetry",
    "ControlOutput",
    "DataCollector",
    "MPCError",
    "InputError",
    "FitError",
    "SolveFailed",
]
