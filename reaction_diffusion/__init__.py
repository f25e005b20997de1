"""Spatially resolved reaction-diffusion simulation package.

Concentrations are kept per updatable (graph node or vesicle) and advanced
epoch by epoch by composable modules, with an adaptive time step bounded by
a half-step local error estimate.

Main entry points:
- reaction_diffusion.simulation: Simulation class for programmatic use
- reaction_diffusion.scheduler: UpdateScheduler (step size control)
- reaction_diffusion.modules: module contract, update scopes and built-in modules
- reaction_diffusion.models: concentration containers, deltas and updatables
- reaction_diffusion.io: YAML config/model loading and trajectory CSV output
"""

from reaction_diffusion.config import SimulationConfig
from reaction_diffusion.exceptions import (
    MissingHalfStepError,
    NonConvergenceError,
    NumericalInstabilityError,
    ScopeContractError,
    SimulationError,
)
from reaction_diffusion.io import load_simulation_config, load_trajectory_csv, save_trajectory_csv
from reaction_diffusion.io.model_io import load_model_definition
from reaction_diffusion.logging_config import setup_logging
from reaction_diffusion.scheduler import EpochReport, UpdateScheduler
from reaction_diffusion.simulation import Simulation
from reaction_diffusion.trajectory import TrajectoryRecorder

__all__ = [
    # Core classes
    "Simulation",
    "SimulationConfig",
    "UpdateScheduler",
    "EpochReport",
    "TrajectoryRecorder",
    # Errors
    "SimulationError",
    "ScopeContractError",
    "MissingHalfStepError",
    "NumericalInstabilityError",
    "NonConvergenceError",
    # Functions
    "load_simulation_config",
    "load_model_definition",
    "save_trajectory_csv",
    "load_trajectory_csv",
    "setup_logging",
]
__version__ = "0.1.0"
