"""Input/output helpers for configs and trajectories.

Model files are loaded through :mod:`reaction_diffusion.io.model_io`, which
depends on the simulation itself and is therefore not imported here.
"""

from .config_io import load_simulation_config
from .output_io import load_trajectory_csv, save_trajectory_csv, trajectory_matrix

__all__ = [
    "load_simulation_config",
    "save_trajectory_csv",
    "load_trajectory_csv",
    "trajectory_matrix",
]
