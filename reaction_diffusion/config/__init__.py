from reaction_diffusion.config.simulation_config import SimulationConfig

__all__ = ["SimulationConfig"]
