from __future__ import annotations

import argparse
import pathlib
from typing import Sequence

from reaction_diffusion.io.config_io import load_simulation_config
from reaction_diffusion.io.model_io import load_model_definition
from reaction_diffusion.logging_config import setup_logging


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run an adaptive reaction-diffusion simulation.")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to simulation YAML config (default: config.yaml)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Path to the model YAML file (overrides model_path in the config)",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Path of the trajectory CSV (overrides out_path in the config)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overrides log_level in the config)",
    )
    return parser.parse_args(argv)


def _resolve_out_path(out_path: str | None, model_path: pathlib.Path) -> pathlib.Path:
    if out_path is not None:
        return pathlib.Path(out_path)
    return model_path.with_name(model_path.stem + "_trajectory.csv")


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    sim_config = load_simulation_config(args.config)
    setup_logging(args.log_level or sim_config.log_level, sim_config.log_file)

    model_path = args.model or sim_config.model_path
    if model_path is None:
        raise ValueError("A model file is required: set model_path in the YAML config or pass --model")
    model_path = pathlib.Path(model_path)

    simulation = load_model_definition(model_path, sim_config)
    reports = simulation.run_until(sim_config.total_time)

    out_path = _resolve_out_path(args.out or sim_config.out_path, model_path)
    simulation.recorder.save(out_path)

    stats = simulation.scheduler.statistics()
    print(
        f"Simulated {stats['elapsed_time']:g} s in {len(reports)} epochs "
        f"(final dt = {stats['time_step']:g}, {stats['timesteps_decreased']} decreases, "
        f"{stats['timesteps_increased']} increases)"
    )
    print(f"Wrote {len(simulation.recorder)} trajectory rows to {out_path}")


if __name__ == "__main__":
    main()
