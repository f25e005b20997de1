from __future__ import annotations

import os
import pathlib
from typing import Any, Mapping

import yaml

from reaction_diffusion.config.simulation_config import SimulationConfig


def _resolve_path(value: str, base_dir: pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(value)
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def _check_readable(path: pathlib.Path, label: str) -> None:
    if not path.exists():
        raise ValueError(f"{label} not found: {path}")
    if not path.is_file():
        raise ValueError(f"{label} is not a file: {path}")
    if not os.access(path, os.R_OK):
        raise ValueError(f"{label} is not readable: {path}")


def _require(raw: Mapping[str, Any], key: str) -> Any:
    if key not in raw:
        raise ValueError(f"Missing required config field: {key}")
    return raw[key]


def _optional_float(raw: Mapping[str, Any], key: str) -> float | None:
    value = raw.get(key)
    return float(value) if value is not None else None


def load_yaml_mapping(path: str | pathlib.Path, label: str = "Config file") -> dict:
    path = pathlib.Path(path)
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"{label} must contain a YAML mapping: {path}")
    return raw


def load_simulation_config(path: str | pathlib.Path) -> SimulationConfig:
    path = pathlib.Path(path)
    raw = load_yaml_mapping(path)
    base_dir = path.resolve().parent

    model_path = raw.get("model_path")
    if model_path is not None:
        model_path = _resolve_path(str(model_path), base_dir)
        _check_readable(model_path, "model_path")
    out_path = raw.get("out_path")
    if out_path is not None:
        out_path = _resolve_path(str(out_path), base_dir)
    log_file = raw.get("log_file")
    if log_file is not None:
        log_file = _resolve_path(str(log_file), base_dir)

    cfg = SimulationConfig(
        time_step=float(_require(raw, "time_step")),
        total_time=float(_require(raw, "total_time")),
        tolerance=float(raw.get("tolerance", 0.01)),
        minimum_time_step=float(raw.get("minimum_time_step", 1e-12)),
        maximum_time_step=_optional_float(raw, "maximum_time_step"),
        maximum_recalculations=int(raw.get("maximum_recalculations", 100)),
        global_error_cutoff=_optional_float(raw, "global_error_cutoff"),
        decrease_factor=float(raw.get("decrease_factor", 0.9)),
        increase_factor=float(raw.get("increase_factor", 1.1)),
        increase_margin=float(raw.get("increase_margin", 0.2)),
        negligence_cutoff=float(raw.get("negligence_cutoff", 1e-100)),
        instability_cutoff=float(raw.get("instability_cutoff", 100.0)),
        relative_error_epsilon=float(raw.get("relative_error_epsilon", 1e-100)),
        semi_dependent_fallback=str(raw.get("semi_dependent_fallback", "live")).lower(),
        empty_concentration=float(raw.get("empty_concentration", 0.0)),
        concentration_unit=str(raw.get("concentration_unit", "mol/L")),
        subsection_volume=float(raw.get("subsection_volume", 1e-15)),
        record_interval=int(raw.get("record_interval", 1)),
        model_path=str(model_path) if model_path is not None else None,
        out_path=str(out_path) if out_path is not None else None,
        log_level=str(raw.get("log_level", "INFO")),
        log_file=str(log_file) if log_file is not None else None,
    )
    return cfg
