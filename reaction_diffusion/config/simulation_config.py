"""Simulation configuration for the adaptive reaction-diffusion scheduler.

Defines the initial time step, the local error tolerance and the bounds of
the step size control. A rejected epoch shrinks the step by
``decrease_factor``; the scheduler gives up once the step would fall below
``minimum_time_step`` or after ``maximum_recalculations`` rejections.
Setting ``global_error_cutoff`` adds a whole-system check on top of the
per-module local error.
"""

from __future__ import annotations

from dataclasses import dataclass

_FALLBACK_POLICIES = ("live", "strict")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class SimulationConfig:
    """Configuration parameters for the reaction-diffusion simulation."""
    time_step: float
    total_time: float
    tolerance: float = 0.01
    minimum_time_step: float = 1e-12
    maximum_time_step: float | None = None
    maximum_recalculations: int = 100
    global_error_cutoff: float | None = None
    decrease_factor: float = 0.9
    increase_factor: float = 1.1
    increase_margin: float = 0.2
    negligence_cutoff: float = 1e-100
    instability_cutoff: float = 100.0
    relative_error_epsilon: float = 1e-100
    semi_dependent_fallback: str = "live"
    empty_concentration: float = 0.0
    concentration_unit: str = "mol/L"
    subsection_volume: float = 1e-15
    record_interval: int = 1
    model_path: str | None = None
    out_path: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None

    def __post_init__(self) -> None:
        if self.time_step <= 0:
            raise ValueError("time_step must be positive")
        if self.total_time <= 0:
            raise ValueError("total_time must be positive")
        if self.tolerance <= 0:
            raise ValueError("tolerance must be positive")
        if self.minimum_time_step <= 0:
            raise ValueError("minimum_time_step must be positive")
        if self.minimum_time_step > self.time_step:
            raise ValueError("minimum_time_step must not exceed time_step")
        if self.maximum_time_step is not None and self.maximum_time_step < self.time_step:
            raise ValueError("maximum_time_step must not be smaller than time_step")
        if self.maximum_recalculations <= 0:
            raise ValueError("maximum_recalculations must be positive")
        if self.global_error_cutoff is not None and self.global_error_cutoff <= 0:
            raise ValueError("global_error_cutoff must be positive")
        if not 0 < self.decrease_factor < 1:
            raise ValueError("decrease_factor must be in (0, 1)")
        if self.increase_factor < 1:
            raise ValueError("increase_factor must be at least 1")
        if not 0 <= self.increase_margin < 1:
            raise ValueError("increase_margin must be in [0, 1)")
        if self.negligence_cutoff < 0:
            raise ValueError("negligence_cutoff must be non-negative")
        if self.instability_cutoff <= self.tolerance:
            raise ValueError("instability_cutoff must be greater than tolerance")
        if self.relative_error_epsilon <= 0:
            raise ValueError("relative_error_epsilon must be positive")
        if self.semi_dependent_fallback not in _FALLBACK_POLICIES:
            raise ValueError("semi_dependent_fallback must be 'live' or 'strict'")
        if self.empty_concentration < 0:
            raise ValueError("empty_concentration must be non-negative")
        if self.subsection_volume <= 0:
            raise ValueError("subsection_volume must be positive")
        if self.record_interval <= 0:
            raise ValueError("record_interval must be positive")
        object.__setattr__(self, "log_level", str(self.log_level).upper())
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
