"""Exception hierarchy for the reaction-diffusion core.

Contract violations (scope wiring bugs) are fatal and never retried.
Numerical trouble is reported to the scheduler, which either shrinks the
time step or gives up with :class:`NonConvergenceError`.
"""

from __future__ import annotations


class SimulationError(RuntimeError):
    """Base class for errors raised by the simulation core."""


class ScopeContractError(SimulationError):
    """A module asked its update scope for something the scope cannot serve."""


class MissingHalfStepError(ScopeContractError):
    """No half-step container exists for an updatable that requires one."""


class NumericalInstabilityError(SimulationError):
    """The local error between full and half step deltas exploded."""

    def __init__(self, module: str, full_delta: float, half_delta: float, error: float) -> None:
        super().__init__(
            f"The module {module} experiences numerical instabilities. "
            f"The local error between the full step delta ({full_delta}) and half step delta "
            f"({half_delta}) is {error}. The initial time step may be too large or the module "
            f"computes inconsistent deltas."
        )
        self.module = module
        self.full_delta = full_delta
        self.half_delta = half_delta
        self.error = error


class NonConvergenceError(SimulationError):
    """The local error stayed above tolerance down to the smallest allowed step."""
