"""Adaptive step size control over all concentration modules.

One epoch runs every module's update scope against the current state. The
largest local error across modules decides whether the queued deltas are
applied (accept) or discarded and the epoch recomputed with a smaller time
step (reject). Nothing touches the live containers before acceptance.

With a ``global_error_cutoff`` an accepted epoch is checked once more as a
whole: every module is recomputed from the midpoint state and the resulting
update is compared with the first one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from reaction_diffusion.config.simulation_config import SimulationConfig
from reaction_diffusion.exceptions import NonConvergenceError
from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.sections import Subsection
from reaction_diffusion.models.updatable import CLAMP_MOLECULE_FRACTION, Updatable
from reaction_diffusion.modules.base import ConcentrationModule
from reaction_diffusion.modules.scopes import HalfStepFallback, LocalError, larger_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EpochReport:
    """Outcome of one accepted epoch."""
    epoch: int
    elapsed_time: float
    time_step: float
    next_time_step: float
    largest_local_error: LocalError
    local_error_module: Optional[str]
    recalculations: int
    largest_global_error: LocalError = LocalError.EMPTY


class UpdateScheduler:
    """Runs modules epoch by epoch and controls the shared time step."""

    def __init__(
        self,
        modules: Sequence[ConcentrationModule],
        updatables: Callable[[], Sequence[Updatable]] | Sequence[Updatable],
        environment: Environment,
        config: SimulationConfig,
    ) -> None:
        self.modules = modules
        self._updatables = updatables
        self.environment = environment
        self.config = config

        self.time_step = float(config.time_step)
        self.elapsed_time = 0.0
        self.epoch = 0
        self.timesteps_decreased = 0
        self.timesteps_increased = 0
        self.largest_local_error = LocalError.EMPTY
        self.local_error_module: Optional[ConcentrationModule] = None
        self.largest_global_error = LocalError.EMPTY

        for module in self.modules:
            self.configure_module(module)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def configure_module(self, module: ConcentrationModule) -> None:
        """Hand numerics settings and the current time step to ``module``."""
        module.configure_numerics(
            negligence_cutoff=self.config.negligence_cutoff,
            instability_cutoff=self.config.instability_cutoff,
            relative_error_epsilon=self.config.relative_error_epsilon,
            half_step_fallback=HalfStepFallback(self.config.semi_dependent_fallback),
        )
        module.rescale(self.time_step)
        if not module.check_features():
            logger.warning("Module %s is missing required features.", module)

    @property
    def updatables(self) -> List[Updatable]:
        if callable(self._updatables):
            return list(self._updatables())
        return list(self._updatables)

    # ------------------------------------------------------------------
    # Epochs
    # ------------------------------------------------------------------

    def next_epoch(self) -> EpochReport:
        """Compute, verify and apply one epoch.

        Raises:
            NonConvergenceError: if the error stays above tolerance down to the
                minimum time step or beyond the maximum number of recalculations.
        """
        updatables = self.updatables
        recalculations = 0
        decreased = False
        global_error = LocalError.EMPTY
        while True:
            self._clear_potential_deltas(updatables)
            error, module = self.calculate_all_modules(updatables)
            if error.value <= self.config.tolerance:
                if self.config.global_error_cutoff is None:
                    break
                global_error = self.evaluate_global_error(updatables)
                if global_error.value <= self.config.global_error_cutoff:
                    break
                recalculations += 1
                logger.debug(
                    "Rejected epoch %d at time step %g: global error %s.",
                    self.epoch + 1,
                    self.time_step,
                    global_error,
                )
                self._clear_potential_deltas(updatables)
                self.decrease_time_step(recalculations, global_error)
                decreased = True
                continue
            recalculations += 1
            logger.debug(
                "Rejected epoch %d at time step %g: local error %s in module %s.",
                self.epoch + 1,
                self.time_step,
                error,
                module,
            )
            self._clear_potential_deltas(updatables)
            self.decrease_time_step(recalculations, error, module)
            decreased = True

        self.largest_local_error = error
        self.local_error_module = module
        self.largest_global_error = global_error
        step = self.time_step
        for updatable in updatables:
            updatable.apply_potential_deltas(self.environment)
        self.epoch += 1
        self.elapsed_time += step

        if not decreased and self.config.tolerance - error.value > self.config.increase_margin * self.config.tolerance:
            self.increase_time_step()

        logger.debug(
            "Accepted epoch %d (t = %g, dt = %g, error = %s, recalculations = %d).",
            self.epoch,
            self.elapsed_time,
            step,
            error,
            recalculations,
        )
        return EpochReport(
            epoch=self.epoch,
            elapsed_time=self.elapsed_time,
            time_step=step,
            next_time_step=self.time_step,
            largest_local_error=error,
            local_error_module=str(module) if module is not None else None,
            recalculations=recalculations,
            largest_global_error=global_error,
        )

    def evaluate_global_error(self, updatables: Sequence[Updatable]) -> LocalError:
        """Compare the queued update with one computed from the midpoint state.

        The live containers are moved to ``y + d/2`` for the queued deltas
        ``d``, all modules run again and the containers are restored. The
        error of an entry is ``|1 - (y + d) / (y + d_mid)|``. Afterwards the
        midpoint deltas ``d_mid`` are the queued ones.
        """
        backups: Dict[Updatable, ConcentrationContainer] = {}
        first_deltas: Dict[Updatable, List[ConcentrationDelta]] = {}
        for updatable in updatables:
            container = updatable.concentration_container
            backups[updatable] = container.full_copy()
            first_deltas[updatable] = updatable.potential_deltas
            for (subsection, entity), value in self._advance(container, first_deltas[updatable], 0.5).items():
                container.set(subsection, entity, value)

        self._clear_potential_deltas(updatables)
        try:
            self.calculate_all_modules(updatables)
        finally:
            for updatable, backup in backups.items():
                updatable.concentration_container.restore(backup)

        largest = LocalError.EMPTY
        for updatable in updatables:
            container = updatable.concentration_container
            interim = self._advance(container, first_deltas[updatable])
            comparison = self._advance(container, updatable.potential_deltas)
            for key in interim.keys() | comparison.keys():
                full = interim.get(key, container.get(*key))
                midpoint = comparison.get(key, container.get(*key))
                if full == 0.0 or midpoint == 0.0:
                    continue
                subsection, entity = key
                largest = larger_error(
                    largest,
                    LocalError(updatable, subsection, entity, abs(1.0 - full / midpoint)),
                )
        logger.debug("Largest global error: %s", largest)
        return largest

    def _advance(
        self,
        container: ConcentrationContainer,
        deltas: Iterable[ConcentrationDelta],
        fraction: float = 1.0,
    ) -> Dict[Tuple[Subsection, ChemicalEntity], float]:
        values: Dict[Tuple[Subsection, ChemicalEntity], float] = {}
        for delta in deltas:
            key = (delta.subsection, delta.entity)
            values[key] = values.get(key, container.get(*key)) + fraction * delta.value
        for key, value in values.items():
            if value < 0.0 and self.environment.concentration_to_molecules(-value) < CLAMP_MOLECULE_FRACTION:
                values[key] = 0.0
        return values

    def calculate_all_modules(self, updatables: Sequence[Updatable]) -> tuple[LocalError, Optional[ConcentrationModule]]:
        """Run every module's scope and return the largest error and its module."""
        largest = LocalError.EMPTY
        responsible: Optional[ConcentrationModule] = None
        for module in self.modules:
            error = module.scope.process_all_updatables(updatables)
            if larger_error(largest, error) is not largest:
                largest = error
                responsible = module
        return largest, responsible

    # ------------------------------------------------------------------
    # Time step
    # ------------------------------------------------------------------

    def set_time_step(self, time_step: float) -> None:
        if time_step <= 0:
            raise ValueError("time_step must be positive")
        self.time_step = float(time_step)
        for module in self.modules:
            module.rescale(self.time_step)

    def decrease_time_step(
        self,
        recalculations: int = 0,
        error: LocalError = LocalError.EMPTY,
        module: Optional[ConcentrationModule] = None,
    ) -> None:
        reduced = self.time_step * self.config.decrease_factor
        if reduced < self.config.minimum_time_step or recalculations > self.config.maximum_recalculations:
            raise NonConvergenceError(
                f"Error {error} (module {module}) is still too large "
                f"after {recalculations} recalculations; "
                f"time step {self.time_step:g} cannot be reduced below {self.config.minimum_time_step:g}."
            )
        self.set_time_step(reduced)
        self.timesteps_decreased += 1

    def increase_time_step(self) -> None:
        increased = self.time_step * self.config.increase_factor
        if self.config.maximum_time_step is not None:
            increased = min(increased, self.config.maximum_time_step)
        if increased > self.time_step:
            self.set_time_step(increased)
            self.timesteps_increased += 1

    @staticmethod
    def _clear_potential_deltas(updatables: Sequence[Updatable]) -> None:
        for updatable in updatables:
            updatable.clear_potential_concentration_deltas()

    def statistics(self) -> dict:
        return {
            "epoch": self.epoch,
            "elapsed_time": self.elapsed_time,
            "time_step": self.time_step,
            "timesteps_decreased": self.timesteps_decreased,
            "timesteps_increased": self.timesteps_increased,
            "largest_local_error": self.largest_local_error.value,
            "largest_global_error": self.largest_global_error.value,
            "local_error_module": str(self.local_error_module) if self.local_error_module is not None else None,
        }
