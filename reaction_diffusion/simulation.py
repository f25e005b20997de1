"""Top level simulation object.

Owns the spatial graph, the vesicles, the modules and the scheduler, and
records the observed updatables after accepted epochs.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from reaction_diffusion.config.simulation_config import SimulationConfig
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.graph import AutomatonGraph
from reaction_diffusion.models.updatable import Updatable, Vesicle
from reaction_diffusion.modules.base import ConcentrationModule
from reaction_diffusion.scheduler import EpochReport, UpdateScheduler
from reaction_diffusion.trajectory import TrajectoryRecorder

logger = logging.getLogger(__name__)


def environment_from_config(config: SimulationConfig) -> Environment:
    return Environment(
        empty_concentration=config.empty_concentration,
        concentration_unit=config.concentration_unit,
        subsection_volume=config.subsection_volume,
    )


class Simulation:
    """Reaction-diffusion simulation with adaptive time stepping."""

    def __init__(
        self,
        config: SimulationConfig,
        graph: Optional[AutomatonGraph] = None,
        environment: Optional[Environment] = None,
        modules: Optional[List[ConcentrationModule]] = None,
    ) -> None:
        self.config = config
        self.environment = environment if environment is not None else environment_from_config(config)
        self.graph = graph if graph is not None else AutomatonGraph()
        self.vesicles: List[Vesicle] = []
        self.modules: List[ConcentrationModule] = []
        self.scheduler = UpdateScheduler(self.modules, self.get_updatables, self.environment, config)
        self.recorder = TrajectoryRecorder(config.record_interval)
        for module in modules or []:
            self.add_module(module)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def add_module(self, module: ConcentrationModule) -> ConcentrationModule:
        if any(existing.identifier == module.identifier for existing in self.modules):
            raise ValueError(f"Duplicate module identifier: {module.identifier}")
        self.modules.append(module)
        self.scheduler.configure_module(module)
        logger.debug("Added module %r", module)
        return module

    def add_vesicle(self, vesicle: Vesicle) -> Vesicle:
        if any(existing.identifier == vesicle.identifier for existing in self.vesicles):
            raise ValueError(f"Duplicate vesicle identifier: {vesicle.identifier}")
        self.vesicles.append(vesicle)
        return vesicle

    def get_updatables(self) -> List[Updatable]:
        """Graph nodes in insertion order followed by the vesicles."""
        return [*self.graph.nodes, *self.vesicles]

    @property
    def updatables(self) -> List[Updatable]:
        return self.get_updatables()

    def observe(self, updatable: Updatable) -> None:
        updatable.observed = True

    @property
    def observed_updatables(self) -> List[Updatable]:
        observed = [u for u in self.updatables if u.observed]
        return observed or self.updatables

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    @property
    def elapsed_time(self) -> float:
        return self.scheduler.elapsed_time

    @property
    def epoch(self) -> int:
        return self.scheduler.epoch

    def next_epoch(self) -> EpochReport:
        if self.scheduler.epoch == 0 and not self.recorder.rows:
            self.recorder.record(0, 0.0, self.observed_updatables, force=True)
        report = self.scheduler.next_epoch()
        self.recorder.record(report.epoch, report.elapsed_time, self.observed_updatables)
        return report

    def run_epochs(self, n_epochs: int) -> List[EpochReport]:
        if n_epochs < 0:
            raise ValueError("n_epochs must be non-negative")
        return [self.next_epoch() for _ in range(n_epochs)]

    def run_until(self, time: Optional[float] = None) -> List[EpochReport]:
        """Run epochs until the elapsed time reaches ``time`` (default: config.total_time)."""
        end = self.config.total_time if time is None else float(time)
        if end <= self.elapsed_time:
            return []
        logger.info(
            "Running %d modules on %d updatables until t = %g.",
            len(self.modules),
            len(self.updatables),
            end,
        )
        reports: List[EpochReport] = []
        while self.elapsed_time < end:
            reports.append(self.next_epoch())
        if reports and reports[-1].epoch % self.recorder.interval != 0:
            self.recorder.record(reports[-1].epoch, reports[-1].elapsed_time, self.observed_updatables, force=True)
        logger.info(
            "Finished after %d epochs at t = %g (dt = %g, %d decreases, %d increases).",
            self.epoch,
            self.elapsed_time,
            self.scheduler.time_step,
            self.scheduler.timesteps_decreased,
            self.scheduler.timesteps_increased,
        )
        return reports
