"""Recording of concentrations over accepted epochs."""

from __future__ import annotations

import logging
import pathlib
from typing import Dict, Iterable, List, Sequence

import numpy as np

from reaction_diffusion.io.output_io import save_trajectory_csv
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.sections import Subsection
from reaction_diffusion.models.updatable import Updatable

logger = logging.getLogger(__name__)


class TrajectoryRecorder:
    """Collects one row per (updatable, subsection) every ``interval`` epochs."""

    def __init__(self, interval: int = 1) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = int(interval)
        self.rows: List[Dict[str, object]] = []

    def record(self, epoch: int, time: float, updatables: Iterable[Updatable], force: bool = False) -> bool:
        """Record the current state; returns False if the epoch is skipped."""
        if not force and epoch % self.interval != 0:
            return False
        for updatable in updatables:
            container = updatable.concentration_container
            for _, subsection in container.topologies():
                pool = container.get_pool(subsection)
                row: Dict[str, object] = {
                    "epoch": epoch,
                    "time": time,
                    "updatable": updatable.identifier,
                    "subsection": subsection.identifier,
                }
                for entity, value in sorted(pool.items(), key=lambda item: item[0].identifier):
                    row[entity.identifier] = value
                self.rows.append(row)
        return True

    def series(
        self,
        updatable: Updatable | str,
        subsection: Subsection | str,
        entity: ChemicalEntity | str,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Times and values of one entity in one subsection of one updatable."""
        updatable_id = updatable if isinstance(updatable, str) else updatable.identifier
        subsection_id = subsection if isinstance(subsection, str) else subsection.identifier
        entity_id = entity if isinstance(entity, str) else entity.identifier
        selected = [
            row for row in self.rows
            if row["updatable"] == updatable_id and row["subsection"] == subsection_id
        ]
        times = np.array([row["time"] for row in selected], dtype=float)
        values = np.array([row.get(entity_id, 0.0) for row in selected], dtype=float)
        return times, values

    def entity_ids(self) -> Sequence[str]:
        ids: List[str] = []
        for row in self.rows:
            for key in row:
                if key not in ("epoch", "time", "updatable", "subsection") and key not in ids:
                    ids.append(key)
        return ids

    def save(self, path: str | pathlib.Path) -> None:
        save_trajectory_csv(self.rows, path)
        logger.info("Wrote %d trajectory rows to %s", len(self.rows), path)

    def clear(self) -> None:
        self.rows.clear()

    def __len__(self) -> int:
        return len(self.rows)
