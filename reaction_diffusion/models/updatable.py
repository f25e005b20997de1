"""Spatial carriers of concentration state.

An :class:`Updatable` owns exactly one :class:`ConcentrationContainer` for
its whole lifetime. Modules queue potential deltas on it during an epoch;
the scheduler applies them once the epoch is accepted, or discards them.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

from reaction_diffusion.models.concentrations import ConcentrationContainer, SectionKey
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment

logger = logging.getLogger(__name__)

# Below this number of molecules a negative result is considered round-off.
CLAMP_MOLECULE_FRACTION = 0.1


class Updatable:
    """Anything owning a concentration container (graph node or vesicle).

    Hashing and equality are by identity: two regions with the same
    identifier are still different regions.
    """

    def __init__(self, identifier: str, container: ConcentrationContainer) -> None:
        if not identifier:
            raise ValueError("Updatable identifier must be non-empty")
        self.identifier = identifier
        self._container = container
        self._potential_deltas: List[ConcentrationDelta] = []
        self.concentration_fixed = False
        self.observed = False

    @property
    def concentration_container(self) -> ConcentrationContainer:
        return self._container

    def get_concentration(self, key: SectionKey, entity: ChemicalEntity) -> float:
        return self._container.get(key, entity)

    def set_concentration(self, key: SectionKey, entity: ChemicalEntity, concentration: float) -> None:
        self._container.set(key, entity, concentration)

    @property
    def referenced_entities(self) -> Set[ChemicalEntity]:
        return self._container.referenced_entities

    # ------------------------------------------------------------------
    # Pending deltas
    # ------------------------------------------------------------------

    @property
    def potential_deltas(self) -> List[ConcentrationDelta]:
        return list(self._potential_deltas)

    def add_potential_delta(self, delta: ConcentrationDelta) -> None:
        if self.concentration_fixed:
            return
        self._potential_deltas.append(delta)

    def clear_potential_concentration_deltas(self) -> None:
        self._potential_deltas.clear()

    def apply_potential_deltas(self, environment: Environment) -> None:
        """Commit all queued deltas to the live container and clear the queue.

        A result below zero is clamped to zero when the responsible delta is
        worth less than a tenth of a molecule.
        """
        for delta in self._potential_deltas:
            previous = self._container.get(delta.subsection, delta.entity)
            updated = previous + delta.value
            if updated < 0.0:
                molecules = environment.concentration_to_molecules(abs(updated))
                if molecules < CLAMP_MOLECULE_FRACTION:
                    updated = 0.0
                else:
                    logger.warning(
                        "Concentration of %s in %s:%s became negative (%g); the time step may be too large.",
                        delta.entity,
                        self.identifier,
                        delta.subsection,
                        updated,
                    )
            logger.debug(
                "Setting %s in %s:%s from %g to %g",
                delta.entity,
                self.identifier,
                delta.subsection,
                previous,
                updated,
            )
            self._container.set(delta.subsection, delta.entity, updated)
        self._potential_deltas.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier!r})"


class AutomatonNode(Updatable):
    """Node of the spatial graph; neighbourhood is symmetric."""

    def __init__(self, identifier: str, container: ConcentrationContainer) -> None:
        super().__init__(identifier, container)
        self._neighbours: List[AutomatonNode] = []

    @property
    def neighbours(self) -> List["AutomatonNode"]:
        return list(self._neighbours)

    def add_neighbour(self, other: "AutomatonNode") -> None:
        if other is self:
            raise ValueError(f"Node {self.identifier} cannot neighbour itself")
        if other not in self._neighbours:
            self._neighbours.append(other)
        if self not in other._neighbours:
            other._neighbours.append(self)


class Vesicle(Updatable):
    """Mobile region; exchanges material with the node it currently sits in."""

    def __init__(
        self,
        identifier: str,
        container: ConcentrationContainer,
        node: Optional[AutomatonNode] = None,
    ) -> None:
        super().__init__(identifier, container)
        self.node = node

    def move_to(self, node: Optional[AutomatonNode]) -> None:
        self.node = node
