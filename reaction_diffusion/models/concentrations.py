"""Concentration storage per updatable.

A :class:`ConcentrationContainer` keeps two synchronized maps:
Topology -> Subsection and Subsection -> ConcentrationPool. Pools are
copied by value, subsections are shared by reference.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Set

from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.sections import Subsection, Topology

SectionKey = Subsection | Topology


class ConcentrationPool:
    """Entity -> concentration map for one subsection."""

    def __init__(self, environment: Environment, values: Optional[Dict[ChemicalEntity, float]] = None) -> None:
        self.environment = environment
        self._values: Dict[ChemicalEntity, float] = dict(values) if values else {}

    def get(self, entity: ChemicalEntity) -> float:
        """Return the stored value or the environment's empty concentration."""
        return self._values.get(entity, self.environment.empty_concentration)

    def set(self, entity: ChemicalEntity, concentration: float) -> None:
        self._values[entity] = float(concentration)

    @property
    def referenced_entities(self) -> Set[ChemicalEntity]:
        return set(self._values)

    def items(self) -> Iterator[tuple[ChemicalEntity, float]]:
        return iter(self._values.items())

    def full_copy(self) -> "ConcentrationPool":
        return ConcentrationPool(self.environment, self._values)

    def zeroed_copy(self) -> "ConcentrationPool":
        pool = ConcentrationPool(self.environment)
        for entity in self._values:
            pool.set(entity, self.environment.empty_concentration)
        return pool

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        content = ", ".join(f"{entity}={value:g}" for entity, value in self._values.items())
        return f"ConcentrationPool({content})"


class ConcentrationContainer:
    """Concentrations of one updatable, organised by topology and subsection."""

    def __init__(self, environment: Environment) -> None:
        self.environment = environment
        self._subsection_topology: Dict[Topology, Subsection] = {}
        self._concentrations: Dict[Subsection, ConcentrationPool] = {}

    # ------------------------------------------------------------------
    # Skeleton
    # ------------------------------------------------------------------

    def initialize_subsection(self, subsection: Subsection, topology: Topology) -> None:
        """Register a subsection under a topology with a fresh, empty pool."""
        self.put_subsection_pool(subsection, topology, ConcentrationPool(self.environment))

    def put_subsection_pool(self, subsection: Subsection, topology: Topology, pool: ConcentrationPool) -> None:
        existing_topology = self.get_topology(subsection)
        if existing_topology is not None and existing_topology != topology:
            raise ValueError(
                f"Subsection {subsection} is already bound to {existing_topology.name} in this container"
            )
        previous = self._subsection_topology.get(topology)
        if previous is not None and previous != subsection:
            # a topology maps to at most one subsection
            del self._concentrations[previous]
        self._subsection_topology[topology] = subsection
        self._concentrations[subsection] = pool

    def remove_subsection(self, subsection: Subsection) -> None:
        topology = self.get_topology(subsection)
        self._concentrations.pop(subsection, None)
        if topology is not None:
            del self._subsection_topology[topology]

    def get_subsection(self, topology: Topology) -> Optional[Subsection]:
        return self._subsection_topology.get(topology)

    def get_topology(self, subsection: Subsection) -> Optional[Topology]:
        for topology, candidate in self._subsection_topology.items():
            if candidate == subsection:
                return topology
        return None

    @property
    def inner_subsection(self) -> Optional[Subsection]:
        return self._subsection_topology.get(Topology.INNER)

    @property
    def outer_subsection(self) -> Optional[Subsection]:
        return self._subsection_topology.get(Topology.OUTER)

    @property
    def membrane_subsection(self) -> Optional[Subsection]:
        return self._subsection_topology.get(Topology.MEMBRANE)

    @property
    def referenced_subsections(self) -> list[Subsection]:
        return list(self._concentrations)

    @property
    def referenced_entities(self) -> Set[ChemicalEntity]:
        entities: Set[ChemicalEntity] = set()
        for pool in self._concentrations.values():
            entities.update(pool.referenced_entities)
        return entities

    def topologies(self) -> Iterator[tuple[Topology, Subsection]]:
        return iter(self._subsection_topology.items())

    def get_pool(self, key: SectionKey) -> Optional[ConcentrationPool]:
        subsection = self._resolve(key)
        if subsection is None:
            return None
        return self._concentrations.get(subsection)

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def _resolve(self, key: SectionKey) -> Optional[Subsection]:
        if isinstance(key, Topology):
            return self._subsection_topology.get(key)
        return key

    def get(self, key: SectionKey, entity: ChemicalEntity) -> float:
        """Concentration of entity in a subsection (or the subsection bound to a topology).

        Unknown subsections and unknown entities read as the empty concentration.
        """
        subsection = self._resolve(key)
        if subsection is None:
            return self.environment.empty_concentration
        pool = self._concentrations.get(subsection)
        if pool is None:
            return self.environment.empty_concentration
        return pool.get(entity)

    def set(self, key: SectionKey, entity: ChemicalEntity, concentration: float) -> None:
        """Overwrite a concentration; the subsection must be registered."""
        subsection = self._resolve(key)
        if subsection is None or subsection not in self._concentrations:
            raise KeyError(f"Subsection {key} is not registered in this container")
        self._concentrations[subsection].set(entity, concentration)

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------

    def full_copy(self) -> "ConcentrationContainer":
        """Same topology/subsection wiring with value-copied pools."""
        container = ConcentrationContainer(self.environment)
        for topology, subsection in self._subsection_topology.items():
            container.put_subsection_pool(subsection, topology, self._concentrations[subsection].full_copy())
        return container

    def empty_copy(self) -> "ConcentrationContainer":
        """Same topology/subsection wiring with fresh, zeroed pools."""
        container = ConcentrationContainer(self.environment)
        for topology, subsection in self._subsection_topology.items():
            container.put_subsection_pool(subsection, topology, self._concentrations[subsection].zeroed_copy())
        return container

    def restore(self, backup: "ConcentrationContainer") -> None:
        """Reset wiring and values to those of ``backup``, usually an earlier ``full_copy``."""
        self._subsection_topology = dict(backup._subsection_topology)
        self._concentrations = {subsection: pool.full_copy() for subsection, pool in backup._concentrations.items()}

    def __repr__(self) -> str:
        parts = [
            f"{topology.name}:{subsection}={self._concentrations[subsection]!r}"
            for topology, subsection in self._subsection_topology.items()
        ]
        return f"ConcentrationContainer({'; '.join(parts)})"
