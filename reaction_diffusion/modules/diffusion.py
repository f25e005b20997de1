"""Free diffusion between neighbouring automaton nodes."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.features import Diffusivity
from reaction_diffusion.models.updatable import AutomatonNode, Updatable
from reaction_diffusion.modules.base import ConcentrationModule, ScopeKind

logger = logging.getLogger(__name__)


class Diffusion(ConcentrationModule):
    """Exchange of entities between a node and its neighbours (Fick's first law).

    For every non-membrane subsection of a node, the delta of an entity is
    ``D * dt * sum(c_neighbour - c_node)``, where the neighbour concentration
    is read from the subsection bound to the same topology in the neighbour.
    During the half pass the neighbour values come from the scope's half-step
    containers, so the module needs the dependent scope.
    """

    scope_kind = ScopeKind.DEPENDENT

    def __init__(
        self,
        diffusivities: Mapping[ChemicalEntity, float | Diffusivity],
        identifier: Optional[str] = None,
    ) -> None:
        super().__init__(identifier or "Diffusion")
        if not diffusivities:
            raise ValueError("Diffusion needs at least one entity")
        for entity, diffusivity in diffusivities.items():
            if not isinstance(diffusivity, Diffusivity):
                diffusivity = Diffusivity(diffusivity)
            if diffusivity.value < 0:
                raise ValueError(f"Diffusivity of {entity} must be non-negative")
            self.set_feature(diffusivity, entity)
        self.add_referenced_entities(diffusivities)

    @property
    def entities(self) -> List[ChemicalEntity]:
        return list(self.entity_features)

    def application_condition(self, updatable: Updatable) -> bool:
        return isinstance(updatable, AutomatonNode) and super().application_condition(updatable)

    def _neighbour_container(self, neighbour: AutomatonNode) -> ConcentrationContainer:
        if self.supplier.half_step:
            return self.scope.get_half_step_concentration(neighbour)
        return neighbour.concentration_container

    def calculate_deltas(self, container: ConcentrationContainer) -> List[ConcentrationDelta]:
        node = self.supplier.current_updatable
        if not isinstance(node, AutomatonNode):
            return []
        neighbours = [(n, self._neighbour_container(n)) for n in node.neighbours]
        deltas: List[ConcentrationDelta] = []
        for topology, subsection in container.topologies():
            if subsection.membrane:
                continue
            for entity in self.entities:
                deltas.extend(self._entity_deltas(container, topology, subsection, entity, neighbours))
        return deltas

    def _entity_deltas(self, container, topology, subsection, entity, neighbours) -> Iterable[ConcentrationDelta]:
        concentration = container.get(subsection, entity)
        gradient = 0.0
        for _, other in neighbours:
            if other.get_subsection(topology) is None:
                continue
            gradient += other.get(topology, entity) - concentration
        if gradient == 0.0:
            return []
        rate = self.get_scaled_feature(Diffusivity, entity)
        return [ConcentrationDelta(subsection, entity, rate * gradient)]
