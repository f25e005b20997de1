"""Passive transport across the membrane of a vesicle."""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.features import MembranePermeability
from reaction_diffusion.models.sections import Topology
from reaction_diffusion.models.updatable import Updatable, Vesicle
from reaction_diffusion.modules.base import ConcentrationModule, ScopeKind

logger = logging.getLogger(__name__)


class MembraneTransport(ConcentrationModule):
    """Exchange between a vesicle's inner subsection and the node around it.

    The outside concentration is read from the node's container, using the
    subsection the vesicle binds to its OUTER topology (falling back to the
    node's INNER subsection). The flux ``P * dt * (c_out - c_in)`` is added
    to the vesicle and ``volume_ratio`` times the flux is removed from the
    node, so every call names two updatables.
    """

    scope_kind = ScopeKind.SEMI_DEPENDENT

    def __init__(
        self,
        permeabilities: Mapping[ChemicalEntity, float | MembranePermeability],
        volume_ratio: float = 1.0,
        identifier: Optional[str] = None,
    ) -> None:
        super().__init__(identifier or "MembraneTransport")
        if not permeabilities:
            raise ValueError("MembraneTransport needs at least one entity")
        if volume_ratio <= 0:
            raise ValueError("volume_ratio must be positive")
        self.volume_ratio = float(volume_ratio)
        for entity, permeability in permeabilities.items():
            if not isinstance(permeability, MembranePermeability):
                permeability = MembranePermeability(permeability)
            self.set_feature(permeability, entity)
        self.add_referenced_entities(permeabilities)

    @property
    def entities(self) -> List[ChemicalEntity]:
        return list(self.entity_features)

    def application_condition(self, updatable: Updatable) -> bool:
        return (
            isinstance(updatable, Vesicle)
            and updatable.node is not None
            and updatable.concentration_container.inner_subsection is not None
            and super().application_condition(updatable)
        )

    def calculate_deltas(self, container: ConcentrationContainer) -> List[ConcentrationDelta]:
        vesicle = self.supplier.current_updatable
        if not isinstance(vesicle, Vesicle) or vesicle.node is None:
            return []
        node = vesicle.node
        node_container = (
            self.scope.get_half_step_concentration(node) if self.supplier.half_step else node.concentration_container
        )
        inner = container.inner_subsection
        outer = container.outer_subsection or node_container.get_subsection(Topology.INNER)
        if outer is None or node_container.get_topology(outer) is None:
            logger.debug("Vesicle %s has no outer subsection in %s.", vesicle.identifier, node.identifier)
            return []

        deltas: List[ConcentrationDelta] = []
        for entity in self.entities:
            gradient = node_container.get(outer, entity) - container.get(inner, entity)
            if gradient == 0.0:
                continue
            flux = self.get_scaled_feature(MembranePermeability, entity) * gradient
            deltas.append(ConcentrationDelta(inner, entity, flux))
            deltas.append(ConcentrationDelta(outer, entity, -flux * self.volume_ratio, updatable=node))
        return deltas
