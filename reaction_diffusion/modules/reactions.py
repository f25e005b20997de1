"""Reactions inside a single subsection of an updatable."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.features import (
    BackwardRateConstant,
    MichaelisConstant,
    RateConstant,
    TurnoverNumber,
)
from reaction_diffusion.models.sections import Topology
from reaction_diffusion.modules.base import ConcentrationModule, ScopeKind

logger = logging.getLogger(__name__)


def _check_stoichiometry(name: str, participants: Mapping[ChemicalEntity, int]) -> Dict[ChemicalEntity, int]:
    checked = {}
    for entity, coefficient in participants.items():
        if int(coefficient) != coefficient or coefficient <= 0:
            raise ValueError(f"Stoichiometric coefficient of {entity} in {name} must be a positive integer")
        checked[entity] = int(coefficient)
    return checked


class Reaction(ConcentrationModule):
    """Base class of reactions; all deltas go to the subsection bound to ``topology``."""

    scope_kind = ScopeKind.INDEPENDENT

    def __init__(
        self,
        substrates: Mapping[ChemicalEntity, int],
        products: Mapping[ChemicalEntity, int],
        topology: Topology = Topology.INNER,
        identifier: Optional[str] = None,
    ) -> None:
        super().__init__(identifier)
        self.substrates = _check_stoichiometry(self.identifier, substrates)
        self.products = _check_stoichiometry(self.identifier, products)
        if not self.substrates and not self.products:
            raise ValueError(f"Reaction {self.identifier} has neither substrates nor products")
        self.topology = topology
        self.add_referenced_entities(self.substrates)
        self.add_referenced_entities(self.products)

    def velocity(self, container: ConcentrationContainer) -> float:
        raise NotImplementedError

    def calculate_deltas(self, container: ConcentrationContainer) -> List[ConcentrationDelta]:
        subsection = container.get_subsection(self.topology)
        if subsection is None:
            return []
        velocity = self.velocity(container)
        if velocity == 0.0:
            return []
        deltas = [
            ConcentrationDelta(subsection, entity, -coefficient * velocity)
            for entity, coefficient in self.substrates.items()
        ]
        deltas.extend(
            ConcentrationDelta(subsection, entity, coefficient * velocity)
            for entity, coefficient in self.products.items()
        )
        return deltas

    def __str__(self) -> str:
        left = " + ".join(f"{n if n > 1 else ''}{e}" for e, n in self.substrates.items())
        right = " + ".join(f"{n if n > 1 else ''}{e}" for e, n in self.products.items())
        return f"{self.identifier}: {left} -> {right}"


class MassActionReaction(Reaction):
    """(Reversible) mass action kinetics.

    v = kf * prod(S_i ** n_i) - kb * prod(P_j ** m_j), with kf and kb scaled
    to the current (half) time step.
    """

    def __init__(
        self,
        substrates: Mapping[ChemicalEntity, int],
        products: Mapping[ChemicalEntity, int],
        forward_rate: float,
        backward_rate: Optional[float] = None,
        topology: Topology = Topology.INNER,
        identifier: Optional[str] = None,
    ) -> None:
        super().__init__(substrates, products, topology, identifier)
        self.set_feature(RateConstant(forward_rate))
        self.require_feature(RateConstant)
        self.reversible = backward_rate is not None
        if self.reversible:
            self.set_feature(BackwardRateConstant(backward_rate))
            self.require_feature(BackwardRateConstant)

    def velocity(self, container: ConcentrationContainer) -> float:
        forward = self.get_scaled_feature(RateConstant)
        for entity, coefficient in self.substrates.items():
            forward *= container.get(self.topology, entity) ** coefficient
        if not self.reversible:
            return forward
        backward = self.get_scaled_feature(BackwardRateConstant)
        for entity, coefficient in self.products.items():
            backward *= container.get(self.topology, entity) ** coefficient
        return forward - backward


class MichaelisMentenReaction(Reaction):
    """Irreversible enzyme catalysed conversion, v = kcat * E * S / (Km + S)."""

    def __init__(
        self,
        enzyme: ChemicalEntity,
        substrate: ChemicalEntity,
        products: Mapping[ChemicalEntity, int],
        michaelis_constant: float,
        turnover_number: float,
        topology: Topology = Topology.INNER,
        identifier: Optional[str] = None,
    ) -> None:
        super().__init__({substrate: 1}, products, topology, identifier)
        if michaelis_constant <= 0:
            raise ValueError("michaelis_constant must be positive")
        self.enzyme = enzyme
        self.substrate = substrate
        self.add_referenced_entities([enzyme])
        self.set_feature(MichaelisConstant(michaelis_constant))
        self.set_feature(TurnoverNumber(turnover_number))
        self.require_feature(MichaelisConstant)
        self.require_feature(TurnoverNumber)

    def velocity(self, container: ConcentrationContainer) -> float:
        enzyme = container.get(self.topology, self.enzyme)
        substrate = container.get(self.topology, self.substrate)
        if enzyme <= 0.0 or substrate <= 0.0:
            return 0.0
        km = self.get_feature(MichaelisConstant).value
        kcat = self.get_scaled_feature(TurnoverNumber)
        return kcat * enzyme * substrate / (km + substrate)
