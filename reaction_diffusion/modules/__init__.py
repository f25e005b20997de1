"""Concentration modules and the update scopes that drive them."""

from reaction_diffusion.modules.base import CalculationState, ConcentrationModule, ScopeKind
from reaction_diffusion.modules.diffusion import Diffusion
from reaction_diffusion.modules.membrane import MembraneTransport
from reaction_diffusion.modules.reactions import MassActionReaction, MichaelisMentenReaction
from reaction_diffusion.modules.scopes import (
    DependentUpdate,
    HalfStepFallback,
    IndependentUpdate,
    LocalError,
    SemiDependentUpdate,
    UpdateScope,
)

__all__ = [
    "CalculationState",
    "ConcentrationModule",
    "DependentUpdate",
    "Diffusion",
    "HalfStepFallback",
    "IndependentUpdate",
    "LocalError",
    "MassActionReaction",
    "MembraneTransport",
    "MichaelisMentenReaction",
    "ScopeKind",
    "SemiDependentUpdate",
    "UpdateScope",
]
