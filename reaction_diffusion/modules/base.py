"""Module contract for concentration based behaviour.

A module turns one concentration snapshot into a list of
:class:`ConcentrationDelta`. It does not know about time stepping: its
update scope drives the full and half step calculations and tells the
module which scaling of its rate constants to use via ``supplier.half_step``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Type

from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.features import Feature, FeatureManager, ScalableFeature
from reaction_diffusion.models.updatable import Updatable
from reaction_diffusion.modules.scopes import (
    DependentUpdate,
    HalfStepFallback,
    IndependentUpdate,
    LocalError,
    SemiDependentUpdate,
    UpdateScope,
)

logger = logging.getLogger(__name__)

DEFAULT_NEGLIGENCE_CUTOFF = 1e-100
DEFAULT_INSTABILITY_CUTOFF = 100.0
DEFAULT_RELATIVE_ERROR_EPSILON = 1e-100


class ScopeKind(Enum):
    """How much cross-updatable state a module needs for its error estimate."""
    INDEPENDENT = "independent"
    DEPENDENT = "dependent"
    SEMI_DEPENDENT = "semi_dependent"


@dataclass
class CalculationState:
    """What the module is currently asked to compute."""
    current_updatable: Optional[Updatable] = None
    half_step: bool = False


def create_scope(
    kind: ScopeKind,
    module: "ConcentrationModule",
    fallback: HalfStepFallback = HalfStepFallback.LIVE,
) -> UpdateScope:
    if kind is ScopeKind.INDEPENDENT:
        return IndependentUpdate(module)
    if kind is ScopeKind.DEPENDENT:
        return DependentUpdate(module)
    if kind is ScopeKind.SEMI_DEPENDENT:
        return SemiDependentUpdate(module, fallback=fallback)
    raise ValueError(f"Unknown scope kind: {kind}")


class ConcentrationModule(ABC):
    """Base class of all modules that change concentrations.

    Subclasses implement :meth:`calculate_deltas` and usually override
    :meth:`application_condition`. The scope kind is fixed per class but may
    be overridden per instance.
    """

    scope_kind: ScopeKind = ScopeKind.INDEPENDENT

    def __init__(
        self,
        identifier: Optional[str] = None,
        scope_kind: Optional[ScopeKind] = None,
        application_condition: Optional[Callable[[Updatable], bool]] = None,
    ) -> None:
        self.identifier = identifier or type(self).__name__
        if scope_kind is not None:
            self.scope_kind = scope_kind
        self.supplier = CalculationState()
        self.feature_manager = FeatureManager()
        self.entity_features: Dict[ChemicalEntity, FeatureManager] = {}
        self.referenced_entities: Set[ChemicalEntity] = set()
        self.negligence_cutoff = DEFAULT_NEGLIGENCE_CUTOFF
        self.instability_cutoff = DEFAULT_INSTABILITY_CUTOFF
        self.relative_error_epsilon = DEFAULT_RELATIVE_ERROR_EPSILON
        self._condition = application_condition
        self.scope = create_scope(self.scope_kind, self)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    def calculate_deltas(self, container: ConcentrationContainer) -> List[ConcentrationDelta]:
        """Deltas for the updatable in ``supplier.current_updatable`` given ``container``."""

    def application_condition(self, updatable: Updatable) -> bool:
        if self._condition is None:
            return True
        return bool(self._condition(updatable))

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def set_feature(self, feature: Feature, entity: Optional[ChemicalEntity] = None) -> None:
        if entity is None:
            self.feature_manager.set_feature(feature)
        else:
            self.entity_features.setdefault(entity, FeatureManager()).set_feature(feature)

    def get_feature(self, feature_class: Type[Feature], entity: Optional[ChemicalEntity] = None) -> Feature:
        manager = self.feature_manager if entity is None else self.entity_features.get(entity)
        if manager is None:
            raise KeyError(f"No features annotated for {entity}")
        return manager.get_feature(feature_class)

    def get_scaled_feature(self, feature_class: Type[ScalableFeature], entity: Optional[ChemicalEntity] = None) -> float:
        """Rate constant scaled to the full or the half time step, depending on the current pass."""
        feature = self.get_feature(feature_class, entity)
        return feature.get_scaled(self.supplier.half_step)

    def require_feature(self, feature_class: Type[Feature]) -> None:
        self.feature_manager.required_features.add(feature_class)

    def check_features(self) -> bool:
        complete = self.feature_manager.check_features()
        for entity, manager in self.entity_features.items():
            if not manager.check_features():
                logger.warning("Features of %s in module %s are incomplete.", entity, self.identifier)
                complete = False
        return complete

    def rescale(self, time_step: float) -> None:
        self.feature_manager.rescale(time_step)
        for manager in self.entity_features.values():
            manager.rescale(time_step)

    # ------------------------------------------------------------------
    # Numerics
    # ------------------------------------------------------------------

    def configure_numerics(
        self,
        negligence_cutoff: float = DEFAULT_NEGLIGENCE_CUTOFF,
        instability_cutoff: float = DEFAULT_INSTABILITY_CUTOFF,
        relative_error_epsilon: float = DEFAULT_RELATIVE_ERROR_EPSILON,
        half_step_fallback: HalfStepFallback = HalfStepFallback.LIVE,
    ) -> None:
        self.negligence_cutoff = negligence_cutoff
        self.instability_cutoff = instability_cutoff
        self.relative_error_epsilon = relative_error_epsilon
        self.scope = create_scope(self.scope_kind, self, fallback=half_step_fallback)

    def delta_is_valid(self, delta: ConcentrationDelta) -> bool:
        """A delta counts if it is non-zero and above the negligence cutoff."""
        return delta.value != 0.0 and abs(delta.value) > self.negligence_cutoff

    @property
    def largest_local_error(self) -> LocalError:
        return self.scope.largest_local_error

    def add_referenced_entities(self, entities: Iterable[ChemicalEntity]) -> None:
        self.referenced_entities.update(entities)

    def __str__(self) -> str:
        return self.identifier

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier!r}, scope={self.scope_kind.value})"
