"""Update scopes: full step, half step and local error of one module.

Every scope runs the same five phases for its module:

1. full pass against the live containers (``half_step = False``)
2. half-step projection: copy of the live container with every touched
   entry advanced by half of its full delta
3. half pass against the projected containers (``half_step = True``)
4. local error ``|full - 2*half| / max(|full|, eps)``, largest one kept
5. cleanup of the full and half delta tables

The scopes differ in how many updatables share one projection. Accepted
deltas (twice the half-step delta) are queued on the updatables; applying
or discarding them is up to the scheduler.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Dict, List, Optional, Sequence, Set

from reaction_diffusion.exceptions import (
    MissingHalfStepError,
    NumericalInstabilityError,
    ScopeContractError,
)
from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.deltas import ConcentrationDeltaIdentifier, DeltaTable
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.sections import Subsection
from reaction_diffusion.models.updatable import Updatable

if TYPE_CHECKING:
    from reaction_diffusion.modules.base import CalculationState, ConcentrationModule

logger = logging.getLogger(__name__)


class HalfStepFallback(Enum):
    """What a semi dependent scope returns for an updatable without half-step container.

    LIVE assumes that an updatable without full delta is unchanged at the
    half step and hands out its live container. STRICT treats the request
    as a wiring error.
    """
    LIVE = "live"
    STRICT = "strict"


@dataclass(frozen=True)
class LocalError:
    """Largest relative deviation between full and doubled half step delta."""
    updatable: Optional[Updatable]
    subsection: Optional[Subsection]
    entity: Optional[ChemicalEntity]
    value: float

    EMPTY: ClassVar["LocalError"]

    def is_empty(self) -> bool:
        return self.updatable is None

    def __str__(self) -> str:
        if self.is_empty():
            return "no local error"
        return f"{self.value:.6g} ({self.entity} in {self.updatable.identifier}:{self.subsection})"


LocalError.EMPTY = LocalError(None, None, None, 0.0)


def larger_error(first: LocalError, second: LocalError) -> LocalError:
    if first.is_empty():
        return second
    if second.is_empty():
        return first
    return second if second.value > first.value else first


class UpdateScope(ABC):
    """Drives the two-pass delta computation of one module."""

    def __init__(self, module: "ConcentrationModule") -> None:
        self.module = module
        self.full_deltas = DeltaTable()
        self.half_deltas = DeltaTable()
        self.largest_local_error = LocalError.EMPTY
        self.local_errors: Dict[Updatable, LocalError] = {}

    @property
    def supplier(self) -> "CalculationState":
        return self.module.supplier

    def process_all_updatables(self, updatables: Sequence[Updatable]) -> LocalError:
        """Run the module for every applicable updatable and return the largest error."""
        self.largest_local_error = LocalError.EMPTY
        self.local_errors = {}
        applicable = [updatable for updatable in updatables if self.module.application_condition(updatable)]
        if applicable:
            self._process(applicable)
        return self.largest_local_error

    @abstractmethod
    def _process(self, updatables: List[Updatable]) -> None:
        """Run all phases for the applicable updatables."""

    @abstractmethod
    def process_updatable(self, updatable: Updatable) -> None:
        """Run all phases for a single updatable."""

    @abstractmethod
    def get_half_step_concentration(self, updatable: Updatable) -> ConcentrationContainer:
        """Container a module should read during the half pass for ``updatable``."""

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def determine_full_deltas(self, updatable: Updatable, container: ConcentrationContainer) -> None:
        self.supplier.current_updatable = updatable
        self.supplier.half_step = False
        for delta in self.module.calculate_deltas(container):
            if not self.module.delta_is_valid(delta):
                continue
            identifier = ConcentrationDeltaIdentifier.of(delta, updatable)
            self._check_identifier(identifier, updatable)
            self.full_deltas.put(identifier, delta)

    def determine_half_deltas(self, updatable: Updatable, container: ConcentrationContainer) -> None:
        self.supplier.current_updatable = updatable
        self.supplier.half_step = True
        for delta in self.module.calculate_deltas(container):
            if not self.module.delta_is_valid(delta):
                continue
            identifier = ConcentrationDeltaIdentifier.of(delta, updatable)
            self._check_identifier(identifier, updatable)
            self.half_deltas.put(identifier, delta)

    def _check_identifier(self, identifier: ConcentrationDeltaIdentifier, updatable: Updatable) -> None:
        """Hook for scopes that restrict which updatables a delta may name."""

    def project_half_step(self, updatable: Updatable) -> ConcentrationContainer:
        """Live container of ``updatable`` advanced by half of each of its full deltas."""
        live = updatable.concentration_container
        container = live.full_copy()
        for delta in self.full_deltas.deltas_for(updatable):
            if live.get_topology(delta.subsection) is None:
                raise ScopeContractError(
                    f"Module {self.module} produced a delta for subsection {delta.subsection}, "
                    f"which is not part of {updatable.identifier}"
                )
            container.set(
                delta.subsection,
                delta.entity,
                live.get(delta.subsection, delta.entity) + 0.5 * delta.value,
            )
        return container

    def determine_local_error(self, updatable: Optional[Updatable] = None) -> LocalError:
        """Largest relative error over all entries with a full and a half delta.

        Restricted to the entries of ``updatable`` if given.
        """
        largest = LocalError.EMPTY
        for identifier, full in self.full_deltas.items():
            if updatable is not None and identifier.updatable is not updatable:
                continue
            half = self.half_deltas.get(identifier)
            if half is None:
                continue
            error = abs(full.value - 2.0 * half.value) / max(abs(full.value), self.module.relative_error_epsilon)
            if error > self.module.instability_cutoff:
                raise NumericalInstabilityError(str(self.module), full.value, half.value, error)
            largest = larger_error(
                largest,
                LocalError(identifier.updatable, identifier.subsection, identifier.entity, error),
            )
        return largest

    def record_local_error(self, updatable: Updatable, error: LocalError) -> None:
        if error.is_empty():
            return
        self.local_errors[updatable] = error
        self.largest_local_error = larger_error(self.largest_local_error, error)

    def queue_accepted_deltas(self) -> None:
        """Queue twice the half-step deltas on their updatables (midpoint estimate)."""
        for identifier, delta in self.half_deltas.items():
            identifier.updatable.add_potential_delta(delta.multiply(2.0))

    def clear(self) -> None:
        self.full_deltas.clear()
        self.half_deltas.clear()
        self.supplier.current_updatable = None
        self.supplier.half_step = False


class IndependentUpdate(UpdateScope):
    """Scope for modules that only read the container of the updatable in flight."""

    def __init__(self, module: "ConcentrationModule") -> None:
        super().__init__(module)
        self._half_step_container: Optional[ConcentrationContainer] = None

    def _process(self, updatables: List[Updatable]) -> None:
        for updatable in updatables:
            self.process_updatable(updatable)

    def process_updatable(self, updatable: Updatable) -> None:
        try:
            self.determine_full_deltas(updatable, updatable.concentration_container)
            if not self.full_deltas:
                return
            self._half_step_container = self.project_half_step(updatable)
            self.determine_half_deltas(updatable, self._half_step_container)
            self.record_local_error(updatable, self.determine_local_error())
            self.queue_accepted_deltas()
        finally:
            self.clear()

    def _check_identifier(self, identifier: ConcentrationDeltaIdentifier, updatable: Updatable) -> None:
        if identifier.updatable is not updatable:
            raise ScopeContractError(
                f"Module {self.module} produced a delta for {identifier.updatable.identifier} "
                f"while processing {updatable.identifier}; use a dependent scope instead"
            )

    def get_half_step_concentration(self, updatable: Updatable) -> ConcentrationContainer:
        if updatable is not self.supplier.current_updatable or self._half_step_container is None:
            raise ScopeContractError(
                f"Module {self.module} requested half step concentrations of {updatable.identifier}, "
                f"but an independent scope only serves the updatable currently processed"
            )
        return self._half_step_container

    def clear(self) -> None:
        super().clear()
        self._half_step_container = None


class DependentUpdate(UpdateScope):
    """Scope for modules whose deltas depend on the state of other updatables.

    All full deltas are computed before the first half-step container is
    built, so every projection reflects the complete full step.
    """

    def __init__(self, module: "ConcentrationModule") -> None:
        super().__init__(module)
        self.half_step_containers: Dict[Updatable, ConcentrationContainer] = {}
        self._processed: Set[Updatable] = set()

    def process_updatable(self, updatable: Updatable) -> None:
        self._process([updatable])

    def _process(self, updatables: List[Updatable]) -> None:
        try:
            for updatable in updatables:
                self.determine_full_deltas(updatable, updatable.concentration_container)
                self._processed.add(updatable)
            self.supplier.current_updatable = None

            for updatable in self.full_deltas.updatables():
                self.half_step_containers[updatable] = self.project_half_step(updatable)

            for updatable in updatables:
                container = self.half_step_containers.get(updatable)
                if container is None:
                    continue
                self.determine_half_deltas(updatable, container)

            for updatable in self.full_deltas.updatables():
                self.record_local_error(updatable, self.determine_local_error(updatable))
            self.queue_accepted_deltas()
        finally:
            self.clear()

    def get_half_step_concentration(self, updatable: Updatable) -> ConcentrationContainer:
        container = self.half_step_containers.get(updatable)
        if container is not None:
            return container
        if updatable in self._processed:
            # processed without any delta: half step equals full step
            return updatable.concentration_container
        raise MissingHalfStepError(
            f"Module {self.module} requested half step concentrations of {updatable.identifier}, "
            f"which was not part of the full step calculation"
        )

    def clear(self) -> None:
        super().clear()
        self.half_step_containers.clear()
        self._processed.clear()


class SemiDependentUpdate(UpdateScope):
    """Scope for modules that touch a small set of updatables per primary updatable.

    Typical case is transport between a vesicle and the node it sits in.
    """

    def __init__(self, module: "ConcentrationModule", fallback: HalfStepFallback = HalfStepFallback.LIVE) -> None:
        super().__init__(module)
        self.fallback = fallback
        self.half_step_containers: Dict[Updatable, ConcentrationContainer] = {}

    def _process(self, updatables: List[Updatable]) -> None:
        for updatable in updatables:
            self.process_updatable(updatable)

    def process_updatable(self, updatable: Updatable) -> None:
        try:
            self.determine_full_deltas(updatable, updatable.concentration_container)
            if not self.full_deltas:
                logger.debug("Module %s produced no deltas for %s.", self.module, updatable.identifier)
                return
            for touched in self.full_deltas.updatables():
                self.half_step_containers[touched] = self.project_half_step(touched)
            if updatable not in self.half_step_containers:
                # primary without own deltas still gets a half step container
                self.half_step_containers[updatable] = self.project_half_step(updatable)
            self.determine_half_deltas(updatable, self.half_step_containers[updatable])
            self.record_local_error(updatable, self.determine_local_error())
            self.queue_accepted_deltas()
        finally:
            self.clear()

    def get_half_step_concentration(self, updatable: Updatable) -> ConcentrationContainer:
        container = self.half_step_containers.get(updatable)
        if container is not None:
            return container
        if self.fallback is HalfStepFallback.STRICT:
            raise MissingHalfStepError(
                f"Module {self.module} requested half step concentrations of {updatable.identifier}, "
                f"which received no full step delta"
            )
        logger.debug("No half step concentrations for %s, using live concentrations.", updatable.identifier)
        return updatable.concentration_container

    def clear(self) -> None:
        super().clear()
        self.half_step_containers.clear()

