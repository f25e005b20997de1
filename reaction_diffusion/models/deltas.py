"""Pending concentration changes and the tables the update scopes keep them in."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.sections import Subsection

if TYPE_CHECKING:
    from reaction_diffusion.models.updatable import Updatable


@dataclass(frozen=True)
class ConcentrationDelta:
    """Proposed signed change of one entity in one subsection.

    ``updatable`` is only set by modules that touch updatables other than the
    one currently processed (e.g. transport between a vesicle and its node);
    otherwise the delta belongs to the updatable in flight.
    """
    subsection: Subsection
    entity: ChemicalEntity
    value: float
    updatable: Optional["Updatable"] = None

    def multiply(self, factor: float) -> "ConcentrationDelta":
        return replace(self, value=self.value * factor)

    def add(self, other: float) -> "ConcentrationDelta":
        return replace(self, value=self.value + other)

    def with_updatable(self, updatable: "Updatable") -> "ConcentrationDelta":
        return replace(self, updatable=updatable)

    def __str__(self) -> str:
        return f"{self.entity}@{self.subsection}: {self.value:+.6g}"


@dataclass(frozen=True)
class ConcentrationDeltaIdentifier:
    """Globally unique key of a delta: (updatable, subsection, entity)."""
    updatable: "Updatable"
    subsection: Subsection
    entity: ChemicalEntity

    @classmethod
    def of(cls, delta: ConcentrationDelta, default_updatable: "Updatable") -> "ConcentrationDeltaIdentifier":
        updatable = delta.updatable if delta.updatable is not None else default_updatable
        return cls(updatable, delta.subsection, delta.entity)


class DeltaTable:
    """Typed delta accumulator: Updatable -> Subsection -> Entity -> Delta.

    Putting a delta for an existing key sums both values, so several delta
    functions of one module may contribute to the same entry.
    """

    def __init__(self) -> None:
        self._table: Dict["Updatable", Dict[Subsection, Dict[ChemicalEntity, ConcentrationDelta]]] = {}

    def put(self, identifier: ConcentrationDeltaIdentifier, delta: ConcentrationDelta) -> None:
        delta = delta.with_updatable(identifier.updatable)
        entities = self._table.setdefault(identifier.updatable, {}).setdefault(identifier.subsection, {})
        existing = entities.get(identifier.entity)
        entities[identifier.entity] = delta if existing is None else existing.add(delta.value)

    def get(self, identifier: ConcentrationDeltaIdentifier) -> Optional[ConcentrationDelta]:
        return (
            self._table.get(identifier.updatable, {})
            .get(identifier.subsection, {})
            .get(identifier.entity)
        )

    def identifiers(self) -> Iterator[ConcentrationDeltaIdentifier]:
        for identifier, _ in self.items():
            yield identifier

    def items(self) -> Iterator[tuple[ConcentrationDeltaIdentifier, ConcentrationDelta]]:
        for updatable, subsections in self._table.items():
            for subsection, entities in subsections.items():
                for entity, delta in entities.items():
                    yield ConcentrationDeltaIdentifier(updatable, subsection, entity), delta

    def updatables(self) -> List["Updatable"]:
        return list(self._table)

    def deltas_for(self, updatable: "Updatable") -> List[ConcentrationDelta]:
        return [
            delta
            for entities in self._table.get(updatable, {}).values()
            for delta in entities.values()
        ]

    def clear(self) -> None:
        self._table.clear()

    def __contains__(self, identifier: object) -> bool:
        if not isinstance(identifier, ConcentrationDeltaIdentifier):
            return False
        return self.get(identifier) is not None

    def __len__(self) -> int:
        return sum(len(entities) for subsections in self._table.values() for entities in subsections.values())

    def __bool__(self) -> bool:
        return len(self) > 0
