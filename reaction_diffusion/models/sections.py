"""Topological roles and physical compartments.

A container maps each :class:`Topology` to at most one :class:`Subsection`.
Several containers may share the same subsection object.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Topology(Enum):
    """Role of a compartment relative to the geometry of a region."""
    INNER = "inner"
    OUTER = "outer"
    MEMBRANE = "membrane"


@dataclass(frozen=True)
class Subsection:
    """Named physical compartment holding one concentration pool per container."""
    identifier: str
    membrane: bool = False

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("Subsection identifier must be non-empty")

    def __str__(self) -> str:
        return self.identifier
