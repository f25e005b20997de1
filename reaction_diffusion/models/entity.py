"""Chemical species identity.

The core never looks inside an entity; it only needs a hashable key.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChemicalEntity:
    """Opaque chemical species used as a concentration key."""
    identifier: str
    name: str | None = None

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("ChemicalEntity identifier must be non-empty")

    def __str__(self) -> str:
        return self.name or self.identifier
