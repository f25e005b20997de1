"""Injected provider of environment-wide constants.

Replaces a global unit registry: every container and the scheduler receive
the same :class:`Environment` instance explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass

AVOGADRO = 6.02214076e23  # mol^-1


@dataclass(frozen=True)
class Environment:
    """Constants shared by all concentration containers of a simulation.

    empty_concentration is returned for every entity that was never set.
    subsection_volume (litres) converts molecule counts to molar concentrations.
    """
    empty_concentration: float = 0.0
    concentration_unit: str = "mol/L"
    subsection_volume: float = 1e-15

    def __post_init__(self) -> None:
        if self.subsection_volume <= 0:
            raise ValueError("subsection_volume must be positive")
        if not self.concentration_unit:
            raise ValueError("concentration_unit must be non-empty")

    def molecules_to_concentration(self, molecules: float) -> float:
        """Concentration (mol/L) of a given number of molecules in one subsection."""
        return molecules / (AVOGADRO * self.subsection_volume)

    def concentration_to_molecules(self, concentration: float) -> float:
        """Number of molecules represented by a concentration in one subsection."""
        return concentration * AVOGADRO * self.subsection_volume
