"""Rate constants scaled to the current time step.

How a rate constant is derived is out of scope; a feature only stores a
per-second value and hands out its full- and half-step scaled versions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Type, TypeVar

logger = logging.getLogger(__name__)

FeatureType = TypeVar("FeatureType", bound="Feature")


@dataclass
class Feature:
    """Named quantity attached to a module or an entity."""
    value: float
    origin: str = "manually annotated"

    def __post_init__(self) -> None:
        self.value = float(self.value)

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass
class ScalableFeature(Feature):
    """Per-second rate that is rescaled whenever the time step changes."""
    scaled: float = field(default=0.0, init=False)
    half_scaled: float = field(default=0.0, init=False)
    time_step: Optional[float] = field(default=None, init=False)

    def scale(self, time_step: float) -> None:
        if time_step <= 0:
            raise ValueError("time_step must be positive")
        self.time_step = float(time_step)
        self.scaled = self.value * self.time_step
        self.half_scaled = self.value * self.time_step * 0.5

    def get_scaled(self, half_step: bool) -> float:
        if self.time_step is None:
            raise RuntimeError(f"{self.name} has not been scaled to a time step yet")
        return self.half_scaled if half_step else self.scaled


class RateConstant(ScalableFeature):
    """First order (or pseudo first order) rate constant in 1/s."""


class BackwardRateConstant(ScalableFeature):
    """Rate constant of the reverse direction of a reversible reaction in 1/s."""


class Diffusivity(ScalableFeature):
    """Diffusion coefficient already divided by the squared node distance (1/s)."""


class MembranePermeability(ScalableFeature):
    """Permeability already divided by the compartment length (1/s)."""


class TurnoverNumber(ScalableFeature):
    """Catalytic constant kcat in 1/s."""


@dataclass
class MichaelisConstant(Feature):
    """Substrate concentration at half maximal velocity (mol/L); not scaled."""


class FeatureManager:
    """Holds the features of one module and tracks which are required."""

    def __init__(self) -> None:
        self._features: Dict[Type[Feature], Feature] = {}
        self.required_features: Set[Type[Feature]] = set()

    def set_feature(self, feature: Feature) -> None:
        self._features[type(feature)] = feature

    def get_feature(self, feature_class: Type[FeatureType]) -> FeatureType:
        for cls, feature in self._features.items():
            if issubclass(cls, feature_class):
                return feature  # type: ignore[return-value]
        raise KeyError(f"Feature {feature_class.__name__} has not been set")

    def has_feature(self, feature_class: Type[Feature]) -> bool:
        return any(issubclass(cls, feature_class) for cls in self._features)

    @property
    def features(self) -> list[Feature]:
        return list(self._features.values())

    def check_features(self) -> bool:
        """Warn about every required feature that has not been set."""
        complete = True
        for feature_class in sorted(self.required_features, key=lambda cls: cls.__name__):
            if not self.has_feature(feature_class):
                logger.warning("Required feature %s has not been set.", feature_class.__name__)
                complete = False
        return complete

    def rescale(self, time_step: float) -> None:
        for feature in self._features.values():
            if isinstance(feature, ScalableFeature):
                feature.scale(time_step)
