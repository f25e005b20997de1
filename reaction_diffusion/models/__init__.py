"""Data model: entities, subsections, concentrations, deltas and updatables."""

from reaction_diffusion.models.concentrations import ConcentrationContainer, ConcentrationPool
from reaction_diffusion.models.deltas import ConcentrationDelta, ConcentrationDeltaIdentifier, DeltaTable
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.graph import AutomatonGraph, linear_graph
from reaction_diffusion.models.sections import Subsection, Topology
from reaction_diffusion.models.updatable import AutomatonNode, Updatable, Vesicle

__all__ = [
    "AutomatonGraph",
    "AutomatonNode",
    "ChemicalEntity",
    "ConcentrationContainer",
    "ConcentrationDelta",
    "ConcentrationDeltaIdentifier",
    "ConcentrationPool",
    "DeltaTable",
    "Environment",
    "Subsection",
    "Topology",
    "Updatable",
    "Vesicle",
    "linear_graph",
]
