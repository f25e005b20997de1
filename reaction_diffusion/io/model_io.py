"""Build a :class:`Simulation` from a YAML model description.

Layout of a model file::

    entities: [{id: A, name: glucose}, B]
    subsections: [{id: cytoplasm}, {id: lumen}, {id: vesicle_membrane, membrane: true}]
    nodes:
      - id: n0
        subsections: {inner: cytoplasm}
        concentrations: {cytoplasm: {A: 1.0}}
        fixed: false
        observed: true
    edges: [[n0, n1]]
    vesicles:
      - id: v0
        node: n0
        subsections: {inner: lumen, outer: cytoplasm}
    modules:
      - type: diffusion
        diffusivity: {A: 0.5}
"""

from __future__ import annotations

import logging
import pathlib
from typing import Any, Callable, Dict, Mapping

from reaction_diffusion.config.simulation_config import SimulationConfig
from reaction_diffusion.io.config_io import _require, load_yaml_mapping
from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.sections import Subsection, Topology
from reaction_diffusion.models.updatable import AutomatonNode, Updatable, Vesicle
from reaction_diffusion.modules.base import ConcentrationModule
from reaction_diffusion.modules.diffusion import Diffusion
from reaction_diffusion.modules.membrane import MembraneTransport
from reaction_diffusion.modules.reactions import MassActionReaction, MichaelisMentenReaction
from reaction_diffusion.simulation import Simulation, environment_from_config

logger = logging.getLogger(__name__)


class ModelContext:
    """Lookup tables for the identifiers used inside one model file."""

    def __init__(self, environment: Environment) -> None:
        self.environment = environment
        self.entities: Dict[str, ChemicalEntity] = {}
        self.subsections: Dict[str, Subsection] = {}

    def entity(self, identifier: Any) -> ChemicalEntity:
        try:
            return self.entities[str(identifier)]
        except KeyError:
            raise ValueError(f"Unknown entity: {identifier}") from None

    def subsection(self, identifier: Any) -> Subsection:
        try:
            return self.subsections[str(identifier)]
        except KeyError:
            raise ValueError(f"Unknown subsection: {identifier}") from None

    def entity_map(self, raw: Mapping[str, Any], label: str) -> Dict[ChemicalEntity, Any]:
        if not isinstance(raw, dict):
            raise ValueError(f"{label} must be a mapping of entity to value")
        return {self.entity(key): value for key, value in raw.items()}


def _topology(value: Any) -> Topology:
    try:
        return Topology(str(value).lower())
    except ValueError:
        raise ValueError(f"Unknown topology: {value}") from None


def _parse_entities(raw: Any, context: ModelContext) -> None:
    for item in raw or []:
        if isinstance(item, dict):
            entity = ChemicalEntity(str(_require(item, "id")), item.get("name"))
        else:
            entity = ChemicalEntity(str(item))
        if entity.identifier in context.entities:
            raise ValueError(f"Duplicate entity identifier: {entity.identifier}")
        context.entities[entity.identifier] = entity


def _parse_subsections(raw: Any, context: ModelContext) -> None:
    for item in raw or []:
        if isinstance(item, dict):
            subsection = Subsection(str(_require(item, "id")), bool(item.get("membrane", False)))
        else:
            subsection = Subsection(str(item))
        if subsection.identifier in context.subsections:
            raise ValueError(f"Duplicate subsection identifier: {subsection.identifier}")
        context.subsections[subsection.identifier] = subsection


def _build_container(raw: Mapping[str, Any], context: ModelContext) -> ConcentrationContainer:
    container = ConcentrationContainer(context.environment)
    sections = _require(raw, "subsections")
    if not isinstance(sections, dict) or not sections:
        raise ValueError(f"subsections of {raw.get('id')} must be a non-empty topology mapping")
    for topology, subsection in sections.items():
        container.initialize_subsection(context.subsection(subsection), _topology(topology))
    for subsection, values in (raw.get("concentrations") or {}).items():
        for entity, value in context.entity_map(values, "concentrations").items():
            if float(value) < 0:
                raise ValueError(f"Initial concentration of {entity} in {subsection} must be non-negative")
            container.set(context.subsection(subsection), entity, float(value))
    return container


def _apply_flags(updatable: Updatable, raw: Mapping[str, Any]) -> None:
    updatable.concentration_fixed = bool(raw.get("fixed", False))
    updatable.observed = bool(raw.get("observed", False))


def _diffusion(raw: Mapping[str, Any], context: ModelContext) -> ConcentrationModule:
    diffusivities = context.entity_map(_require(raw, "diffusivity"), "diffusivity")
    return Diffusion({e: float(v) for e, v in diffusivities.items()}, identifier=raw.get("id"))


def _mass_action(raw: Mapping[str, Any], context: ModelContext) -> ConcentrationModule:
    backward = raw.get("backward_rate")
    return MassActionReaction(
        substrates=context.entity_map(raw.get("substrates") or {}, "substrates"),
        products=context.entity_map(raw.get("products") or {}, "products"),
        forward_rate=float(_require(raw, "forward_rate")),
        backward_rate=float(backward) if backward is not None else None,
        topology=_topology(raw.get("topology", "inner")),
        identifier=raw.get("id"),
    )


def _michaelis_menten(raw: Mapping[str, Any], context: ModelContext) -> ConcentrationModule:
    return MichaelisMentenReaction(
        enzyme=context.entity(_require(raw, "enzyme")),
        substrate=context.entity(_require(raw, "substrate")),
        products=context.entity_map(raw.get("products") or {}, "products"),
        michaelis_constant=float(_require(raw, "km")),
        turnover_number=float(_require(raw, "kcat")),
        topology=_topology(raw.get("topology", "inner")),
        identifier=raw.get("id"),
    )


def _membrane_transport(raw: Mapping[str, Any], context: ModelContext) -> ConcentrationModule:
    permeabilities = context.entity_map(_require(raw, "permeability"), "permeability")
    return MembraneTransport(
        {e: float(v) for e, v in permeabilities.items()},
        volume_ratio=float(raw.get("volume_ratio", 1.0)),
        identifier=raw.get("id"),
    )


MODULE_BUILDERS: Dict[str, Callable[[Mapping[str, Any], ModelContext], ConcentrationModule]] = {
    "diffusion": _diffusion,
    "mass_action": _mass_action,
    "michaelis_menten": _michaelis_menten,
    "membrane_transport": _membrane_transport,
}


def build_module(raw: Mapping[str, Any], context: ModelContext) -> ConcentrationModule:
    kind = str(_require(raw, "type")).lower()
    builder = MODULE_BUILDERS.get(kind)
    if builder is None:
        raise ValueError(f"Unknown module type '{kind}'; expected one of {', '.join(sorted(MODULE_BUILDERS))}")
    return builder(raw, context)


def build_simulation(raw: Mapping[str, Any], config: SimulationConfig) -> Simulation:
    """Turn a parsed model mapping into a ready simulation."""
    environment = environment_from_config(config)
    context = ModelContext(environment)
    _parse_entities(_require(raw, "entities"), context)
    _parse_subsections(_require(raw, "subsections"), context)

    simulation = Simulation(config, environment=environment)
    for item in _require(raw, "nodes") or []:
        node = AutomatonNode(str(_require(item, "id")), _build_container(item, context))
        _apply_flags(node, item)
        simulation.graph.add_node(node)

    for edge in raw.get("edges") or []:
        if not isinstance(edge, (list, tuple)) or len(edge) != 2:
            raise ValueError(f"Edges must be pairs of node identifiers, got {edge!r}")
        simulation.graph.connect(str(edge[0]), str(edge[1]))

    for item in raw.get("vesicles") or []:
        node_id = item.get("node")
        node = simulation.graph.get_node(str(node_id)) if node_id is not None else None
        vesicle = Vesicle(str(_require(item, "id")), _build_container(item, context), node)
        _apply_flags(vesicle, item)
        simulation.add_vesicle(vesicle)

    for item in raw.get("modules") or []:
        simulation.add_module(build_module(item, context))

    logger.info(
        "Loaded model with %d entities, %d nodes, %d vesicles and %d modules.",
        len(context.entities),
        len(simulation.graph),
        len(simulation.vesicles),
        len(simulation.modules),
    )
    return simulation


def load_model_definition(path: str | pathlib.Path, config: SimulationConfig) -> Simulation:
    raw = load_yaml_mapping(path, "Model file")
    return build_simulation(raw, config)
