"""Spatial graph of automaton nodes."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.sections import Subsection, Topology
from reaction_diffusion.models.updatable import AutomatonNode


class AutomatonGraph:
    """Ordered collection of nodes with symmetric adjacency."""

    def __init__(self) -> None:
        self._nodes: Dict[str, AutomatonNode] = {}

    def add_node(self, node: AutomatonNode) -> AutomatonNode:
        if node.identifier in self._nodes:
            raise ValueError(f"Duplicate node identifier: {node.identifier}")
        self._nodes[node.identifier] = node
        return node

    def get_node(self, identifier: str) -> AutomatonNode:
        try:
            return self._nodes[identifier]
        except KeyError:
            raise KeyError(f"Unknown node: {identifier}") from None

    def connect(self, first: str | AutomatonNode, second: str | AutomatonNode) -> None:
        a = first if isinstance(first, AutomatonNode) else self.get_node(first)
        b = second if isinstance(second, AutomatonNode) else self.get_node(second)
        a.add_neighbour(b)

    @property
    def nodes(self) -> List[AutomatonNode]:
        return list(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(self._nodes.values())


def linear_graph(
    n_nodes: int,
    environment: Environment,
    subsection: Subsection,
    initial: Iterable[Mapping[ChemicalEntity, float]] | None = None,
    prefix: str = "n",
) -> AutomatonGraph:
    """Build a chain of nodes sharing one inner subsection.

    ``initial`` gives per-node starting concentrations in chain order.
    """
    if n_nodes <= 0:
        raise ValueError("n_nodes must be positive")
    initial_list = list(initial) if initial is not None else []
    if initial_list and len(initial_list) != n_nodes:
        raise ValueError(f"Expected {n_nodes} initial concentration maps, got {len(initial_list)}")

    graph = AutomatonGraph()
    previous = None
    for idx in range(n_nodes):
        container = ConcentrationContainer(environment)
        container.initialize_subsection(subsection, Topology.INNER)
        if initial_list:
            for entity, value in initial_list[idx].items():
                container.set(subsection, entity, value)
        node = graph.add_node(AutomatonNode(f"{prefix}{idx}", container))
        if previous is not None:
            graph.connect(previous, node)
        previous = node
    return graph
