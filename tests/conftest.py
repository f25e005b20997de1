import pytest

from reaction_diffusion.config.simulation_config import SimulationConfig
from reaction_diffusion.models.concentrations import ConcentrationContainer
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.environment import Environment
from reaction_diffusion.models.sections import Subsection, Topology
from reaction_diffusion.models.updatable import AutomatonNode, Vesicle


@pytest.fixture()
def environment() -> Environment:
    return Environment()


@pytest.fixture()
def entity_a() -> ChemicalEntity:
    return ChemicalEntity("A", "tracer")


@pytest.fixture()
def entity_b() -> ChemicalEntity:
    return ChemicalEntity("B")


@pytest.fixture()
def cytoplasm() -> Subsection:
    return Subsection("cytoplasm")


@pytest.fixture()
def lumen() -> Subsection:
    return Subsection("lumen")


@pytest.fixture()
def make_node(environment, cytoplasm):
    """Factory for nodes with a single inner cytoplasm subsection."""

    def _make(identifier: str, values=None) -> AutomatonNode:
        container = ConcentrationContainer(environment)
        container.initialize_subsection(cytoplasm, Topology.INNER)
        for entity, value in (values or {}).items():
            container.set(cytoplasm, entity, value)
        return AutomatonNode(identifier, container)

    return _make


@pytest.fixture()
def make_vesicle(environment, cytoplasm, lumen):
    """Factory for vesicles whose outer topology is the node's cytoplasm."""

    def _make(identifier: str, node=None, values=None) -> Vesicle:
        container = ConcentrationContainer(environment)
        container.initialize_subsection(lumen, Topology.INNER)
        container.initialize_subsection(cytoplasm, Topology.OUTER)
        for entity, value in (values or {}).items():
            container.set(lumen, entity, value)
        return Vesicle(identifier, container, node)

    return _make


@pytest.fixture()
def config() -> SimulationConfig:
    return SimulationConfig(time_step=1.0, total_time=10.0, tolerance=0.2)
