import logging

import pytest

from reaction_diffusion.models.deltas import ConcentrationDelta, ConcentrationDeltaIdentifier, DeltaTable
from reaction_diffusion.models.entity import ChemicalEntity
from reaction_diffusion.models.graph import AutomatonGraph, linear_graph
from reaction_diffusion.models.environment import Environment


def test_delta_table_sums_contributions_for_the_same_key(make_node, cytoplasm, entity_a, entity_b) -> None:
    node = make_node("n0")
    other = make_node("n1")
    table = DeltaTable()

    table.put(ConcentrationDeltaIdentifier(node, cytoplasm, entity_a), ConcentrationDelta(cytoplasm, entity_a, 0.25))
    table.put(ConcentrationDeltaIdentifier(node, cytoplasm, entity_a), ConcentrationDelta(cytoplasm, entity_a, 0.5))
    table.put(ConcentrationDeltaIdentifier(other, cytoplasm, entity_b), ConcentrationDelta(cytoplasm, entity_b, -1.0))

    assert len(table) == 2
    assert table.get(ConcentrationDeltaIdentifier(node, cytoplasm, entity_a)).value == pytest.approx(0.75)
    assert table.updatables() == [node, other]
    assert [d.updatable for d in table.deltas_for(other)] == [other]

    table.clear()
    assert not table


def test_identifier_defaults_to_updatable_in_flight(make_node, cytoplasm, entity_a) -> None:
    node = make_node("n0")
    other = make_node("n1")

    own = ConcentrationDeltaIdentifier.of(ConcentrationDelta(cytoplasm, entity_a, 1.0), node)
    foreign = ConcentrationDeltaIdentifier.of(ConcentrationDelta(cytoplasm, entity_a, 1.0, other), node)

    assert own.updatable is node
    assert foreign.updatable is other


def test_apply_potential_deltas_commits_and_clears(make_node, environment, cytoplasm, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    node.add_potential_delta(ConcentrationDelta(cytoplasm, entity_a, -0.25))
    node.add_potential_delta(ConcentrationDelta(cytoplasm, entity_a, 0.5))

    node.apply_potential_deltas(environment)

    assert node.get_concentration(cytoplasm, entity_a) == pytest.approx(1.25)
    assert node.potential_deltas == []


def test_negative_round_off_is_clamped_to_zero(make_node, environment, cytoplasm, entity_a) -> None:
    node = make_node("n0", {entity_a: 1e-25})
    node.add_potential_delta(ConcentrationDelta(cytoplasm, entity_a, -2e-25))

    node.apply_potential_deltas(environment)

    assert node.get_concentration(cytoplasm, entity_a) == 0.0


def test_large_negative_result_is_kept_and_logged(make_node, environment, cytoplasm, entity_a, caplog) -> None:
    node = make_node("n0", {entity_a: 0.0})
    node.add_potential_delta(ConcentrationDelta(cytoplasm, entity_a, -1.0))

    with caplog.at_level(logging.WARNING, logger="reaction_diffusion"):
        node.apply_potential_deltas(environment)

    assert node.get_concentration(cytoplasm, entity_a) == -1.0
    assert "became negative" in caplog.text


def test_fixed_updatable_ignores_deltas(make_node, environment, cytoplasm, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    node.concentration_fixed = True
    node.add_potential_delta(ConcentrationDelta(cytoplasm, entity_a, -0.5))

    node.apply_potential_deltas(environment)

    assert node.potential_deltas == []
    assert node.get_concentration(cytoplasm, entity_a) == 1.0


def test_neighbourhood_is_symmetric(make_node) -> None:
    first, second = make_node("n0"), make_node("n1")
    first.add_neighbour(second)
    first.add_neighbour(second)

    assert first.neighbours == [second]
    assert second.neighbours == [first]
    with pytest.raises(ValueError):
        first.add_neighbour(first)


def test_graph_rejects_duplicate_and_unknown_nodes(make_node) -> None:
    graph = AutomatonGraph()
    graph.add_node(make_node("n0"))

    with pytest.raises(ValueError):
        graph.add_node(make_node("n0"))
    with pytest.raises(KeyError):
        graph.get_node("missing")


def test_linear_graph_builds_a_chain(cytoplasm) -> None:
    tracer = ChemicalEntity("A")
    graph = linear_graph(3, Environment(), cytoplasm, [{tracer: 1.0}, {}, {tracer: 0.5}])

    first, middle, last = graph.nodes
    assert [n.identifier for n in graph] == ["n0", "n1", "n2"]
    assert middle.neighbours == [first, last]
    assert first.neighbours == [middle]
    assert last.get_concentration(cytoplasm, tracer) == 0.5
    assert first.concentration_container.inner_subsection is last.concentration_container.inner_subsection


def test_vesicle_follows_its_node(make_node, make_vesicle) -> None:
    first, second = make_node("n0"), make_node("n1")
    vesicle = make_vesicle("v0", first)

    vesicle.move_to(second)

    assert vesicle.node is second
