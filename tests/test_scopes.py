import pytest

from reaction_diffusion.exceptions import MissingHalfStepError, NumericalInstabilityError, ScopeContractError
from reaction_diffusion.models.deltas import ConcentrationDelta
from reaction_diffusion.models.sections import Topology
from reaction_diffusion.modules.base import ScopeKind
from reaction_diffusion.modules.scopes import (
    DependentUpdate,
    HalfStepFallback,
    IndependentUpdate,
    LocalError,
    SemiDependentUpdate,
)

from scripted_module import ScriptedModule


def _constant(entity, full, half):
    """Script emitting ``full`` on the full pass and ``half`` on the half pass for the inner subsection."""

    def script(module, container):
        value = half if module.supplier.half_step else full
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity, value)]

    return script


# ----------------------------------------------------------------------
# Shared protocol
# ----------------------------------------------------------------------


@pytest.mark.parametrize("kind", list(ScopeKind))
def test_linear_process_has_zero_local_error(kind, make_node, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    module = ScriptedModule(_constant(entity_a, 2.0, 1.0), kind)

    error = module.scope.process_all_updatables([node])

    assert error.updatable is node
    assert error.value == pytest.approx(0.0, abs=1e-12)
    assert [d.value for d in node.potential_deltas] == [pytest.approx(2.0)]


def test_local_error_is_relative_to_full_delta(make_node, cytoplasm, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    module = ScriptedModule(_constant(entity_a, 2.0, 0.9))

    error = module.scope.process_all_updatables([node])

    assert error.value == pytest.approx(0.1)
    assert (error.subsection, error.entity) == (cytoplasm, entity_a)
    assert module.scope.local_errors == {node: error}


def test_half_step_container_advances_touched_entries_by_half(make_node, cytoplasm, entity_a, entity_b) -> None:
    node = make_node("n0", {entity_a: 1.0, entity_b: 0.3})
    seen = {}

    def script(module, container):
        if module.supplier.half_step:
            seen["a"] = container.get(cytoplasm, entity_a)
            seen["b"] = container.get(cytoplasm, entity_b)
            seen["container"] = container
        return [ConcentrationDelta(cytoplasm, entity_a, -0.4)]

    module = ScriptedModule(script, ScopeKind.DEPENDENT)
    module.scope.process_all_updatables([node])

    assert seen["a"] == pytest.approx(1.0 + 0.5 * -0.4)
    assert seen["b"] == 0.3
    assert seen["container"] is not node.concentration_container
    assert node.get_concentration(cytoplasm, entity_a) == 1.0


def test_applicability_is_decided_once_per_invocation(make_node, entity_a) -> None:
    first, second = make_node("n0"), make_node("n1")
    module = ScriptedModule(
        _constant(entity_a, 1.0, 0.5),
        application_condition=lambda updatable: updatable is first,
    )

    module.scope.process_all_updatables([first, second])

    assert module.full_step_calls == [first]
    assert module.half_step_calls == [first]
    assert second.potential_deltas == []


def test_negligible_deltas_are_dropped(make_node, entity_a) -> None:
    node = make_node("n0")
    module = ScriptedModule(_constant(entity_a, 1e-120, 5e-121))

    error = module.scope.process_all_updatables([node])

    assert error is LocalError.EMPTY
    assert module.half_step_calls == []
    assert node.potential_deltas == []


def test_exploding_error_raises_numerical_instability(make_node, entity_a) -> None:
    node = make_node("n0")
    module = ScriptedModule(_constant(entity_a, 1.0, -100.0))

    with pytest.raises(NumericalInstabilityError) as excinfo:
        module.scope.process_all_updatables([node])

    assert excinfo.value.error == pytest.approx(201.0)
    assert not module.scope.full_deltas
    assert not module.scope.half_deltas


def test_scope_state_is_cleared_between_invocations(make_node, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    module = ScriptedModule(_constant(entity_a, 1.0, 0.4), ScopeKind.DEPENDENT)

    first = module.scope.process_all_updatables([node])
    node.clear_potential_concentration_deltas()
    second = module.scope.process_all_updatables([node])

    assert first.value == pytest.approx(second.value)
    assert not module.scope.full_deltas
    assert not module.scope.half_deltas
    assert module.scope.half_step_containers == {}
    assert module.supplier.current_updatable is None
    assert module.supplier.half_step is False
    assert len(node.potential_deltas) == 1


# ----------------------------------------------------------------------
# IndependentUpdate
# ----------------------------------------------------------------------


@pytest.fixture(params=["neighbour", "vesicle", "unrelated"])
def isolation_pair(request, make_node, make_vesicle, entity_a):
    """Updatable under calculation and another updatable it must not see."""
    node = make_node("n0", {entity_a: 1.0})
    if request.param == "neighbour":
        other = make_node("n1")
        node.add_neighbour(other)
        return node, other
    if request.param == "vesicle":
        return make_vesicle("v0", node, {entity_a: 0.5}), node
    return node, make_node("elsewhere", {entity_a: 3.0})


def test_independent_scope_rejects_half_step_requests_for_other_updatables(isolation_pair, entity_a) -> None:
    current, other = isolation_pair

    def script(module, container):
        if module.supplier.half_step:
            module.scope.get_half_step_concentration(other)
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity_a, 0.1)]

    module = ScriptedModule(script)

    with pytest.raises(ScopeContractError):
        module.scope.process_all_updatables([current])
    assert current.potential_deltas == []


def test_independent_scope_serves_the_updatable_in_flight(make_node, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    served = []

    def script(module, container):
        if module.supplier.half_step:
            served.append(module.scope.get_half_step_concentration(node) is container)
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity_a, 0.1)]

    module = ScriptedModule(script)
    module.scope.process_all_updatables([node])

    assert served == [True]
    with pytest.raises(ScopeContractError):
        module.scope.get_half_step_concentration(node)


def test_independent_scope_rejects_deltas_for_other_updatables(make_node, cytoplasm, entity_a) -> None:
    node, other = make_node("n0"), make_node("n1")
    module = ScriptedModule(lambda module, container: [ConcentrationDelta(cytoplasm, entity_a, 1.0, other)])

    with pytest.raises(ScopeContractError):
        module.scope.process_all_updatables([node])


def test_independent_scope_processes_updatables_one_at_a_time(make_node, entity_a) -> None:
    nodes = [make_node(f"n{i}", {entity_a: 1.0}) for i in range(3)]
    module = ScriptedModule(_constant(entity_a, 1.0, 0.5))

    module.scope.process_all_updatables(nodes)

    expected = []
    for node in nodes:
        expected += [(node, False), (node, True)]
    assert module.calls == expected


# ----------------------------------------------------------------------
# DependentUpdate
# ----------------------------------------------------------------------


def test_dependent_scope_builds_all_half_step_containers_before_half_pass(make_node, entity_a) -> None:
    nodes = [make_node(f"n{i}", {entity_a: float(i)}) for i in range(4)]
    containers_at_half_pass = []

    def script(module, container):
        if module.supplier.half_step:
            containers_at_half_pass.append(dict(module.scope.half_step_containers))
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity_a, 1.0)]

    module = ScriptedModule(script, ScopeKind.DEPENDENT)
    module.scope.process_all_updatables(nodes)

    assert module.full_step_calls == nodes
    assert module.half_step_calls == nodes
    assert [c for c, _ in module.calls[:4]] == nodes
    assert all(len(containers) == 4 for containers in containers_at_half_pass)
    assert set(containers_at_half_pass[0]) == set(nodes)


def test_dependent_scope_reads_neighbour_half_step_containers(make_node, cytoplasm, entity_a) -> None:
    first = make_node("n0", {entity_a: 1.0})
    second = make_node("n1", {entity_a: 0.0})
    observed = {}

    def script(module, container):
        current = module.supplier.current_updatable
        other = second if current is first else first
        if module.supplier.half_step:
            observed[current.identifier] = module.scope.get_half_step_concentration(other).get(cytoplasm, entity_a)
        sign = -1.0 if current is first else 1.0
        return [ConcentrationDelta(cytoplasm, entity_a, sign * 0.2)]

    module = ScriptedModule(script, ScopeKind.DEPENDENT)
    module.scope.process_all_updatables([first, second])

    assert observed == {"n0": pytest.approx(0.1), "n1": pytest.approx(0.9)}


def test_dependent_scope_returns_live_container_for_processed_updatable_without_deltas(make_node, entity_a) -> None:
    active, quiet = make_node("n0", {entity_a: 1.0}), make_node("n1")
    served = []

    def script(module, container):
        current = module.supplier.current_updatable
        if module.supplier.half_step:
            served.append(module.scope.get_half_step_concentration(quiet))
        if current is quiet:
            return []
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity_a, -0.1)]

    module = ScriptedModule(script, ScopeKind.DEPENDENT)
    module.scope.process_all_updatables([active, quiet])

    assert served == [quiet.concentration_container]
    assert module.half_step_calls == [active]


def test_dependent_scope_fails_for_updatable_outside_the_pass(make_node, entity_a) -> None:
    node, stranger = make_node("n0"), make_node("stranger")

    def script(module, container):
        if module.supplier.half_step:
            module.scope.get_half_step_concentration(stranger)
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity_a, 0.1)]

    module = ScriptedModule(script, ScopeKind.DEPENDENT)

    with pytest.raises(MissingHalfStepError):
        module.scope.process_all_updatables([node])


def test_dependent_scope_reports_maximum_over_updatables(make_node, entity_a) -> None:
    first, second = make_node("n0"), make_node("n1")

    def script(module, container):
        current = module.supplier.current_updatable
        half = 0.45 if current is first else 0.3
        value = half if module.supplier.half_step else 1.0
        return [ConcentrationDelta(container.get_subsection(Topology.INNER), entity_a, value)]

    module = ScriptedModule(script, ScopeKind.DEPENDENT)
    error = module.scope.process_all_updatables([first, second])

    assert error.updatable is second
    assert error.value == pytest.approx(0.4)
    assert module.scope.local_errors[first].value == pytest.approx(0.1)


# ----------------------------------------------------------------------
# SemiDependentUpdate
# ----------------------------------------------------------------------


def _transport_script(entity, node):
    def script(module, container):
        flux = 0.05 if module.supplier.half_step else 0.1
        return [
            ConcentrationDelta(container.inner_subsection, entity, flux),
            ConcentrationDelta(node.concentration_container.inner_subsection, entity, -flux, updatable=node),
        ]

    return script


def test_semi_dependent_scope_builds_containers_for_every_named_updatable(make_node, make_vesicle, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    vesicle = make_vesicle("v0", node)
    built = []

    def script(module, container):
        if module.supplier.half_step:
            built.append(set(module.scope.half_step_containers))
            assert module.scope.get_half_step_concentration(node).get(Topology.INNER, entity_a) == pytest.approx(0.95)
        return _transport_script(entity_a, node)(module, container)

    module = ScriptedModule(script, ScopeKind.SEMI_DEPENDENT)
    error = module.scope.process_all_updatables([vesicle])

    assert built == [{node, vesicle}]
    assert error.value == pytest.approx(0.0)
    assert [d.value for d in vesicle.potential_deltas] == [pytest.approx(0.1)]
    assert [d.value for d in node.potential_deltas] == [pytest.approx(-0.1)]


def test_semi_dependent_scope_skips_updatables_without_deltas(make_node, monkeypatch) -> None:
    node = make_node("n0")
    module = ScriptedModule(lambda module, container: [], ScopeKind.SEMI_DEPENDENT)
    projections = []
    original = module.scope.project_half_step
    monkeypatch.setattr(module.scope, "project_half_step", lambda u: projections.append(u) or original(u))

    error = module.scope.process_all_updatables([node])

    assert projections == []
    assert module.calls == [(node, False)]
    assert error is LocalError.EMPTY
    assert module.scope.local_errors == {}


def test_semi_dependent_live_fallback_returns_live_container(make_node, make_vesicle, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    bystander = make_node("n1")
    vesicle = make_vesicle("v0", node)
    served = []

    def script(module, container):
        if module.supplier.half_step:
            served.append(module.scope.get_half_step_concentration(bystander))
        return _transport_script(entity_a, node)(module, container)

    module = ScriptedModule(script, ScopeKind.SEMI_DEPENDENT)
    assert module.scope.fallback is HalfStepFallback.LIVE
    module.scope.process_all_updatables([vesicle])

    assert served == [bystander.concentration_container]


def test_semi_dependent_strict_fallback_raises(make_node, make_vesicle, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    bystander = make_node("n1")
    vesicle = make_vesicle("v0", node)

    def script(module, container):
        if module.supplier.half_step:
            module.scope.get_half_step_concentration(bystander)
        return _transport_script(entity_a, node)(module, container)

    module = ScriptedModule(script, ScopeKind.SEMI_DEPENDENT)
    module.configure_numerics(half_step_fallback=HalfStepFallback.STRICT)

    with pytest.raises(MissingHalfStepError):
        module.scope.process_all_updatables([vesicle])
    assert module.scope.half_step_containers == {}


def test_semi_dependent_strict_fallback_serves_primary_without_own_deltas(make_node, make_vesicle, entity_a) -> None:
    node = make_node("n0", {entity_a: 1.0})
    vesicle = make_vesicle("v0", node)
    served = []

    def script(module, container):
        if module.supplier.half_step:
            served.append(container)
        flux = 0.05 if module.supplier.half_step else 0.1
        return [ConcentrationDelta(node.concentration_container.inner_subsection, entity_a, -flux, updatable=node)]

    module = ScriptedModule(script, ScopeKind.SEMI_DEPENDENT)
    module.configure_numerics(half_step_fallback=HalfStepFallback.STRICT)

    error = module.scope.process_all_updatables([vesicle])

    [half_step_container] = served
    assert half_step_container is not vesicle.concentration_container
    assert error.value == pytest.approx(0.0)
    assert vesicle.potential_deltas == []
    assert [d.value for d in node.potential_deltas] == [pytest.approx(-0.1)]


def test_scope_kind_selects_strategy() -> None:
    assert isinstance(ScriptedModule(None).scope, IndependentUpdate)
    assert isinstance(ScriptedModule(None, ScopeKind.DEPENDENT).scope, DependentUpdate)
    assert isinstance(ScriptedModule(None, ScopeKind.SEMI_DEPENDENT).scope, SemiDependentUpdate)
