"""
Nodal analysis studies: typestate, assembly, solve and rollback.
"""
import dataclasses

import pytest

import nodalsim.network.study as study_module
from nodalsim.components.dc_circuits import resistor, voltage_source
from nodalsim.errors import (
    BorrowConflict,
    ElementCreationError,
    IndexOverflow,
    IterationLimitExceeded,
    MissingEndpoint,
    NoNodesInSystem,
    SingularJacobian,
    StudyStateError,
)
from nodalsim.linalg.matrix import Matrix
from nodalsim.network.element import CONDUCTIVE, CONSTANT_FLUX
from nodalsim.network.study import ComponentIndex, NodalAnalysisStudy


def conductor_and_source(g=0.5, F=2.0, initial=None):
    study = NodalAnalysisStudy()
    study.add_nodes(2)
    study.ground_node(0)
    if initial is not None:
        study.configure_node(1, potential=[initial])
    built = study.configure()
    built.add_element(CONDUCTIVE, 0, 1, g)
    built.add_element(CONSTANT_FLUX, 0, 1, F)
    return built


def test_conductor_with_flux_source():
    built = conductor_and_source(g=0.5, F=2.0)
    result = built.solve(margin=1e-9)

    assert result.potential(0) == (0.0,)
    assert result.potential(1)[0] == pytest.approx(4.0)
    # conductor flux runs from node 1 back to ground
    assert result.flux(0)[0] == pytest.approx(-2.0)
    assert result.flux(1)[0] == pytest.approx(2.0)
    assert built.get_potential(1)[0, 0] == pytest.approx(4.0)


def test_multi_component_nodes():
    study = NodalAnalysisStudy()
    study.add_nodes(2, components=2)
    study.ground_node(0)
    built = study.configure()
    built.add_element(CONDUCTIVE, 0, 1, 2.0)
    built.add_element(CONSTANT_FLUX, 0, 1, [1.0, 3.0])

    result = built.solve(margin=1e-9)
    assert result.potential(1) == pytest.approx((0.5, 1.5))


def test_grounded_nodes_are_not_unknowns():
    study = NodalAnalysisStudy()
    study.add_nodes(3)
    study.configure_node(1, potential=[7.0])
    study.ground_node(0)
    built = study.configure()

    residuals, guess = built.generate_system()

    assert list(guess) == [ComponentIndex(1, 0), ComponentIndex(2, 0)]
    assert guess[ComponentIndex(1, 0)] == 7.0
    assert set(residuals) == set(guess)
    assert built.get_potential(0) == Matrix(1, 1)


def test_iteration_limit_restores_potentials():
    built = conductor_and_source(initial=1.5)

    with pytest.raises(IterationLimitExceeded):
        built.solve(limit=1)

    assert built.get_potential(1)[0, 0] == 1.5
    assert built.get_potential(0)[0, 0] == 0.0


def test_singular_network_restores_potentials():
    study = NodalAnalysisStudy()
    study.add_nodes(3)
    study.ground_node(0)
    study.configure_node(2, potential=[3.0])
    built = study.configure()
    # node 1 only has a fixed source: nothing ties its potential down
    built.add_element(CONSTANT_FLUX, 0, 1, 1.0)

    with pytest.raises(SingularJacobian):
        built.solve()
    assert built.get_potential(2)[0, 0] == 3.0


def test_voltage_divider():
    study = NodalAnalysisStudy("dc_circuit")
    gnd, n1, n2 = study.add_nodes(3)
    study.ground_node(gnd)
    built = study.configure()

    vs = built.add_element(voltage_source, gnd, n1, 12.0)
    r1 = built.add_element(resistor, n1, n2, 1000.0)
    r2 = built.add_element("resistor", n2, gnd, 2000.0)

    assert built.node(n1).is_locked
    result = built.solve(margin=1e-12)

    assert result.potential(n1)[0] == pytest.approx(12.0)
    assert result.potential(n2)[0] == pytest.approx(8.0)
    for e in (vs, r1, r2):
        assert result.flux(e)[0] == pytest.approx(0.004)


def test_voltage_source_drives_input_when_output_is_locked():
    study = NodalAnalysisStudy()
    study.add_nodes(3)
    study.ground_node(2)
    built = study.configure()
    vs = built.add_element(voltage_source, 0, 2, 5.0)
    built.add_element(resistor, 0, 1, 1.0)
    built.add_element(resistor, 1, 2, 1.0)

    result = built.solve(margin=1e-12)

    assert result.potential(0)[0] == pytest.approx(-5.0)
    assert result.potential(1)[0] == pytest.approx(-2.5)
    assert result.flux(vs)[0] == pytest.approx(2.5)


def test_chained_sources():
    study = NodalAnalysisStudy()
    study.add_nodes(4)
    study.ground_node(0)
    built = study.configure()
    v1 = built.add_element(voltage_source, 0, 1, 5.0)
    v2 = built.add_element(voltage_source, 1, 2, 3.0)
    built.add_element(resistor, 2, 3, 1.0)
    built.add_element(resistor, 3, 0, 1.0)

    result = built.solve(margin=1e-12)

    assert result.potential(2)[0] == pytest.approx(8.0)
    assert result.potential(3)[0] == pytest.approx(4.0)
    assert result.flux(v1)[0] == pytest.approx(4.0)
    assert result.flux(v2)[0] == pytest.approx(4.0)


def test_loop_of_sources_raises_borrow_conflict():
    study = NodalAnalysisStudy()
    study.add_nodes(3)
    study.ground_node(0)
    built = study.configure()
    built.add_element(voltage_source, 1, 2, 5.0)
    built.add_element(voltage_source, 2, 1, 3.0)
    built.add_element(resistor, 1, 0, 1.0)
    before = [built.get_potential(i) for i in range(3)]

    with pytest.raises(BorrowConflict):
        built.solve()

    assert [built.get_potential(i) for i in range(3)] == before
    assert not built.graph._resolving


def test_failed_element_leaves_study_unchanged():
    study = NodalAnalysisStudy()
    study.add_nodes(2)
    study.ground_node(0)
    study.configure_node(1, is_locked=True)
    built = study.configure()

    with pytest.raises(ElementCreationError):
        built.add_element(voltage_source, 0, 1, 1.0)
    with pytest.raises(ElementCreationError):
        built.add_element(CONDUCTIVE, 0, 0, 1.0)
    with pytest.raises(ElementCreationError):
        built.add_element(CONDUCTIVE, 0, 1, [[1.0, 0.0], [0.0, 1.0]])
    with pytest.raises(MissingEndpoint):
        built.add_element(CONDUCTIVE, 0, 5, 1.0)

    assert built.element_count == 0
    assert built.node(0).elements == []
    assert built.node(1).elements == []


def test_nodes_with_different_component_counts_cannot_connect():
    study = NodalAnalysisStudy()
    study.add_nodes(1, components=1)
    study.add_nodes(1, components=2)
    built = study.configure()
    with pytest.raises(ElementCreationError):
        built.add_element(CONDUCTIVE, 0, 1, 1.0)


def test_configure_consumes_the_study():
    study = NodalAnalysisStudy()
    study.add_nodes(2)
    built = study.configure()

    with pytest.raises(StudyStateError):
        study.add_nodes(1)
    with pytest.raises(StudyStateError):
        study.ground_node(0)
    with pytest.raises(StudyStateError):
        study.configure()

    assert built.node_count == 2
    assert not hasattr(built, "add_nodes")
    assert not hasattr(study, "solve")


def test_empty_study_has_no_nodes_to_solve():
    with pytest.raises(NoNodesInSystem):
        NodalAnalysisStudy().configure().solve()


def test_index_overflow(monkeypatch):
    monkeypatch.setattr(study_module, "INDEX_LIMIT", 1)
    study = NodalAnalysisStudy()
    study.add_nodes(3)
    built = study.configure()

    with pytest.raises(IndexOverflow):
        built.generate_system()
    with pytest.raises(IndexOverflow):
        ComponentIndex(2, 0)


def test_component_index_is_ordered_and_hashable():
    keys = [ComponentIndex(1, 1), ComponentIndex(0, 3), ComponentIndex(1, 0)]
    assert sorted(keys) == [ComponentIndex(0, 3), ComponentIndex(1, 0), ComponentIndex(1, 1)]
    assert len({ComponentIndex(0, 0), ComponentIndex(0, 0)}) == 1
    with pytest.raises(IndexOverflow):
        ComponentIndex(-1, 0)


def test_result_is_immutable_and_serializable():
    result = conductor_and_source().solve(margin=1e-9)

    with pytest.raises(TypeError):
        result.nodes[1] = (0.0,)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.nodes = {}

    doc = result.to_dict()
    assert set(doc) == {"nodes", "elements"}
    assert set(doc["nodes"]) == {"0", "1"}
    assert doc["nodes"]["1"][0] == pytest.approx(4.0)
    assert doc["elements"]["1"] == [2.0]
