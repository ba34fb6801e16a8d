import pytest

from nodalsim.components import constructors, get_constructor, model_types
from nodalsim.components.dc_circuits import resistor
from nodalsim.components.heat_transfer import conductor
from nodalsim.errors import ElementCreationError
from nodalsim.network.element import CONDUCTIVE, ORIFICE, POTENTIAL_DRIVE
from nodalsim.network.model import NodalAnalysisModel
from nodalsim.network.study import NodalAnalysisStudy


def two_free_nodes():
    study = NodalAnalysisStudy()
    study.add_nodes(2)
    return study.configure()


def test_registry():
    assert model_types() == ["dc_circuit", "heat_transfer", "hydraulic"]
    assert set(constructors("dc_circuit")) == {"resistor", "voltage_source", "current_source"}
    assert set(constructors("heat_transfer")) == {
        "conductor", "convection_interface", "temperature_delta", "heat_flux",
    }
    assert set(constructors("hydraulic")) == {"pipe", "orifice", "pump", "flow_source"}
    assert get_constructor("resistor") is resistor
    assert get_constructor("conductor", "heat_transfer") is conductor

    with pytest.raises(ElementCreationError):
        get_constructor("capacitor")
    with pytest.raises(ElementCreationError):
        get_constructor("resistor", "hydraulic")


def test_resistor_stores_conductance():
    built = two_free_nodes()
    e = built.add_element(resistor, 0, 1, 4.0)
    element = built.element(e)
    assert element.kind is CONDUCTIVE
    assert element.gain.to_list() == [0.25]

    with pytest.raises(ElementCreationError):
        built.add_element(resistor, 0, 1, 0.0)


def test_conductor_gain_forms():
    built = two_free_nodes()
    a = built.add_element(conductor, 0, 1, [2.0])
    b = built.add_element(conductor, 0, 1, [0.5, 2.0])
    assert built.element(a).gain.to_list() == [2.0]
    assert built.element(b).gain.to_list() == [4.0]

    with pytest.raises(ElementCreationError):
        built.add_element(conductor, 0, 1, [1.0, 2.0, 3.0])
    with pytest.raises(ElementCreationError):
        built.add_element("convection_interface", 0, 1, [1.0, 2.0])


def test_composite_wall_heat_loss():
    model = NodalAnalysisModel.from_dict({
        "model_type": "heat_transfer",
        "nodes": 5,
        "configuration": {
            "0": {"potential": [20.0], "is_locked": True},
            "4": {"potential": [-5.0], "is_locked": True},
        },
        "elements": [
            {"element_type": "convection_interface", "input": 0, "output": 1, "gain": [8.0]},
            {"element_type": "conductor", "input": 1, "output": 2, "gain": [0.2, 0.7]},
            {"element_type": "conductor", "input": 2, "output": 3, "gain": [0.05, 0.04]},
            {"element_type": "convection_interface", "input": 3, "output": 4, "gain": [25.0]},
        ],
    })
    result = model.run_study(margin=1e-10)

    resistance = 1 / 8.0 + 0.2 / 0.7 + 0.05 / 0.04 + 1 / 25.0
    q = 25.0 / resistance
    for e in range(4):
        assert result.flux(e)[0] == pytest.approx(q, rel=1e-8)
    assert result.potential(1)[0] == pytest.approx(20.0 - q / 8.0, rel=1e-8)
    assert result.potential(3)[0] == pytest.approx(-5.0 + q / 25.0, rel=1e-8)


def test_temperature_delta_and_heat_flux():
    study = NodalAnalysisStudy("heat_transfer")
    study.add_nodes(3)
    study.ground_node(0)
    built = study.configure()
    built.add_element("temperature_delta", 0, 1, 10.0)
    built.add_element("conductor", 1, 2, [2.0])
    built.add_element("heat_flux", 0, 2, 4.0)

    result = built.solve(margin=1e-10)

    # 4 W into node 2 must leave through the conductor: T2 = 10 + 4 / 2
    assert result.potential(1)[0] == pytest.approx(10.0)
    assert result.potential(2)[0] == pytest.approx(12.0)


def test_pump_and_pipes():
    study = NodalAnalysisStudy("hydraulic")
    study.add_nodes(3)
    study.ground_node(0)
    built = study.configure()
    pump = built.add_element("pump", 0, 1, 10.0)
    built.add_element("pipe", 1, 2, 2.0)
    built.add_element("pipe", 2, 0, 2.0)

    assert built.element(pump).kind is POTENTIAL_DRIVE
    result = built.solve(margin=1e-10)

    assert result.potential(2)[0] == pytest.approx(5.0)
    assert result.flux(pump)[0] == pytest.approx(10.0)


def test_orifices_in_series():
    study = NodalAnalysisStudy("hydraulic")
    study.add_nodes(3)
    study.configure_node(0, potential=[100.0], is_locked=True)
    study.configure_node(1, potential=[40.0])
    study.ground_node(2)
    built = study.configure()
    a = built.add_element("orifice", 0, 1, 1.0)
    built.add_element("orifice", 1, 2, 1.0)

    assert built.element(a).kind is ORIFICE
    result = built.solve(margin=1e-10)

    assert result.potential(1)[0] == pytest.approx(50.0, rel=1e-8)
    assert result.flux(a)[0] == pytest.approx(50.0 ** 0.5, rel=1e-8)


def test_flow_source_and_invalid_hydraulic_gains():
    study = NodalAnalysisStudy("hydraulic")
    study.add_nodes(2)
    study.ground_node(0)
    built = study.configure()
    built.add_element("flow_source", 0, 1, 3.0)
    built.add_element("pipe", 1, 0, 1.5)

    assert built.solve(margin=1e-10).potential(1)[0] == pytest.approx(2.0)

    with pytest.raises(ElementCreationError):
        built.add_element("pipe", 0, 1, -1.0)
    with pytest.raises(ElementCreationError):
        built.add_element("orifice", 0, 1, 0.0)
