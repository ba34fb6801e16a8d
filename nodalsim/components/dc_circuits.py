"""
DC circuit elements.

Node potentials are voltages and fluxes are currents; a positive current
flows from the input node to the output node.
"""
from __future__ import annotations

from nodalsim.network.element import (
    CONDUCTIVE,
    CONSTANT_FLUX,
    POTENTIAL_DRIVE,
    GainLike,
    GenericElement,
)
from nodalsim.network.graph import NodalGraph
from .base import diagonal, gain_values, register, require_positive

DC_CIRCUIT = "dc_circuit"


@register(DC_CIRCUIT, "resistor")
def resistor(graph: NodalGraph, input: int, output: int, resistance: GainLike) -> GenericElement:
    """Ohmic resistor; `resistance` in ohms, stored as its conductance."""
    values = gain_values(resistance)
    require_positive(values, "Resistor resistance")
    conductance = diagonal([1.0 / r for r in values], graph.node(input).components, "resistor")
    return GenericElement.try_new(graph, CONDUCTIVE, input, output, conductance)


@register(DC_CIRCUIT, "voltage_source")
def voltage_source(graph: NodalGraph, input: int, output: int, voltage: GainLike) -> GenericElement:
    """Ideal source holding the output `voltage` volts above the input."""
    return GenericElement.try_new(graph, POTENTIAL_DRIVE, input, output, voltage)


@register(DC_CIRCUIT, "current_source")
def current_source(graph: NodalGraph, input: int, output: int, current: GainLike) -> GenericElement:
    """Ideal source pushing `current` amperes from the input to the output node."""
    return GenericElement.try_new(graph, CONSTANT_FLUX, input, output, current)
