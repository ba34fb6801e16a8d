"""
Incompressible hydraulic networks.

Potentials are pressures and fluxes are volumetric flow rates, positive from
the input node to the output node.
"""
from __future__ import annotations

from nodalsim.network.element import (
    CONDUCTIVE,
    CONSTANT_FLUX,
    ORIFICE,
    POTENTIAL_DRIVE,
    GainLike,
    GenericElement,
)
from nodalsim.network.graph import NodalGraph
from .base import gain_values, register, require_positive

HYDRAULIC = "hydraulic"


@register(HYDRAULIC, "pipe")
def pipe(graph: NodalGraph, input: int, output: int, conductance: GainLike) -> GenericElement:
    """Laminar pipe: flow proportional to the pressure drop."""
    values = gain_values(conductance)
    require_positive(values, "Pipe conductance")
    return GenericElement.try_new(graph, CONDUCTIVE, input, output, conductance)


@register(HYDRAULIC, "orifice")
def orifice(graph: NodalGraph, input: int, output: int, coefficient: GainLike) -> GenericElement:
    """Restriction with flow proportional to the square root of the pressure drop."""
    values = gain_values(coefficient)
    require_positive(values, "Orifice coefficient")
    return GenericElement.try_new(graph, ORIFICE, input, output, coefficient)


@register(HYDRAULIC, "pump")
def pump(graph: NodalGraph, input: int, output: int, pressure_rise: GainLike) -> GenericElement:
    """Ideal pump raising the output pressure `pressure_rise` above the input."""
    return GenericElement.try_new(graph, POTENTIAL_DRIVE, input, output, pressure_rise)


@register(HYDRAULIC, "flow_source")
def flow_source(graph: NodalGraph, input: int, output: int, flow: GainLike) -> GenericElement:
    """Imposed volumetric flow from the input node to the output node."""
    return GenericElement.try_new(graph, CONSTANT_FLUX, input, output, flow)
