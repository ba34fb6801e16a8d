"""
Steady one-dimensional heat transfer.

Potentials are temperatures and fluxes are heat flows per unit area, positive
from the input node to the output node.
"""
from __future__ import annotations

from nodalsim.errors import ElementCreationError
from nodalsim.network.element import (
    CONDUCTIVE,
    CONSTANT_FLUX,
    POTENTIAL_DRIVE,
    GainLike,
    GenericElement,
)
from nodalsim.network.graph import NodalGraph
from .base import gain_values, register, require_positive

HEAT_TRANSFER = "heat_transfer"


@register(HEAT_TRANSFER, "conductor")
def conductor(graph: NodalGraph, input: int, output: int, gain: GainLike) -> GenericElement:
    """
    Slab of conductive material.

    Args:
        gain: Either ``[k / L]`` computed in advance, or ``[L, k]`` (length,
            then thermal conductivity).
    """
    values = gain_values(gain)
    if len(values) == 2:
        length, k = values
        require_positive([length], "Conductor length")
        values = [k / length]
    elif len(values) != 1:
        raise ElementCreationError(
            "A conductor needs either [k / L] or [L, k], "
            f"got {len(values)} values."
        )
    return GenericElement.try_new(graph, CONDUCTIVE, input, output, values[0])


@register(HEAT_TRANSFER, "convection_interface")
def convection_interface(graph: NodalGraph, input: int, output: int, gain: GainLike) -> GenericElement:
    """Surface exchanging heat with a fluid; `gain` is ``[h]``."""
    values = gain_values(gain)
    if len(values) != 1:
        raise ElementCreationError(
            f"A convection interface needs only the coefficient [h], got {len(values)} values."
        )
    return GenericElement.try_new(graph, CONDUCTIVE, input, output, values[0])


@register(HEAT_TRANSFER, "temperature_delta")
def temperature_delta(graph: NodalGraph, input: int, output: int, gain: GainLike) -> GenericElement:
    """Fixed temperature rise from the input node to the output node."""
    return GenericElement.try_new(graph, POTENTIAL_DRIVE, input, output, gain)


@register(HEAT_TRANSFER, "heat_flux")
def heat_flux(graph: NodalGraph, input: int, output: int, gain: GainLike) -> GenericElement:
    """Imposed heat flow from the input node to the output node."""
    return GenericElement.try_new(graph, CONSTANT_FLUX, input, output, gain)
