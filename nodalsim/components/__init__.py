from .base import constructors, get_constructor, model_types, register  # noqa: F401
from . import dc_circuits, heat_transfer, hydraulics  # noqa: F401
from .dc_circuits import DC_CIRCUIT, resistor, voltage_source, current_source  # noqa: F401
from .heat_transfer import (  # noqa: F401
    HEAT_TRANSFER,
    conductor,
    convection_interface,
    temperature_delta,
    heat_flux,
)
from .hydraulics import HYDRAULIC, pipe, orifice, pump, flow_source  # noqa: F401
