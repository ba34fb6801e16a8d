"""
Graph model of a nodal network: nodes, elements, the typestate study and
the model document loader.
"""

from .node import GenericNode  # noqa: F401
from .element import (  # noqa: F401
    CONDUCTIVE,
    CONSTANT_FLUX,
    ORIFICE,
    POTENTIAL_DRIVE,
    ConductiveKind,
    ConstantFluxKind,
    ElementKind,
    GenericElement,
    OrificeKind,
    PotentialDriveKind,
)
from .graph import NodalGraph  # noqa: F401
from .study import (  # noqa: F401
    BuiltStudy,
    ComponentIndex,
    NodalAnalysisStudy,
    NodalAnalysisStudyResult,
    NodalResidual,
)
from .model import NodalAnalysisModel  # noqa: F401

__all__ = [
    "GenericNode",
    "ElementKind",
    "ConductiveKind",
    "ConstantFluxKind",
    "OrificeKind",
    "PotentialDriveKind",
    "CONDUCTIVE",
    "CONSTANT_FLUX",
    "ORIFICE",
    "POTENTIAL_DRIVE",
    "GenericElement",
    "NodalGraph",
    "ComponentIndex",
    "NodalResidual",
    "NodalAnalysisStudy",
    "BuiltStudy",
    "NodalAnalysisStudyResult",
    "NodalAnalysisModel",
]
