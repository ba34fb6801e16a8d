"""
Top-level namespace for nodalsim, a steady-state nodal analysis engine.

- nodalsim.linalg: dense matrix primitive.
- nodalsim.solver: Newton-Raphson root finding and equation systems.
- nodalsim.network: node/element graph, studies and model documents.
- nodalsim.components: element libraries (DC circuits, heat transfer, hydraulics).
"""

from . import linalg  # noqa: F401
from . import solver  # noqa: F401
from . import network  # noqa: F401
from . import components  # noqa: F401
from .network import NodalAnalysisModel, NodalAnalysisStudy  # noqa: F401

__all__ = ["linalg", "solver", "network", "components", "NodalAnalysisModel", "NodalAnalysisStudy"]
