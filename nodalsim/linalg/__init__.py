"""
Dense matrix primitive used by the solvers and the nodal graph.
"""

from .matrix import Matrix, InversionOutcome  # noqa: F401

__all__ = ["Matrix", "InversionOutcome"]
