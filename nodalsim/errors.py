"""
Exception hierarchy shared by every nodalsim subpackage.

All failures are raised as subclasses of `NodalSimError` so callers can catch
the whole family at once, or a narrower branch (matrix, solver, graph, ...).
"""
from __future__ import annotations
from typing import Hashable, TYPE_CHECKING

if TYPE_CHECKING:
    from nodalsim.linalg.matrix import InversionOutcome


class NodalSimError(Exception):
    """Base class for every error raised by nodalsim."""


# ---- Matrix ----
class MatrixError(NodalSimError):
    pass


class IndexOutOfBounds(MatrixError, IndexError):
    def __init__(self, row: int, col: int, shape: tuple[int, int]) -> None:
        super().__init__(f"Index ({row}, {col}) is outside a {shape[0]}x{shape[1]} matrix.")
        self.row = row
        self.col = col
        self.shape = shape


class DimensionMismatch(MatrixError, ValueError):
    pass


class MatrixInversionError(MatrixError):
    """Raised by `Matrix.inplace_invert` when inversion does not succeed."""

    def __init__(self, outcome: InversionOutcome) -> None:
        super().__init__(f"Matrix inversion failed: {outcome.name}.")
        self.outcome = outcome


# ---- Solver ----
class SolverError(NodalSimError):
    pass


class DomainError(SolverError, ArithmeticError):
    """An equation could not be evaluated at the requested point."""


class EquationEvaluationError(DomainError):
    """
    Evaluation of one equation of a system failed.

    Attributes:
        equation: Identity (name/key) of the offending equation.
    """

    def __init__(self, equation: Hashable, cause: BaseException) -> None:
        super().__init__(f"Equation {equation!r} could not be evaluated: {cause}")
        self.equation = equation
        self.cause = cause


class IterationLimitExceeded(SolverError):
    def __init__(self, limit: int, residual: float | None = None) -> None:
        msg = f"No convergence within {limit} iterations"
        if residual is not None:
            msg += f" (last max |residual| = {residual:.3e})"
        super().__init__(msg + ".")
        self.limit = limit
        self.residual = residual


class InvalidMargin(SolverError, ValueError):
    pass


class ImproperlyConstrainedSystem(SolverError):
    pass


class SingularJacobian(SolverError):
    def __init__(self, outcome: InversionOutcome) -> None:
        super().__init__(f"Jacobian could not be inverted ({outcome.name}).")
        self.outcome = outcome


class ExpressionError(SolverError, ValueError):
    """Equation text could not be parsed."""


# ---- Constraint accounting ----
class ConstraintError(NodalSimError):
    pass


# ---- Graph ----
class GraphError(NodalSimError):
    pass


class NoNodesInSystem(GraphError):
    def __init__(self) -> None:
        super().__init__("The study has no nodes to solve for.")


class IndexOverflow(GraphError, OverflowError):
    pass


class BorrowConflict(GraphError):
    pass


class MissingEndpoint(GraphError, IndexError):
    pass


class ElementCreationError(GraphError, ValueError):
    pass


class StudyStateError(GraphError):
    """An operation was attempted on a study in the wrong lifecycle state."""


# ---- Model documents ----
class ModelFormatError(NodalSimError, ValueError):
    pass
