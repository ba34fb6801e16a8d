"""
Root-finding engine: scalar and multivariate Newton-Raphson, equation text
support and constraint accounting for systems of equations.
"""

from .expression import Expression, default_context, new_context, free_variables  # noqa: F401
from .newton import (  # noqa: F401
    NewtonConfig,
    newton_raphson,
    newton_solve,
    multivariate_newton_raphson,
    solve_equation,
)
from .system import ConstraintStatus, SystemBuilder, ConstrainedSystem  # noqa: F401
from .pool import basic_solve, split_equations  # noqa: F401

__all__ = [
    "Expression",
    "default_context",
    "new_context",
    "free_variables",
    "NewtonConfig",
    "newton_raphson",
    "newton_solve",
    "multivariate_newton_raphson",
    "solve_equation",
    "ConstraintStatus",
    "SystemBuilder",
    "ConstrainedSystem",
    "basic_solve",
    "split_equations",
]
