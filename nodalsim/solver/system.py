"""
Incremental construction of square systems of equations.

A `SystemBuilder` starts from one equation and accepts further equations only
while they keep the system solvable by counting: a system is *constrained*
when it has as many distinct unknowns as equations. Independence of the
equations is not checked; a dependent set surfaces later as a singular
Jacobian.
"""
from __future__ import annotations
from enum import IntEnum
import logging
import math
from typing import Dict, List, Mapping, Set, Tuple

from nodalsim.errors import ConstraintError, ExpressionError
from .expression import Expression
from .newton import NewtonConfig, newton_solve

logger = logging.getLogger(__name__)


class ConstraintStatus(IntEnum):
    CONSTRAINT_ERROR = -1
    NOT_CONSTRAINED = 0
    CONSTRAINED = 1


def constraint_status(n_equations: int, n_variables: int) -> ConstraintStatus:
    """Classify a system purely by comparing equation and unknown counts."""
    if n_equations > n_variables:
        return ConstraintStatus.CONSTRAINT_ERROR
    if n_equations == n_variables:
        return ConstraintStatus.CONSTRAINED
    return ConstraintStatus.NOT_CONSTRAINED


class SystemBuilder:
    """
    Accumulates equations until the system is exactly constrained.

    Args:
        equation: The seed equation.
        context: Constants available to every equation.

    Raises:
        ConstraintError: If the seed equation cannot be parsed.
    """

    def __init__(self, equation: str, context: Mapping[str, float] | None = None) -> None:
        self.context: Dict[str, float] = dict(context or {})
        self._equations: List[Expression] = []
        self._variables: Set[str] = set()
        try:
            seed = Expression(equation, self.context)
        except ExpressionError as exc:
            raise ConstraintError(f"Seed equation rejected: {exc}") from exc
        self._add(seed)

    def _add(self, expr: Expression) -> None:
        self._equations.append(expr)
        self._variables.update(expr.variables)

    @property
    def equations(self) -> Tuple[str, ...]:
        return tuple(e.text for e in self._equations)

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(sorted(self._variables))

    def is_fully_constrained(self) -> ConstraintStatus:
        return constraint_status(len(self._equations), len(self._variables))

    def try_constrain_with(self, equation: str) -> ConstraintStatus:
        """
        Try to add `equation` to the system.

        An equation that cannot be parsed, or that would leave more equations
        than unknowns, is rejected and the builder is left unchanged.

        Returns:
            CONSTRAINT_ERROR when the equation was rejected, otherwise the
            status of the system after adding it.
        """
        try:
            expr = Expression(equation, self.context)
        except ExpressionError as exc:
            logger.debug("Rejected equation %r: %s", equation, exc)
            return ConstraintStatus.CONSTRAINT_ERROR

        status = constraint_status(len(self._equations) + 1, len(self._variables | set(expr.variables)))
        if status is ConstraintStatus.CONSTRAINT_ERROR:
            logger.debug("Rejected equation %r: it would over-constrain the system.", equation)
            return status
        self._add(expr)
        return status

    def build_system(self) -> ConstrainedSystem:
        """
        Finalize the builder.

        Raises:
            ConstraintError: Unless the builder reports CONSTRAINED.
        """
        status = self.is_fully_constrained()
        if status is not ConstraintStatus.CONSTRAINED:
            raise ConstraintError(
                f"Cannot build a system with {len(self._equations)} equations "
                f"and {len(self._variables)} unknowns ({status.name})."
            )
        return ConstrainedSystem(list(self._equations), self.variables)

    def __repr__(self) -> str:
        return f"SystemBuilder(equations={list(self.equations)}, variables={list(self.variables)})"


class ConstrainedSystem:
    """
    A square system ready to be solved.

    Every unknown starts with guess 1.0 and an unbounded domain until
    `specify_variable` says otherwise.
    """

    def __init__(self, equations: List[Expression], variables: Tuple[str, ...]) -> None:
        self._equations = equations
        self._guess: Dict[str, float] = {v: 1.0 for v in variables}
        self._bounds: Dict[str, Tuple[float, float]] = {v: (-math.inf, math.inf) for v in variables}

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(self._guess)

    def specify_variable(self, var: str, guess: float, min_value: float = -math.inf,
                         max_value: float = math.inf) -> bool:
        """Set the initial guess and domain of `var`; False if `var` is not an unknown."""
        if var not in self._guess or min_value > max_value:
            return False
        self._guess[var] = float(guess)
        self._bounds[var] = (float(min_value), float(max_value))
        return True

    def solve(self, margin: float = 1e-4, limit: int = 1000) -> Dict[str, float]:
        residuals = {f"[{i}] {e.text}": e.evaluate for i, e in enumerate(self._equations)}
        return newton_solve(residuals, self._guess, NewtonConfig(margin=margin, limit=limit), self._bounds)
