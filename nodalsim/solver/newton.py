from __future__ import annotations
from dataclasses import dataclass
import logging
import math
from typing import Callable, Dict, Hashable, List, Mapping, Sequence, Tuple, TypeVar, Union

from nodalsim.errors import (
    ConstraintError,
    DomainError,
    EquationEvaluationError,
    ImproperlyConstrainedSystem,
    InvalidMargin,
    IterationLimitExceeded,
    SingularJacobian,
)
from nodalsim.linalg.matrix import InversionOutcome, Matrix
from .expression import Expression

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V", bound=Hashable)

Residual = Callable[[Mapping[V, float]], float]
Bounds = Tuple[float, float]

DEFAULT_STEP = 1e-6
_EVAL_ERRORS = (ZeroDivisionError, ValueError, OverflowError, ArithmeticError)


@dataclass
class NewtonConfig:
    """
    Configuration parameters for the Newton-Raphson solvers.

    Attributes:
        margin: Convergence threshold on the largest absolute residual (default: 1e-4).
        limit: Maximum number of residual evaluations of the iterate (default: 1000).
        step: Relative finite-difference step; the absolute step for an unknown x
            is ``step * max(1, |x|)`` (default: 1e-6).
        damping: Enable backtracking line search on each update (default: False).
        c1: Line search reduction factor for the step length (default: 0.5).
        rho: Sufficient decrease factor on the residual (default: 0.9).
    """
    margin: float = 1e-4
    limit: int = 1000
    step: float = DEFAULT_STEP
    damping: bool = False
    c1: float = 0.5
    rho: float = 0.9


def _check_margin(margin: float) -> None:
    if not margin > 0.0:
        raise InvalidMargin(f"The convergence margin must be positive, got {margin}.")


def _fd_step(x: float, step: float) -> float:
    return step * max(1.0, abs(x))


def _clamp(x: float, bounds: Bounds | None) -> float:
    if bounds is None:
        return x
    lo, hi = bounds
    return min(max(x, lo), hi)


# ---------------------------------------------------------------------------
# single variable
# ---------------------------------------------------------------------------
def _call_scalar(f: Callable[[float], float], x: float) -> float:
    try:
        y = float(f(x))
    except DomainError:
        raise
    except _EVAL_ERRORS as exc:
        raise DomainError(f"Function could not be evaluated at x = {x}: {exc}") from exc
    if not math.isfinite(y):
        raise DomainError(f"Function is not finite at x = {x}.")
    return y


def central_difference(f: Callable[[float], float], x: float, step: float = DEFAULT_STEP) -> float:
    """Central finite-difference estimate of f'(x)."""
    h = _fd_step(x, step)
    return (_call_scalar(f, x + h) - _call_scalar(f, x - h)) / (2.0 * h)


def newton_raphson(
    f: Callable[[float], float],
    guess: float,
    margin: float,
    limit: int,
    bounds: Bounds | None = None,
    step: float = DEFAULT_STEP,
) -> float:
    """
    Find a root of a scalar function with the Newton-Raphson method.

    The guess (and every update) is clamped into `bounds` when given.

    Args:
        f: Function of one variable.
        guess: Initial guess.
        margin: The iteration stops once ``|f(x)| < margin``.
        limit: Maximum number of iterations.
        bounds: Optional ``(min, max)`` interval for the root.
        step: Relative finite-difference step used for the derivative.

    Returns:
        The root estimate.

    Raises:
        InvalidMargin: If `margin` is not positive.
        DomainError: If `f` cannot be evaluated, its derivative vanishes, or
            no root can be reached inside `bounds`.
        IterationLimitExceeded: If `limit` iterations do not converge.
    """
    _check_margin(margin)
    if bounds is not None and bounds[0] > bounds[1]:
        raise DomainError(f"Empty interval [{bounds[0]}, {bounds[1]}].")

    x = _clamp(float(guess), bounds)
    y = None
    for _ in range(limit):
        y = _call_scalar(f, x)
        if abs(y) < margin:
            return x
        dy = central_difference(f, x, step)
        if dy == 0.0 or not math.isfinite(dy):
            raise DomainError(f"Derivative vanished at x = {x}.")
        proposed = x - y / dy
        clamped = _clamp(proposed, bounds)
        if clamped == x and clamped != proposed:
            raise DomainError(f"No root in [{bounds[0]}, {bounds[1]}]: the iterate is pinned at {x}.")
        x = clamped
    raise IterationLimitExceeded(limit, None if y is None else abs(y))


def solve_equation(
    equation: str,
    context: Mapping[str, float] | None = None,
    guess: float = 1.0,
    min_value: float = -math.inf,
    max_value: float = math.inf,
    margin: float = 1e-4,
    limit: int = 1000,
) -> Tuple[str, float]:
    """
    Solve an equation of exactly one free variable.

    Example:
        >>> name, x = solve_equation("x^2 - 4", guess=1.0, min_value=0.0, max_value=10.0, margin=1e-6)

    Returns:
        ``(variable_name, value)``.

    Raises:
        ConstraintError: If the equation does not reference exactly one unknown.
    """
    expr = Expression(equation, context)
    if len(expr.variables) != 1:
        raise ConstraintError(
            f"'{equation}' must contain exactly one unknown, found {list(expr.variables)}."
        )
    name = expr.variables[0]
    value = newton_raphson(
        lambda x: expr.evaluate({name: x}),
        guess,
        margin,
        limit,
        bounds=(min_value, max_value),
    )
    return name, value


# ---------------------------------------------------------------------------
# multivariate
# ---------------------------------------------------------------------------
def _named(residuals: Union[Mapping[K, Residual], Sequence[Residual]]) -> Dict[Hashable, Residual]:
    if isinstance(residuals, Mapping):
        return dict(residuals)
    return {i: r for i, r in enumerate(residuals)}


def _evaluate_all(funcs: Dict[Hashable, Residual], x: Mapping[V, float]) -> List[float]:
    values = []
    for key, func in funcs.items():
        try:
            r = float(func(x))
        except _EVAL_ERRORS as exc:
            raise EquationEvaluationError(key, exc) from exc
        if not math.isfinite(r):
            raise EquationEvaluationError(key, DomainError("residual is not finite"))
        values.append(r)
    return values


def _jacobian(funcs: Dict[Hashable, Residual], x: Dict[V, float], names: List[V], step: float) -> Matrix:
    n = len(names)
    J = Matrix(n, n)
    for j, var in enumerate(names):
        x0 = x[var]
        h = _fd_step(x0, step)
        x[var] = x0 + h
        f_plus = _evaluate_all(funcs, x)
        x[var] = x0 - h
        f_minus = _evaluate_all(funcs, x)
        x[var] = x0
        for i in range(n):
            J[i, j] = (f_plus[i] - f_minus[i]) / (2.0 * h)
    return J


def _apply(x: Dict[V, float], names: List[V], delta: Matrix, alpha: float,
           bounds: Mapping[V, Bounds] | None) -> Dict[V, float]:
    out = dict(x)
    for i, var in enumerate(names):
        out[var] = _clamp(x[var] + alpha * delta[i, 0], None if bounds is None else bounds.get(var))
    return out


def newton_solve(
    residuals: Union[Mapping[K, Residual], Sequence[Residual]],
    guess: Mapping[V, float],
    cfg: NewtonConfig,
    bounds: Mapping[V, Bounds] | None = None,
) -> Dict[V, float]:
    """
    Solve a square nonlinear system F(x) = 0 with the Newton-Raphson method.

    Each iteration evaluates every residual at the current guess, estimates
    the Jacobian column by column with central differences, inverts it with
    `Matrix.try_inplace_invert` and updates every unknown by
    ``delta = -J^-1 F``.

    Args:
        residuals: Named residual functions (a mapping), or a sequence whose
            positions are used as names. Each takes the full unknown map.
        guess: Initial value of every unknown. Never mutated.
        cfg: NewtonConfig with margin, iteration limit and step settings.
        bounds: Optional ``(min, max)`` per unknown, applied after every update.

    Returns:
        A new map unknown -> value with ``max |F| < cfg.margin``.

    Raises:
        InvalidMargin: If the margin is not positive.
        ImproperlyConstrainedSystem: If equations and unknowns differ in number.
        EquationEvaluationError: First residual that failed to evaluate.
        SingularJacobian: If the Jacobian cannot be inverted.
        IterationLimitExceeded: If `cfg.limit` evaluations do not converge.
    """
    _check_margin(cfg.margin)
    funcs = _named(residuals)
    names: List[V] = list(guess.keys())
    if len(funcs) != len(names):
        raise ImproperlyConstrainedSystem(
            f"{len(funcs)} equations cannot determine {len(names)} unknowns."
        )
    x: Dict[V, float] = {
        var: _clamp(float(v), None if bounds is None else bounds.get(var)) for var, v in guess.items()
    }

    worst: float | None = None
    for iteration in range(cfg.limit):
        F = _evaluate_all(funcs, x)
        worst = max((abs(v) for v in F), default=0.0)
        logger.debug("Newton iteration %d: max |residual| = %.6e", iteration, worst)
        if worst < cfg.margin:
            logger.debug("Converged after %d iterations.", iteration)
            return x

        J = _jacobian(funcs, x, names, cfg.step)
        outcome = J.try_inplace_invert()
        if outcome is not InversionOutcome.SUCCESS:
            raise SingularJacobian(outcome)
        delta = -(J @ Matrix.from_col_vec(F))

        if not cfg.damping:
            x = _apply(x, names, delta, 1.0, bounds)
            continue

        # backtracking
        alpha = 1.0
        while alpha > 1e-4:
            x_try = _apply(x, names, delta, alpha, bounds)
            try:
                trial = max((abs(v) for v in _evaluate_all(funcs, x_try)), default=0.0)
            except EquationEvaluationError:
                trial = math.inf
            if trial < cfg.rho * worst:
                x = x_try
                break
            alpha *= cfg.c1
        if alpha <= 1e-4:
            x = _apply(x, names, delta, 1e-4, bounds)

    raise IterationLimitExceeded(cfg.limit, worst)


def multivariate_newton_raphson(
    residuals: Union[Mapping[K, Residual], Sequence[Residual]],
    guess: Mapping[V, float],
    margin: float,
    limit: int,
    bounds: Mapping[V, Bounds] | None = None,
) -> Dict[V, float]:
    """Convenience wrapper around `newton_solve` taking margin and limit directly."""
    return newton_solve(residuals, guess, NewtonConfig(margin=margin, limit=limit), bounds)
