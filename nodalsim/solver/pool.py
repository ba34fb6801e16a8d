"""
Solving a pool of plain-text equations.

`basic_solve` takes a block of equations, one per line, and solves them in
the cheapest order it can find: first any equation left with a single
unknown, then the smallest exactly-constrained subsystem a `SystemBuilder`
can gather. Every value found becomes a constant for the equations that are
still pending, so a long chain of dependent equations is solved piece by
piece instead of as one large system.
"""
from __future__ import annotations
import logging
import math
import re
from typing import Dict, List, Mapping, Tuple

from .expression import free_variables
from .newton import solve_equation
from .system import ConstraintStatus, SystemBuilder

logger = logging.getLogger(__name__)

# variable name -> (guess, min, max)
Declared = Mapping[str, Tuple[float, float, float]]

_UNDECLARED = (1.0, -math.inf, math.inf)
_SEPARATORS = re.compile(r"[\n;]")


def split_equations(system: str) -> List[str]:
    """Equations of `system`: the lines (or ``;``-separated parts) containing ``=``."""
    return [part.strip() for part in _SEPARATORS.split(system) if "=" in part]


def _solve_single_unknown(pool: List[str], known: Dict[str, float], declared: Declared,
                          margin: float, limit: int) -> str | None:
    for i, equation in enumerate(pool):
        unknowns = free_variables(equation, known)
        if len(unknowns) != 1:
            continue
        guess, lo, hi = declared.get(unknowns[0], _UNDECLARED)
        name, value = solve_equation(equation, known, guess, lo, hi, margin, limit)
        known[name] = value
        del pool[i]
        return f"{name} from {equation!r}"
    return None


def _solve_subsystem(pool: List[str], known: Dict[str, float], declared: Declared,
                     margin: float, limit: int) -> str | None:
    for i, seed in enumerate(pool):
        builder = SystemBuilder(seed, known)
        for j, equation in enumerate(pool):
            if j == i:
                continue
            if builder.try_constrain_with(equation) is ConstraintStatus.CONSTRAINED:
                break
        if builder.is_fully_constrained() is not ConstraintStatus.CONSTRAINED:
            continue

        system = builder.build_system()
        for var, (guess, lo, hi) in declared.items():
            system.specify_variable(var, guess, lo, hi)
        known.update(system.solve(margin, limit))
        used = builder.equations
        pool[:] = [e for e in pool if e not in used]
        return f"{', '.join(system.variables)} from {list(used)}"
    return None


def basic_solve(
    system: str,
    context: Mapping[str, float] | None = None,
    declared: Declared | None = None,
    margin: float = 1e-4,
    limit: int = 1000,
) -> Tuple[List[str], Dict[str, float]]:
    """
    Solve a block of equations written one per line.

    Lines without ``=`` are ignored. Single-unknown equations are always
    solved first; when none is left, a constrained subsystem is solved and
    the single-unknown pass starts over.

    Example:
        >>> log, solution = basic_solve("x + y = 9\\nx - y = 4")
        >>> round(solution["x"], 3), round(solution["y"], 3)
        (6.5, 2.5)

    Args:
        system: Equation text.
        context: Known constants. Never mutated.
        declared: Optional ``(guess, min, max)`` per variable; undeclared
            variables start at 1.0 with no bounds.
        margin: Convergence threshold for every solve.
        limit: Iteration limit for every solve.

    Returns:
        ``(log, solution)``: one log line per solving step, and every known
        value (the given constants included) by name. Equations that could
        not be reached are left out of the solution and logged as a warning.

    Raises:
        SolverError: From the first solve that fails.
        ExpressionError: If an equation cannot be parsed.
    """
    known: Dict[str, float] = {k: float(v) for k, v in (context or {}).items()}
    declared = declared or {}
    pool = split_equations(system)
    log: List[str] = []

    while pool:
        step = _solve_single_unknown(pool, known, declared, margin, limit)
        if step is None:
            step = _solve_subsystem(pool, known, declared, margin, limit)
        if step is None:
            break
        logger.debug("Solved %s", step)
        log.append(step)

    if pool:
        logger.warning("%d equation(s) left unsolved: %s", len(pool), pool)
    return log, known
