"""
Equation text support for the root-finding engine.

Equations are plain strings such as ``"x^2 - 4"`` or ``"x + y = 9"``.
A single ``=`` turns the equation into the residual ``lhs - (rhs)``; ``^`` is
accepted as the power operator. Names found in the constant context are
substituted, every other bare name is a free variable.

Parsing relies on sympy only to build and evaluate the expression tree;
derivatives are always taken numerically by the solvers.
"""
from __future__ import annotations
import math
import re
from tokenize import TokenError
from typing import Dict, Mapping, Tuple

import sympy
from sympy import Symbol, lambdify
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from nodalsim.errors import DomainError, ExpressionError

Context = Dict[str, float]

_TRANSFORMS = standard_transformations + (convert_xor,)
# bare names that are not immediately called like functions
_NAME = re.compile(r"\b([A-Za-z_]\w*)\b(?!\s*\()")
_EQUALS = re.compile(r"(?<![<>=!])=(?!=)")


def new_context() -> Context:
    """Return an empty constant context."""
    return {}


def default_context() -> Context:
    """Return a context pre-loaded with the usual mathematical constants."""
    return {"pi": math.pi, "e": math.e}


def _residual_text(text: str) -> str:
    parts = _EQUALS.split(text)
    if len(parts) == 1:
        return text
    if len(parts) == 2:
        lhs, rhs = parts
        if not lhs.strip() or not rhs.strip():
            raise ExpressionError(f"Equation '{text}' has an empty side.")
        return f"({lhs}) - ({rhs})"
    raise ExpressionError(f"Equation '{text}' contains more than one '='.")


def parse_equation(text: str) -> sympy.Expr:
    """
    Parse equation text into a sympy expression (``lhs - rhs`` form).

    Raises:
        ExpressionError: If the text is not a valid scalar expression.
    """
    if not isinstance(text, str) or not text.strip():
        raise ExpressionError("Equation text must be a non-empty string.")
    body = _residual_text(text)
    local_dict = {name: Symbol(name) for name in _NAME.findall(body)}
    try:
        expr = parse_expr(body, local_dict=local_dict, transformations=_TRANSFORMS)
    except (SyntaxError, TokenError, TypeError, ValueError, AttributeError) as exc:
        raise ExpressionError(f"Could not parse equation '{text}': {exc}") from exc
    if not isinstance(expr, sympy.Expr):
        raise ExpressionError(f"Equation '{text}' is not a scalar expression.")
    return expr


def free_variables(text: str, context: Mapping[str, float] | None = None) -> Tuple[str, ...]:
    """Sorted names of the unknowns referenced by `text` that are not constants of `context`."""
    context = context or {}
    expr = parse_equation(text)
    return tuple(sorted(s.name for s in expr.free_symbols if s.name not in context))


class Expression:
    """
    A parsed equation bound to a constant context.

    Attributes:
        text: Original equation text.
        variables: Sorted names of the free variables.
    """

    def __init__(self, text: str, context: Mapping[str, float] | None = None) -> None:
        context = dict(context or {})
        expr = parse_equation(text)
        constants = {s: float(context[s.name]) for s in expr.free_symbols if s.name in context}
        expr = expr.subs(constants)
        self.text = text
        self.variables: Tuple[str, ...] = tuple(sorted(s.name for s in expr.free_symbols))
        self._expr = expr
        self._fn = lambdify([Symbol(n) for n in self.variables], expr, modules="math")

    def evaluate(self, values: Mapping[str, float]) -> float:
        """
        Evaluate the residual for the given variable values.

        Raises:
            DomainError: If a variable is missing or the expression is undefined there.
        """
        try:
            args = [float(values[name]) for name in self.variables]
        except KeyError as exc:
            raise DomainError(f"No value given for variable {exc.args[0]!r} of '{self.text}'.") from exc
        try:
            result = float(self._fn(*args))
        except (ZeroDivisionError, ValueError, OverflowError, TypeError) as exc:
            raise DomainError(f"'{self.text}' is undefined at {dict(zip(self.variables, args))}: {exc}") from exc
        if not math.isfinite(result):
            raise DomainError(f"'{self.text}' is not finite at {dict(zip(self.variables, args))}.")
        return result

    __call__ = evaluate

    def __repr__(self) -> str:
        return f"Expression({self.text!r}, variables={self.variables})"
