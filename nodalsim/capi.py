"""
Handle-based facade over the matrix and equation-system APIs.

Every object crossing this boundary is an opaque non-zero integer handle.
Each handle type has exactly one destructor, and a destroyed handle can never
be used again. No call raises: failures are logged and reported with a
sentinel value.

- constructors return 0,
- boolean-like calls return 0 (1 on success),
- element reads and `trace` return `DOUBLE_SENTINEL`,
- `try_inplace_invert` returns an `InversionOutcome` code,
- constraint calls return a `ConstraintStatus` code (CONSTRAINT_ERROR on failure),
- solves return a JSON object string mapping variables to values, or None;
  `basic_solve` returns ``{"log": [...], "solution": {...}}``.

Solution strings are ordinary Python strings; `free_solution_string` exists
so callers written against the destructor-per-result contract need no
special case.
"""
from __future__ import annotations
import functools
import itertools
import json
import logging
import sys
from typing import Any, Callable, Dict, Type, TypeVar

from nodalsim.errors import NodalSimError
from nodalsim.linalg.matrix import InversionOutcome, Matrix
from nodalsim.solver.expression import default_context, new_context
from nodalsim.solver.newton import solve_equation as _solve_equation
from nodalsim.solver.pool import basic_solve as _basic_solve
from nodalsim.solver.system import ConstrainedSystem, ConstraintStatus, SystemBuilder

logger = logging.getLogger(__name__)

T = TypeVar("T")

NULL = 0
FAILURE = 0
SUCCESS = 1
DOUBLE_SENTINEL = -sys.float_info.max


class InvalidHandle(NodalSimError, KeyError):
    pass


class _Context(dict):
    """Constant table owned by a context handle."""


class _Declared(dict):
    """Variable name -> (guess, min, max), owned by a declared-variables handle."""


class HandleTable:
    """Live objects by handle; handles are never reused."""

    def __init__(self) -> None:
        self._objects: Dict[int, Any] = {}
        self._ids = itertools.count(1)

    def insert(self, obj: Any) -> int:
        handle = next(self._ids)
        self._objects[handle] = obj
        return handle

    def get(self, handle: int, kind: Type[T]) -> T:
        obj = self._objects.get(handle)
        if not isinstance(obj, kind):
            raise InvalidHandle(f"{handle} is not a live {kind.__name__} handle.")
        return obj

    def remove(self, handle: int, kind: type) -> None:
        self.get(handle, kind)
        del self._objects[handle]

    def __len__(self) -> int:
        return len(self._objects)


_handles = HandleTable()

_CAUGHT = (NodalSimError, KeyError, IndexError, TypeError, ValueError, ArithmeticError)


def _guarded(sentinel: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def deco(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any) -> Any:
            try:
                return func(*args)
            except _CAUGHT as exc:
                logger.debug("%s failed: %s", func.__name__, exc)
                return sentinel
        return wrapper
    return deco


def _index(value: int) -> int:
    if value < 0:
        raise IndexError(f"Negative index {value}.")
    return int(value)


def live_handles() -> int:
    """Number of handles that have not been destroyed."""
    return len(_handles)


# ---------------------------------------------------------------------------
# matrices
# ---------------------------------------------------------------------------
@_guarded(NULL)
def new_double_matrix(rows: int, cols: int) -> int:
    return _handles.insert(Matrix(_index(rows), _index(cols)))


@_guarded(NULL)
def new_double_identity_matrix(n: int) -> int:
    return _handles.insert(Matrix.identity(_index(n)))


@_guarded(NULL)
def clone_double_matrix(m: int) -> int:
    return _handles.insert(_handles.get(m, Matrix).clone())


@_guarded(FAILURE)
def free_double_matrix(m: int) -> int:
    _handles.remove(m, Matrix)
    return SUCCESS


@_guarded(DOUBLE_SENTINEL)
def index_double_matrix(m: int, row: int, col: int) -> float:
    return _handles.get(m, Matrix)[_index(row), _index(col)]


@_guarded(FAILURE)
def index_mut_double_matrix(m: int, row: int, col: int, value: float) -> int:
    _handles.get(m, Matrix)[_index(row), _index(col)] = value
    return SUCCESS


@_guarded(FAILURE)
def inplace_row_swap(m: int, r1: int, r2: int) -> int:
    _handles.get(m, Matrix).inplace_row_swap(_index(r1), _index(r2))
    return SUCCESS


@_guarded(FAILURE)
def inplace_row_scale(m: int, row: int, scalar: float) -> int:
    _handles.get(m, Matrix).inplace_row_scale(_index(row), scalar)
    return SUCCESS


@_guarded(FAILURE)
def inplace_scale(m: int, scalar: float) -> int:
    _handles.get(m, Matrix).inplace_scale(scalar)
    return SUCCESS


@_guarded(FAILURE)
def inplace_row_add(m: int, r1: int, r2: int) -> int:
    _handles.get(m, Matrix).inplace_row_add(_index(r1), _index(r2))
    return SUCCESS


@_guarded(FAILURE)
def inplace_scaled_row_add(m: int, r1: int, r2: int, scalar: float) -> int:
    _handles.get(m, Matrix).inplace_scaled_row_add(_index(r1), _index(r2), scalar)
    return SUCCESS


@_guarded(NULL)
def multiply_matrix(a: int, b: int) -> int:
    return _handles.insert(_handles.get(a, Matrix) @ _handles.get(b, Matrix))


@_guarded(NULL)
def augment_with(a: int, b: int) -> int:
    return _handles.insert(_handles.get(a, Matrix).augment_with(_handles.get(b, Matrix)))


@_guarded(NULL)
def subset(m: int, r1: int, c1: int, r2: int, c2: int) -> int:
    return _handles.insert(_handles.get(m, Matrix).subset(_index(r1), _index(c1), _index(r2), _index(c2)))


@_guarded(DOUBLE_SENTINEL)
def trace(m: int) -> float:
    return _handles.get(m, Matrix).trace()


@_guarded(NULL)
def transpose(m: int) -> int:
    return _handles.insert(_handles.get(m, Matrix).transpose())


@_guarded(int(InversionOutcome.UNKNOWN_INTERNAL_ERROR))
def try_inplace_invert(m: int) -> int:
    return int(_handles.get(m, Matrix).try_inplace_invert())


# ---------------------------------------------------------------------------
# contexts and single equations
# ---------------------------------------------------------------------------
@_guarded(NULL)
def new_context_hash_map() -> int:
    return _handles.insert(_Context(new_context()))


@_guarded(NULL)
def new_default_context_hash_map() -> int:
    return _handles.insert(_Context(default_context()))


@_guarded(FAILURE)
def add_const_to_ctx(ctx: int, name: str, value: float) -> int:
    if not name.isidentifier():
        raise ValueError(f"{name!r} is not a valid constant name.")
    _handles.get(ctx, _Context)[name] = float(value)
    return SUCCESS


@_guarded(FAILURE)
def free_context_hash_map(ctx: int) -> int:
    _handles.remove(ctx, _Context)
    return SUCCESS


def _context(ctx: int) -> Dict[str, float]:
    # NULL means "no constants"
    return {} if ctx == NULL else dict(_handles.get(ctx, _Context))


def _json(values: Dict[str, float]) -> str:
    return json.dumps(dict(values))


@_guarded(None)
def solve_equation(equation: str, ctx: int, guess: float, min_value: float, max_value: float,
                   margin: float, limit: int) -> str:
    name, value = _solve_equation(equation, _context(ctx), guess, min_value, max_value, margin, _index(limit))
    return _json({name: value})


# ---------------------------------------------------------------------------
# system builders and constrained systems
# ---------------------------------------------------------------------------
@_guarded(NULL)
def new_system_builder(equation: str, ctx: int) -> int:
    return _handles.insert(SystemBuilder(equation, _context(ctx)))


@_guarded(int(ConstraintStatus.CONSTRAINT_ERROR))
def try_constrain_with(builder: int, equation: str) -> int:
    return int(_handles.get(builder, SystemBuilder).try_constrain_with(equation))


@_guarded(int(ConstraintStatus.CONSTRAINT_ERROR))
def is_fully_constrained(builder: int) -> int:
    return int(_handles.get(builder, SystemBuilder).is_fully_constrained())


@_guarded(NULL)
def build_system(builder: int) -> int:
    return _handles.insert(_handles.get(builder, SystemBuilder).build_system())


@_guarded(FAILURE)
def free_system_builder(builder: int) -> int:
    _handles.remove(builder, SystemBuilder)
    return SUCCESS


@_guarded(FAILURE)
def specify_variable(system: int, var: str, guess: float, min_value: float, max_value: float) -> int:
    ok = _handles.get(system, ConstrainedSystem).specify_variable(var, guess, min_value, max_value)
    return SUCCESS if ok else FAILURE


@_guarded(None)
def solve_system(system: int, margin: float, limit: int) -> str:
    return _json(_handles.get(system, ConstrainedSystem).solve(margin, _index(limit)))


@_guarded(FAILURE)
def free_system(system: int) -> int:
    _handles.remove(system, ConstrainedSystem)
    return SUCCESS



@_guarded(None)
def debug_system_builder(builder: int) -> str:
    return repr(_handles.get(builder, SystemBuilder))


# ---------------------------------------------------------------------------
# equation pools
# ---------------------------------------------------------------------------
@_guarded(NULL)
def new_declared_hash_map() -> int:
    return _handles.insert(_Declared())


@_guarded(FAILURE)
def add_declared_variable(declared: int, var: str, guess: float, min_value: float, max_value: float) -> int:
    if not var.isidentifier():
        raise ValueError(f"{var!r} is not a valid variable name.")
    _handles.get(declared, _Declared)[var] = (float(guess), float(min_value), float(max_value))
    return SUCCESS


@_guarded(FAILURE)
def free_declared_hash_map(declared: int) -> int:
    _handles.remove(declared, _Declared)
    return SUCCESS


@_guarded(None)
def basic_solve(system: str, ctx: int, declared: int, margin: float, limit: int) -> str:
    table = {} if declared == NULL else dict(_handles.get(declared, _Declared))
    log, solution = _basic_solve(system, _context(ctx), table, margin, _index(limit))
    return json.dumps({"log": log, "solution": solution})


def free_solution_string(solution: str | None) -> int:
    """Release a solution string; strings are garbage collected, so this only reports success."""
    return SUCCESS
