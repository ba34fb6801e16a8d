from __future__ import annotations
from numbers import Real
from typing import Callable, Dict, List

import numpy as np

from nodalsim.errors import ElementCreationError
from nodalsim.linalg.matrix import Matrix
from nodalsim.network.element import GainLike, GenericElement
from nodalsim.network.study import ElementConstructor

# model_type -> element name -> constructor
_REGISTRY: Dict[str, Dict[str, ElementConstructor]] = {}


def register(model_type: str, name: str) -> Callable[[ElementConstructor], ElementConstructor]:
    """Decorator adding an element constructor to the library of `model_type`."""
    def deco(func: ElementConstructor) -> ElementConstructor:
        library = _REGISTRY.setdefault(model_type, {})
        if name in library:
            raise ValueError(f"Element '{name}' already registered for '{model_type}'.")
        library[name] = func
        return func
    return deco


def model_types() -> List[str]:
    return sorted(_REGISTRY)


def constructors(model_type: str) -> Dict[str, ElementConstructor]:
    if model_type not in _REGISTRY:
        raise KeyError(f"Unknown model type '{model_type}'.")
    return dict(_REGISTRY[model_type])


def get_constructor(name: str, model_type: str | None = None) -> ElementConstructor:
    """
    Look up an element constructor by name.

    Without `model_type` every library is searched and the name must be
    unique across them.

    Raises:
        ElementCreationError: If the name is unknown or ambiguous.
    """
    if model_type is not None:
        library = _REGISTRY.get(model_type, {})
        if name not in library:
            raise ElementCreationError(f"'{model_type}' has no element named '{name}'.")
        return library[name]
    found = [lib[name] for lib in _REGISTRY.values() if name in lib]
    if len(found) != 1:
        raise ElementCreationError(
            f"Element name '{name}' is {'unknown' if not found else 'ambiguous'}; give a model type."
        )
    return found[0]


def gain_values(gain: GainLike) -> List[float]:
    """Flatten a gain into its list of numbers (row-major for matrices)."""
    if isinstance(gain, Matrix):
        return gain.to_list()
    if isinstance(gain, Real):
        return [float(gain)]
    try:
        return [float(v) for v in np.asarray(gain, dtype=float).ravel()]
    except (TypeError, ValueError) as exc:
        raise ElementCreationError(f"Invalid gain {gain!r}: {exc}") from exc


def diagonal(values: List[float], components: int, what: str) -> Matrix:
    """n x n matrix with `values` on the diagonal; a single value is repeated."""
    if len(values) == 1:
        values = values * components
    if len(values) != components:
        raise ElementCreationError(
            f"{what} needs 1 or {components} values, got {len(values)}."
        )
    return Matrix.from_rows(np.diag(values).tolist())


def require_positive(values: List[float], what: str) -> None:
    if not values or any(not v > 0 for v in values):
        raise ElementCreationError(f"{what} must be positive, got {values}.")
