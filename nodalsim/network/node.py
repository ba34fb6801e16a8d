from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Sequence

from nodalsim.errors import BorrowConflict, DimensionMismatch
from nodalsim.linalg.matrix import Matrix

_EXCLUSIVE = -1


@dataclass
class GenericNode:
    """
    A vertex of the nodal network.

    A node is a point where continuity must hold: the flux carried into it by
    its elements must balance the flux carried away. Its potential is a column
    vector with one row per component (e.g. one voltage, or a temperature per
    layer). A locked node is a boundary condition: its potential is known and
    none of its components is an unknown of the system.

    Potential access goes through `borrow` (shared) and `borrow_mut`
    (exclusive). Overlapping an exclusive borrow with any other borrow of the
    same node raises BorrowConflict.

    Attributes:
        potential: Column vector of potentials.
        is_locked: Whether the potential is fixed.
        metadata: Optional free-form mapping carried along with the node.
        elements: Indices of the elements whose flux enters this node's balance.
    """
    potential: Matrix
    is_locked: bool = False
    metadata: Dict[str, Any] | None = None
    elements: List[int] = field(default_factory=list)
    _borrows: int = field(default=0, init=False, repr=False, compare=False)

    @classmethod
    def new(cls, components: int = 1) -> GenericNode:
        """Unlocked node with an all-zero potential of `components` rows."""
        if components < 1:
            raise DimensionMismatch(f"A node needs at least one potential component, got {components}.")
        return cls(potential=Matrix(components, 1))

    @property
    def components(self) -> int:
        return self.potential.rows

    @contextmanager
    def borrow(self) -> Iterator[GenericNode]:
        """Shared access for reading the potential."""
        if self._borrows == _EXCLUSIVE:
            raise BorrowConflict("Node is already mutably borrowed.")
        self._borrows += 1
        try:
            yield self
        finally:
            self._borrows -= 1

    @contextmanager
    def borrow_mut(self) -> Iterator[GenericNode]:
        """Exclusive access for writing the potential or the lock flag."""
        if self._borrows == _EXCLUSIVE:
            raise BorrowConflict("Node is already mutably borrowed.")
        if self._borrows > 0:
            raise BorrowConflict(f"Node is borrowed by {self._borrows} reader(s).")
        self._borrows = _EXCLUSIVE
        try:
            yield self
        finally:
            self._borrows = 0

    @property
    def is_borrowed(self) -> bool:
        return self._borrows != 0

    def get_potential(self) -> Matrix:
        with self.borrow() as node:
            return node.potential.clone()

    def set_potential(self, values: Matrix | Sequence[float]) -> None:
        """
        Overwrite the potential; the number of components cannot change.

        Raises:
            DimensionMismatch: If `values` has the wrong number of rows.
        """
        new = values.clone() if isinstance(values, Matrix) else Matrix.from_col_vec(values)
        with self.borrow_mut() as node:
            if new.shape != node.potential.shape:
                raise DimensionMismatch(
                    f"Node potential is {node.potential.rows}x1, got {new.rows}x{new.cols}."
                )
            node.potential = new

    def set_component(self, component: int, value: float) -> None:
        with self.borrow_mut() as node:
            node.potential[component, 0] = value

    def lock(self) -> None:
        with self.borrow_mut() as node:
            node.is_locked = True

    def ground(self) -> None:
        """Lock the node with every potential component set to zero."""
        with self.borrow_mut() as node:
            node.potential = Matrix(node.potential.rows, 1)
            node.is_locked = True
