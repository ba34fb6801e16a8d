from __future__ import annotations
from enum import IntEnum
from numbers import Real
from typing import Iterable, Iterator, List, Sequence
import numpy as np

from nodalsim.errors import DimensionMismatch, IndexOutOfBounds, MatrixInversionError

Array = np.ndarray


class InversionOutcome(IntEnum):
    """
    Result of an in-place inversion attempt.

    The integer values are the codes returned across the handle API
    (`nodalsim.capi.try_inplace_invert`); success maps to the largest
    unsigned 32-bit value.
    """
    DETERMINANT_ZERO = 0
    SINGULAR_ZERO_VALUE = 1
    ZERO_DURING_ELIMINATION = 2
    UNKNOWN_INTERNAL_ERROR = 3
    SUCCESS = 0xFFFFFFFF


class Matrix:
    """
    Dense 2-D block of doubles.

    The shape is fixed at construction. Operations that change the shape
    (product, augmentation, subset, transpose) always return a new matrix
    with its own storage; row operations and inversion mutate in place.

    Indexing uses ``m[row, col]`` and is validated against the shape.
    """
    __slots__ = ("_data",)

    def __init__(self, rows: int, cols: int) -> None:
        if rows < 0 or cols < 0:
            raise DimensionMismatch(f"Cannot build a {rows}x{cols} matrix.")
        self._data: Array = np.zeros((rows, cols), dtype=float)

    # ---- constructors ----
    @classmethod
    def _wrap(cls, data: Array) -> Matrix:
        m = cls.__new__(cls)
        m._data = data
        return m

    @classmethod
    def identity(cls, n: int) -> Matrix:
        if n < 0:
            raise DimensionMismatch(f"Cannot build a {n}x{n} identity matrix.")
        return cls._wrap(np.eye(n, dtype=float))

    @classmethod
    def from_col_vec(cls, values: Iterable[float]) -> Matrix:
        return cls._wrap(np.array([float(v) for v in values], dtype=float).reshape(-1, 1))

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> Matrix:
        """
        Build a matrix from nested rows, e.g. ``[[1, 2], [3, 4]]``.

        Raises:
            DimensionMismatch: If the rows have different lengths.
        """
        if len(rows) == 0:
            return cls(0, 0)
        width = len(rows[0])
        if any(len(r) != width for r in rows):
            raise DimensionMismatch("All rows must have the same number of columns.")
        return cls._wrap(np.array([[float(v) for v in r] for r in rows], dtype=float).reshape(len(rows), width))

    @classmethod
    def from_vec(cls, rows: int, elements: Sequence[float]) -> Matrix:
        """Build a matrix with `rows` rows from a flat, row-major list."""
        if rows <= 0 or len(elements) % rows != 0:
            raise DimensionMismatch(f"{len(elements)} elements cannot fill {rows} rows.")
        return cls._wrap(np.array(elements, dtype=float).reshape(rows, len(elements) // rows))

    # ---- shape ----
    @property
    def rows(self) -> int:
        return int(self._data.shape[0])

    @property
    def cols(self) -> int:
        return int(self._data.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    def is_square(self) -> bool:
        return self.rows == self.cols

    def _check_index(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexOutOfBounds(row, col, self.shape)

    def _check_row(self, row: int) -> None:
        if not 0 <= row < self.rows:
            raise IndexOutOfBounds(row, 0, self.shape)

    # ---- element access ----
    def __getitem__(self, index: tuple[int, int]) -> float:
        row, col = index
        self._check_index(row, col)
        return float(self._data[row, col])

    def __setitem__(self, index: tuple[int, int], value: float) -> None:
        row, col = index
        self._check_index(row, col)
        self._data[row, col] = value

    def __iter__(self) -> Iterator[float]:
        """Iterate over the elements in row-major order."""
        for v in self._data.flat:
            yield float(v)

    def to_list(self) -> List[float]:
        return [float(v) for v in self._data.flat]

    def to_rows(self) -> List[List[float]]:
        return [[float(v) for v in row] for row in self._data]

    def as_array(self) -> Array:
        """Return a copy of the storage as a numpy array."""
        return self._data.copy()

    # ---- row operations (in place) ----
    def inplace_row_scale(self, row: int, scalar: float) -> None:
        self._check_row(row)
        self._data[row, :] *= scalar

    def inplace_scale(self, scalar: float) -> None:
        self._data *= scalar

    def inplace_row_add(self, r1: int, r2: int) -> None:
        """Add row `r1` into row `r2` (row `r1` is unchanged)."""
        self._check_row(r1)
        self._check_row(r2)
        self._data[r2, :] += self._data[r1, :]

    def inplace_scaled_row_add(self, r1: int, r2: int, scalar: float) -> None:
        """Add ``scalar * row r1`` into row `r2`."""
        self._check_row(r1)
        self._check_row(r2)
        self._data[r2, :] += scalar * self._data[r1, :]

    def inplace_row_swap(self, r1: int, r2: int) -> None:
        self._check_row(r1)
        self._check_row(r2)
        if r1 != r2:
            self._data[[r1, r2], :] = self._data[[r2, r1], :]

    # ---- products and sums ----
    def product(self, other: Matrix) -> Matrix:
        if self.cols != other.rows:
            raise DimensionMismatch(
                f"Cannot multiply a {self.rows}x{self.cols} matrix by a {other.rows}x{other.cols} matrix."
            )
        return Matrix._wrap(self._data @ other._data)

    def __matmul__(self, other: Matrix) -> Matrix:
        return self.product(other)

    def __mul__(self, other: Matrix | float) -> Matrix:
        if isinstance(other, Matrix):
            return self.product(other)
        if isinstance(other, Real):
            return Matrix._wrap(self._data * float(other))
        return NotImplemented

    def __rmul__(self, other: float) -> Matrix:
        if isinstance(other, Real):
            return Matrix._wrap(self._data * float(other))
        return NotImplemented

    def _check_same_shape(self, other: Matrix, op: str) -> None:
        if self.shape != other.shape:
            raise DimensionMismatch(
                f"Cannot {op} a {self.rows}x{self.cols} matrix and a {other.rows}x{other.cols} matrix."
            )

    def __add__(self, other: Matrix) -> Matrix:
        if not isinstance(other, Matrix):
            return NotImplemented
        self._check_same_shape(other, "add")
        return Matrix._wrap(self._data + other._data)

    def __sub__(self, other: Matrix) -> Matrix:
        if not isinstance(other, Matrix):
            return NotImplemented
        self._check_same_shape(other, "subtract")
        return Matrix._wrap(self._data - other._data)

    def __neg__(self) -> Matrix:
        return Matrix._wrap(-self._data)

    def augment_with(self, other: Matrix) -> Matrix:
        """Return ``[self | other]``; both operands must have the same row count."""
        if self.rows != other.rows:
            raise DimensionMismatch(
                f"Cannot augment a matrix with {self.rows} rows with one of {other.rows} rows."
            )
        return Matrix._wrap(np.hstack([self._data, other._data]))

    def __or__(self, other: Matrix) -> Matrix:
        return self.augment_with(other)

    def subset(self, r1: int, c1: int, r2: int, c2: int) -> Matrix:
        """
        Return the block between corners (r1, c1) and (r2, c2), both inclusive.

        Raises:
            IndexOutOfBounds: If a corner lies outside the matrix.
            DimensionMismatch: If the second corner precedes the first.
        """
        self._check_index(r1, c1)
        self._check_index(r2, c2)
        if r2 < r1 or c2 < c1:
            raise DimensionMismatch(f"Corner ({r2}, {c2}) precedes corner ({r1}, {c1}).")
        return Matrix._wrap(self._data[r1:r2 + 1, c1:c2 + 1].copy())

    def trace(self) -> float:
        """Sum of the diagonal, or NaN for a non-square matrix."""
        if not self.is_square():
            return float("nan")
        return float(np.trace(self._data))

    def transpose(self) -> Matrix:
        return Matrix._wrap(self._data.T.copy())

    @property
    def T(self) -> Matrix:
        return self.transpose()

    def determinant(self) -> float:
        if not self.is_square():
            raise DimensionMismatch("The determinant is only defined for square matrices.")
        if self.rows == 0:
            return 1.0
        return float(np.linalg.det(self._data))

    # ---- inversion ----
    def try_inplace_invert(self) -> InversionOutcome:
        """
        Invert the matrix in place by Gauss-Jordan elimination with partial pivoting.

        The matrix is only overwritten when the outcome is SUCCESS.

        Returns:
            InversionOutcome describing the result.

        Raises:
            DimensionMismatch: If the matrix is not square.
        """
        if not self.is_square():
            raise DimensionMismatch(f"Cannot invert a {self.rows}x{self.cols} matrix.")
        n = self.rows
        if n == 0:
            return InversionOutcome.SUCCESS
        if not np.all(np.isfinite(self._data)):
            return InversionOutcome.UNKNOWN_INTERNAL_ERROR
        if n == 1:
            if self._data[0, 0] == 0.0:
                return InversionOutcome.SINGULAR_ZERO_VALUE
            self._data[0, 0] = 1.0 / self._data[0, 0]
            return InversionOutcome.SUCCESS
        if self.determinant() == 0.0:
            return InversionOutcome.DETERMINANT_ZERO

        work = self.augment_with(Matrix.identity(n))
        for col in range(n):
            pivot_row = col + int(np.argmax(np.abs(work._data[col:, col])))
            if work._data[pivot_row, col] == 0.0:
                return InversionOutcome.ZERO_DURING_ELIMINATION
            work.inplace_row_swap(col, pivot_row)
            work.inplace_row_scale(col, 1.0 / work._data[col, col])
            for row in range(n):
                factor = work._data[row, col]
                if row != col and factor != 0.0:
                    work.inplace_scaled_row_add(col, row, -factor)

        inverse = work.subset(0, n, n - 1, 2 * n - 1)
        if not np.all(np.isfinite(inverse._data)):
            return InversionOutcome.UNKNOWN_INTERNAL_ERROR
        self._data[:, :] = inverse._data
        return InversionOutcome.SUCCESS

    def inplace_invert(self) -> None:
        """Like `try_inplace_invert`, but raises `MatrixInversionError` on failure."""
        outcome = self.try_inplace_invert()
        if outcome is not InversionOutcome.SUCCESS:
            raise MatrixInversionError(outcome)

    def inverse(self) -> Matrix:
        m = self.clone()
        m.inplace_invert()
        return m

    # ---- copies and comparison ----
    def clone(self) -> Matrix:
        return Matrix._wrap(self._data.copy())

    def __copy__(self) -> Matrix:
        return self.clone()

    def __deepcopy__(self, memo) -> Matrix:
        return self.clone()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._data, other._data))

    __hash__ = None  # type: ignore[assignment]

    def isclose(self, other: Matrix, tol: float = 1e-9) -> bool:
        """Shape equality plus element-wise agreement within `tol`."""
        return self.shape == other.shape and bool(np.allclose(self._data, other._data, rtol=0.0, atol=tol))

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.cols}, {self.to_rows()})"
