'''
file:       itersolve/algebra/operators.py

Matrix representations used by the solvers. Every system matrix A and every
explicit preconditioner P is wrapped into one of four tagged variants

    DENSE       full n x n array                     apply O(n^2), solve O(n^3)
    DIAGONAL    main diagonal only                   apply O(n),   solve O(n)
    TRIDIAGONAL three bands (-1, 0, +1)              apply O(n),   solve O(n)
    SPARSE      scipy CSR matrix                     apply O(nnz), solve via sparse LU

with the uniform capabilities `apply(v) = A v` and `solve(r) = A^{-1} r`.
The structured forms keep the cost of the matrix-vector product and of the
preconditioner solve at their true complexity, independently of how NumPy
or SciPy dispatch the `@` operator.

Operators never modify the arrays they wrap in place.
'''

import warnings
from abc import ABC, abstractmethod
from enum import Enum, auto, unique
from typing import Any, Callable, Optional, Tuple

import numpy as np
import scipy.linalg as sla
import scipy.sparse as sps
import scipy.sparse.linalg as spsla

from .solver import SolverError, SolverErrorMsg

# -----------------------------------------------------------------------------

SolveFunc = Callable[[np.ndarray], np.ndarray]

@unique
class OperatorKind(Enum):
    '''
    Tag of the matrix representation.
    '''
    DENSE       = auto()
    DIAGONAL    = auto()
    TRIDIAGONAL = auto()
    SPARSE      = auto()

# -----------------------------------------------------------------------------
#! Base class
# -----------------------------------------------------------------------------

class LinearOperator(ABC):
    '''
    Square real matrix with `apply` (A v) and `solve` (A^{-1} r).

    `factorize` returns a function r -> A^{-1} r with the expensive part of
    the solve (LU factors, inverted diagonal, banded storage) done once, so
    that the preconditioned solvers pay it per solve call and not per
    iteration.
    '''
    _kind : Optional[OperatorKind] = None

    def __init__(self, n: int):
        self._n = int(n)

    # -------------------------------------------------------------------------

    @property
    def kind(self) -> OperatorKind:
        return self._kind

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._n, self._n)

    @property
    def n(self) -> int:
        return self._n

    def __matmul__(self, v):
        return self.apply(v)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n={self._n})"

    # -------------------------------------------------------------------------

    def _check_vector(self, v: Any) -> np.ndarray:
        v = np.asarray(v)
        if v.shape != (self._n,):
            raise SolverError(SolverErrorMsg.DIM_MISMATCH,
                f"Vector of shape {v.shape} does not match operator of shape {self.shape}")
        return v

    @abstractmethod
    def apply(self, v: np.ndarray) -> np.ndarray:
        ''' Matrix-vector product A v. '''

    def solve(self, r: np.ndarray) -> np.ndarray:
        ''' Solve A u = r for u. Raises SolverError(MAT_SINGULAR) for singular A. '''
        return self.factorize()(self._check_vector(r))

    @abstractmethod
    def factorize(self) -> SolveFunc:
        ''' Precompute the solve, returns r -> A^{-1} r. '''

    @abstractmethod
    def is_finite(self) -> bool:
        ''' True if no stored entry is NaN or infinite. '''

    @abstractmethod
    def diagonal(self) -> np.ndarray:
        ''' Copy of the main diagonal. '''

    @abstractmethod
    def lower(self) -> 'LinearOperator':
        ''' Lower triangle of A (including the diagonal) as an operator. '''

    @abstractmethod
    def to_dense(self) -> np.ndarray:
        pass

    @abstractmethod
    def to_csr(self) -> sps.csr_matrix:
        pass

# -----------------------------------------------------------------------------
#! Concrete variants
# -----------------------------------------------------------------------------

class DenseOperator(LinearOperator):
    '''
    Full n x n matrix stored as a NumPy array.
    '''
    _kind = OperatorKind.DENSE

    def __init__(self, a: Any):
        a = np.asarray(a, dtype=float)
        if a.ndim != 2 or a.shape[0] != a.shape[1]:
            raise SolverError(SolverErrorMsg.DIM_MISMATCH, f"Matrix must be square, got shape {a.shape}")
        super().__init__(a.shape[0])
        self._a = a

    @property
    def array(self) -> np.ndarray:
        return self._a

    def apply(self, v: np.ndarray) -> np.ndarray:
        return self._a @ self._check_vector(v)

    def factorize(self) -> SolveFunc:
        with warnings.catch_warnings():
            # singularity is reported below as a SolverError
            warnings.simplefilter('ignore', sla.LinAlgWarning)
            try:
                lu, piv = sla.lu_factor(self._a, check_finite=True)
            except ValueError as e:
                raise SolverError(SolverErrorMsg.INVALID_INPUT, f"Cannot factorize dense matrix: {e}") from e
        if np.any(np.diag(lu) == 0.0):
            raise SolverError(SolverErrorMsg.MAT_SINGULAR, "Dense matrix is singular, cannot solve.")

        def _solve(r: np.ndarray) -> np.ndarray:
            return sla.lu_solve((lu, piv), r)
        return _solve

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._a)))

    def diagonal(self) -> np.ndarray:
        return np.diag(self._a).copy()

    def lower(self) -> 'DenseOperator':
        return DenseOperator(np.tril(self._a))

    def to_dense(self) -> np.ndarray:
        return self._a.copy()

    def to_csr(self) -> sps.csr_matrix:
        return sps.csr_matrix(self._a)

# -----------------------------------------------------------------------------

class DiagonalOperator(LinearOperator):
    '''
    Diagonal matrix diag(d).
    '''
    _kind = OperatorKind.DIAGONAL

    def __init__(self, d: Any):
        d = np.asarray(d, dtype=float)
        if d.ndim != 1:
            raise SolverError(SolverErrorMsg.DIM_MISMATCH, f"Diagonal must be 1D, got shape {d.shape}")
        super().__init__(d.shape[0])
        self._d = d

    def apply(self, v: np.ndarray) -> np.ndarray:
        return self._d * self._check_vector(v)

    def factorize(self) -> SolveFunc:
        if np.any(self._d == 0.0):
            idx = int(np.flatnonzero(self._d == 0.0)[0])
            raise SolverError(SolverErrorMsg.MAT_SINGULAR, f"Diagonal matrix has a zero entry at index {idx}.")
        inv_d = 1.0 / self._d

        def _solve(r: np.ndarray) -> np.ndarray:
            return inv_d * r
        return _solve

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._d)))

    def diagonal(self) -> np.ndarray:
        return self._d.copy()

    def lower(self) -> 'DiagonalOperator':
        return DiagonalOperator(self._d.copy())

    def to_dense(self) -> np.ndarray:
        return np.diag(self._d)

    def to_csr(self) -> sps.csr_matrix:
        return sps.diags(self._d, 0, format='csr')

# -----------------------------------------------------------------------------

class TridiagonalOperator(LinearOperator):
    '''
    Tridiagonal matrix given by its sub-, main and super-diagonal.

    Args:
        lower (array, n-1):
            Entries A[i+1, i].
        diag (array, n):
            Entries A[i, i].
        upper (array, n-1):
            Entries A[i, i+1].
    '''
    _kind = OperatorKind.TRIDIAGONAL

    def __init__(self, lower: Any, diag: Any, upper: Any):
        diag    = np.asarray(diag, dtype=float)
        lower   = np.asarray(lower, dtype=float)
        upper   = np.asarray(upper, dtype=float)
        n       = diag.shape[0]
        if diag.ndim != 1 or lower.shape != (max(n - 1, 0),) or upper.shape != (max(n - 1, 0),):
            raise SolverError(SolverErrorMsg.DIM_MISMATCH,
                f"Bands of shapes {lower.shape}, {diag.shape}, {upper.shape} do not form a tridiagonal matrix")
        super().__init__(n)
        self._l, self._d, self._u = lower, diag, upper

    @classmethod
    def from_dense(cls, a: Any) -> 'TridiagonalOperator':
        a = np.asarray(a, dtype=float)
        return cls(np.diag(a, -1), np.diag(a), np.diag(a, 1))

    @property
    def bands(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self._l, self._d, self._u

    def apply(self, v: np.ndarray) -> np.ndarray:
        v       = self._check_vector(v)
        y       = self._d * v
        y[:-1] += self._u * v[1:]
        y[1:]  += self._l * v[:-1]
        return y

    def factorize(self) -> SolveFunc:
        ab          = np.zeros((3, self._n))
        ab[0, 1:]   = self._u
        ab[1, :]    = self._d
        ab[2, :-1]  = self._l
        # solve_banded only detects exact singularity during the solve
        self._banded_solve(ab, np.zeros(self._n))

        def _solve(r: np.ndarray) -> np.ndarray:
            return self._banded_solve(ab, r)
        return _solve

    @staticmethod
    def _banded_solve(ab: np.ndarray, r: np.ndarray) -> np.ndarray:
        try:
            return sla.solve_banded((1, 1), ab, r)
        except np.linalg.LinAlgError as e:
            raise SolverError(SolverErrorMsg.MAT_SINGULAR, f"Tridiagonal matrix is singular: {e}") from e

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._l)) and np.all(np.isfinite(self._d)) and np.all(np.isfinite(self._u)))

    def diagonal(self) -> np.ndarray:
        return self._d.copy()

    def lower(self) -> 'TridiagonalOperator':
        return TridiagonalOperator(self._l.copy(), self._d.copy(), np.zeros_like(self._u))

    def to_dense(self) -> np.ndarray:
        return np.diag(self._d) + np.diag(self._l, -1) + np.diag(self._u, 1)

    def to_csr(self) -> sps.csr_matrix:
        if self._n == 1:
            return sps.csr_matrix(self._d.reshape(1, 1))
        return sps.diags([self._l, self._d, self._u], [-1, 0, 1], format='csr')

# -----------------------------------------------------------------------------

class SparseOperator(LinearOperator):
    '''
    General sparse matrix in CSR format.
    '''
    _kind = OperatorKind.SPARSE

    def __init__(self, m: Any):
        m = sps.csr_matrix(m, dtype=float)
        if m.shape[0] != m.shape[1]:
            raise SolverError(SolverErrorMsg.DIM_MISMATCH, f"Matrix must be square, got shape {m.shape}")
        super().__init__(m.shape[0])
        m.sum_duplicates()
        self._m = m

    @property
    def matrix(self) -> sps.csr_matrix:
        return self._m

    def apply(self, v: np.ndarray) -> np.ndarray:
        return self._m @ self._check_vector(v)

    def factorize(self) -> SolveFunc:
        try:
            lu = spsla.splu(self._m.tocsc())
        except RuntimeError as e:
            # SuperLU reports "Factor is exactly singular"
            raise SolverError(SolverErrorMsg.MAT_SINGULAR, f"Sparse matrix is singular: {e}") from e
        return lu.solve

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self._m.data)))

    def diagonal(self) -> np.ndarray:
        return self._m.diagonal().copy()

    def lower(self) -> 'SparseOperator':
        return SparseOperator(sps.tril(self._m, format='csr'))

    def to_dense(self) -> np.ndarray:
        return self._m.toarray()

    def to_csr(self) -> sps.csr_matrix:
        return self._m.copy()

# -----------------------------------------------------------------------------
#! Dispatch helpers
# -----------------------------------------------------------------------------

def as_operator(obj: Any) -> LinearOperator:
    '''
    Wrap a matrix-like object into the matching operator variant.

    - LinearOperator    -> returned as is
    - scipy sparse      -> SparseOperator
    - 2D array-like     -> DenseOperator
    '''
    if isinstance(obj, LinearOperator):
        return obj
    if sps.issparse(obj):
        return SparseOperator(obj)
    arr = np.asarray(obj)
    if arr.ndim == 2:
        if np.iscomplexobj(arr):
            raise SolverError(SolverErrorMsg.INVALID_INPUT, "Only real matrices are supported.")
        return DenseOperator(arr)
    raise SolverError(SolverErrorMsg.INVALID_INPUT,
        f"Cannot interpret object of type {type(obj).__name__} with ndim={arr.ndim} as a matrix.")

def identity(n: int) -> DiagonalOperator:
    return DiagonalOperator(np.ones(int(n)))

def apply(a: Any, v: np.ndarray) -> np.ndarray:
    ''' Matrix-vector product A v for any supported matrix representation. '''
    return as_operator(a).apply(v)

def solve(p: Any, r: np.ndarray) -> np.ndarray:
    ''' Solve P u = r for any supported matrix representation. '''
    return as_operator(p).solve(r)

# -----------------------------------------------------------------------------
#! System validation
# -----------------------------------------------------------------------------

def check_finite(op: LinearOperator, name: str) -> LinearOperator:
    ''' Raise SolverError(INVALID_INPUT) if the matrix holds NaN or Inf entries. '''
    if not op.is_finite():
        raise SolverError(SolverErrorMsg.INVALID_INPUT, f"{name} contains non-finite entries.")
    return op

def _as_real_vector(v: Any, n: int, name: str) -> np.ndarray:
    v = np.asarray(v)
    if np.iscomplexobj(v):
        raise SolverError(SolverErrorMsg.INVALID_INPUT, f"{name} must be real.")
    if v.ndim == 2 and v.shape[1] == 1:
        v = v[:, 0]
    if v.shape != (n,):
        raise SolverError(SolverErrorMsg.DIM_MISMATCH, f"{name} has shape {v.shape}, expected ({n},)")
    v = np.array(v, dtype=float)
    if not np.all(np.isfinite(v)):
        raise SolverError(SolverErrorMsg.INVALID_INPUT, f"{name} contains non-finite entries.")
    return v

def prepare_system(a: Any, b: Any, x0: Any = None) -> Tuple[LinearOperator, np.ndarray, np.ndarray]:
    '''
    Validate the linear system and return fresh working copies.

    Returns:
        (op, b, x):
            The operator wrapping A, a float copy of b and the initial
            iterate (a copy of x0, or zeros). The caller's arrays are never
            aliased.
    '''
    op  = check_finite(as_operator(a), "A")
    b   = _as_real_vector(b, op.n, "b")
    x   = np.zeros(op.n) if x0 is None else _as_real_vector(x0, op.n, "x0")
    return op, b, x

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
