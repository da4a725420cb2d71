'''
file:       itersolve/algebra/preconditioners.py

Preconditioners P ~ A of the iterative solvers. A preconditioned iteration
never forms P^{-1}; it only needs the action

    u = P^{-1} r,

i.e. the solution of P u = r. The matrix P should approximate A while the
solve with P stays cheap:

    Identity        P = I                       u = r
    Jacobi          P = diag(A)                 u_i = r_i / A_ii
    Gauss-Seidel    P = tril(A)                 forward substitution
    Operator        P given explicitly          factorized once per solve

Setting a preconditioner up (`set`) does the expensive part (inverted
diagonal, LU factors) once; `__call__` applies it in every iteration.
'''

import copy
import inspect
from abc import ABC, abstractmethod
from enum import Enum, unique
from typing import Any, Callable, Optional

import numpy as np
import scipy.linalg as sla
import scipy.sparse as sps
import scipy.sparse.linalg as spsla

from .solver import Array, SolverError, SolverErrorMsg
from .operators import LinearOperator, OperatorKind, as_operator, check_finite
from ..common.flog import get_global_logger, Logger

# ---------------------------------------------------------------------

PreconditionerApplyFun  = Callable[[Array], Array]

@unique
class PreconditionerType(Enum):
    '''
    Enumeration of the available preconditioners.
    '''
    IDENTITY            = 0
    JACOBI              = 1
    GAUSS_SEIDEL        = 2
    OPERATOR            = 3
    CALLABLE            = 4

# ---------------------------------------------------------------------
#! Preconditioners
# ---------------------------------------------------------------------

class Preconditioner(ABC):
    """
    Abstract base class for preconditioners P used in iterative solvers.

    Subclasses implement `_setup(op)`, which receives the system operator and
    returns the function r -> P^{-1} r with all precomputation done.

    Attributes:
        type (PreconditionerType):
            The specific type of the preconditioner.
        n (int):
            Dimension the preconditioner was set up for (None before `set`).
    """

    _type : Optional[PreconditionerType]  = None
    _name : str                           = "General Preconditioner"
    _dcol : str                           = "yellow"

    def __init__(self):
        self._logger    : Logger                            = get_global_logger()
        self._apply     : Optional[PreconditionerApplyFun]  = None
        self._n         : Optional[int]                     = None

    # -----------------------------------------------------------------

    def log(self, msg: str, lvl: int = 1):
        self._logger.debug(f"[{self._name}] {msg}", lvl=lvl, color=self._dcol)

    # -----------------------------------------------------------------
    #! Setup
    # -----------------------------------------------------------------

    @abstractmethod
    def _setup(self, op: LinearOperator) -> PreconditionerApplyFun:
        ''' Precompute the data for the system operator and return the apply function. '''

    def set(self, a: Any) -> 'Preconditioner':
        '''
        Sets up the preconditioner for the system matrix A.

        Params:
            a:
                System matrix (array, sparse matrix or LinearOperator).
        Returns:
            The preconditioner itself, ready to be applied.
        Raises:
            SolverError: if P turns out singular (MAT_SINGULAR) or
                has a zero diagonal entry (ZERO_DIAGONAL).
        '''
        op          = as_operator(a)
        self.log(f"Setting up for n={op.n}, kind={op.kind.name}")
        self._apply = self._setup(op)
        self._n     = op.n
        return self

    @property
    def is_set(self) -> bool:
        return self._apply is not None

    # -----------------------------------------------------------------
    #! Apply
    # -----------------------------------------------------------------

    def __call__(self, r: Array) -> Array:
        """
        Apply P^{-1} to the vector r using the precomputed data.
        """
        if self._apply is None:
            raise SolverError(SolverErrorMsg.PRECOND_INVALID, f"({self._name}) not set up. Call set() first.")
        r = np.asarray(r)
        if r.shape != (self._n,):
            raise SolverError(SolverErrorMsg.DIM_MISMATCH,
                f"({self._name}) Vector of shape {r.shape} does not match n={self._n}")
        return self._apply(r)

    # -----------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> Optional[PreconditionerType]:
        return self._type

    @property
    def n(self) -> Optional[int]:
        return self._n

    def __repr__(self) -> str:
        ''' Returns the name and configuration of the preconditioner. '''
        return f"{self._name}(type={self._type.name if self._type else None}, n={self._n})"

    def __str__(self) -> str:
        return self.__repr__()

# =====================================================================
#! Identity preconditioner
# =====================================================================

class IdentityPreconditioner(Preconditioner):
    """
    Identity preconditioner P = I. Applying P^{-1} returns the input vector.

    Math:
        P       = I
        P^{-1}r = r
    """

    _name = "Identity Preconditioner"
    _type = PreconditionerType.IDENTITY

    def _setup(self, op: LinearOperator) -> PreconditionerApplyFun:
        return lambda r: r

# =====================================================================
#! Jacobi preconditioner
# =====================================================================

class JacobiPreconditioner(Preconditioner):
    """
    Jacobi (diagonal) preconditioner P = diag(A).

    Math:
        P       = D
        P^{-1}r = [r_i / A_ii]

    Richardson iteration with this preconditioner is the Jacobi method.
    """
    _name = "Jacobi Preconditioner"
    _type = PreconditionerType.JACOBI

    def _setup(self, op: LinearOperator) -> PreconditionerApplyFun:
        diag = op.diagonal()
        check_diagonal(diag, self._name)
        inv_diag = 1.0 / diag

        def _apply(r: Array) -> Array:
            return inv_diag * r
        return _apply

# =====================================================================
#! Gauss-Seidel preconditioner
# =====================================================================

class GaussSeidelPreconditioner(Preconditioner):
    """
    Gauss-Seidel preconditioner P = L + D, the lower triangle of A.

    Math:
        P       = tril(A)
        P^{-1}r = forward substitution with tril(A)

    Richardson iteration with this preconditioner is the Gauss-Seidel method.
    """
    _name = "Gauss-Seidel Preconditioner"
    _type = PreconditionerType.GAUSS_SEIDEL

    def _setup(self, op: LinearOperator) -> PreconditionerApplyFun:
        check_diagonal(op.diagonal(), self._name)
        low = op.lower()

        if low.kind is OperatorKind.DENSE:
            l_mat = low.array
            return lambda r: sla.solve_triangular(l_mat, r, lower=True)
        if low.kind is OperatorKind.SPARSE:
            l_mat = low.matrix
            return lambda r: spsla.spsolve_triangular(l_mat, r, lower=True)
        # diagonal and bidiagonal lower triangles are solved in O(n)
        return low.factorize()

# =====================================================================
#! Explicit matrix preconditioner
# =====================================================================

class OperatorPreconditioner(Preconditioner):
    """
    Preconditioner given by an explicit matrix P.

    The solve P u = r uses the structure of P: O(n) for diagonal and
    tridiagonal P, LU factors for dense and sparse P. The factorization is
    computed once in `set`.

    Args:
        p:
            The matrix P (array, sparse matrix or LinearOperator). It is
            never modified.
    """
    _name = "Operator Preconditioner"
    _type = PreconditionerType.OPERATOR

    def __init__(self, p: Any):
        super().__init__()
        try:
            self._p = as_operator(p)
        except SolverError as e:
            raise SolverError(SolverErrorMsg.PRECOND_INVALID, f"Cannot use {type(p).__name__} as a preconditioner: {e.message}") from e

    @property
    def operator(self) -> LinearOperator:
        return self._p

    def _setup(self, op: LinearOperator) -> PreconditionerApplyFun:
        if self._p.shape != op.shape:
            raise SolverError(SolverErrorMsg.DIM_MISMATCH,
                f"Preconditioner of shape {self._p.shape} does not match the matrix of shape {op.shape}")
        check_finite(self._p, self._name)
        return self._p.factorize()

    def __repr__(self) -> str:
        return f"{self._name}(kind={self._p.kind.name}, n={self._p.n})"

# =====================================================================
#! Callable preconditioner
# =====================================================================

class CallablePreconditioner(Preconditioner):
    """
    Wraps a user function r -> P^{-1} r.
    """
    _name = "Callable Preconditioner"
    _type = PreconditionerType.CALLABLE

    def __init__(self, func: PreconditionerApplyFun):
        super().__init__()
        self._func = func

    def _setup(self, op: LinearOperator) -> PreconditionerApplyFun:
        n       = op.n
        func    = self._func

        def _apply(r: Array) -> Array:
            u = np.asarray(func(r), dtype=float)
            if u.shape != (n,):
                raise SolverError(SolverErrorMsg.DIM_MISMATCH,
                    f"Preconditioner function returned shape {u.shape}, expected ({n},)")
            return u
        return _apply

# =====================================================================
#! Helpers
# =====================================================================

def check_diagonal(diag: Array, name: str = "Solver"):
    '''
    Raise SolverError(ZERO_DIAGONAL) if any diagonal entry vanishes.
    '''
    zeros = np.flatnonzero(diag == 0.0)
    if zeros.size > 0:
        raise SolverError(SolverErrorMsg.ZERO_DIAGONAL,
            f"({name}) Zero diagonal entry at index {int(zeros[0])}, cannot divide by A_ii.")

_PRECOND_CLASSES = {
    PreconditionerType.IDENTITY     : IdentityPreconditioner,
    PreconditionerType.JACOBI       : JacobiPreconditioner,
    PreconditionerType.GAUSS_SEIDEL : GaussSeidelPreconditioner,
}

def _resolve_precond_type(precond_id: Any) -> PreconditionerType:
    if isinstance(precond_id, PreconditionerType):
        return precond_id
    if isinstance(precond_id, str):
        key = precond_id.strip().upper().replace('-', '_').replace(' ', '_')
        if key in PreconditionerType.__members__:
            return PreconditionerType[key]
    elif isinstance(precond_id, (int, np.integer)) and not isinstance(precond_id, bool):
        try:
            return PreconditionerType(int(precond_id))
        except ValueError:
            pass
    raise SolverError(SolverErrorMsg.PRECOND_INVALID, f"Unknown preconditioner identifier: {precond_id!r}")

def choose_precond(precond_id: Any, **kwargs) -> Optional[Preconditioner]:
    """
    Factory function to select and instantiate a preconditioner.

    Accepts
        - None                                  -> None (no preconditioning)
        - Preconditioner instance               -> returned as is
        - PreconditionerType, name or int       -> Identity / Jacobi / Gauss-Seidel
        - array, sparse matrix, LinearOperator  -> OperatorPreconditioner
        - callable r -> P^{-1} r                -> CallablePreconditioner

    Args:
        precond_id (Any): Identifier or matrix.
        **kwargs: Additional arguments for the constructor.

    Returns:
        Preconditioner: An instance of the selected preconditioner (not set up yet).
    """
    if precond_id is None:
        return None

    if isinstance(precond_id, Preconditioner):
        if kwargs:
            get_global_logger().warning(f"Preconditioner instance provided; ignoring kwargs: {kwargs}")
        return precond_id

    if isinstance(precond_id, (PreconditionerType, str, int, np.integer)):
        precond_type    = _resolve_precond_type(precond_id)
        if precond_type not in _PRECOND_CLASSES:
            raise SolverError(SolverErrorMsg.PRECOND_INVALID,
                f"{precond_type.name} needs an explicit matrix or function, not an identifier.")
        target_class    = _PRECOND_CLASSES[precond_type]
        valid_args      = inspect.signature(target_class.__init__).parameters
        ignored         = {k: v for k, v in kwargs.items() if k not in valid_args}
        if ignored:
            get_global_logger().warning(f"Ignoring invalid kwargs for {target_class.__name__}: {ignored}")
        return target_class(**{k: v for k, v in kwargs.items() if k in valid_args})

    if isinstance(precond_id, (np.ndarray, LinearOperator, list, tuple)) or sps.issparse(precond_id):
        return OperatorPreconditioner(precond_id)

    if callable(precond_id):
        return CallablePreconditioner(precond_id)

    raise SolverError(SolverErrorMsg.PRECOND_INVALID,
        f"Cannot use object of type {type(precond_id).__name__} as a preconditioner.")

def prepare_precond(precond: Any, op: LinearOperator) -> Optional[Preconditioner]:
    '''
    Resolve `precond` and set up a copy of it for the operator, the caller's
    instance keeps its own setup. Returns None for no preconditioning. All
    factorization errors surface here, before the first iteration.
    '''
    pc = choose_precond(precond)
    if pc is None:
        return None
    return copy.copy(pc).set(op)

# =====================================================================
#! End of File
# =====================================================================
