'''
file:       itersolve/algebra/history.py

Convergence monitor of the iterative solvers.

Every pass through a solver loop records the relative residual norm

$$
\\frac{\\|b - A x^{(k)}\\|}{\\|b\\|}
$$

of the current iterate and stops the loop once it drops below the tolerance.
The recorded sequence is only read back for diagnostics (plots, rate
estimates); the algorithms themselves never consult it.
'''

from typing import Iterator, List, Optional, Union, overload
from collections.abc import Sequence as _SequenceABC

import numpy as np

# -----------------------------------------------------------------------------

class ConvergenceHistory(_SequenceABC):
    '''
    Append-only sequence of relative residual norms.

    `history[k]` is the relative residual of the k-th iterate, i.e.
    `history[0]` belongs to the initial guess. The entry which triggered
    termination is included.

    Attributes:
        tol (float):
            Tolerance the entries are compared against.
        norm_b (float):
            Norm of the right-hand side used for the scaling. A zero norm
            is replaced by one (absolute residual).
    '''

    __slots__ = ('_values', '_tol', '_norm_b', '_converged', '_stopped')

    def __init__(self, tol: float, norm_b: float = 1.0):
        self._values    : List[float]   = []
        self._tol                       = float(tol)
        self._norm_b                    = float(norm_b) if norm_b > 0 else 1.0
        self._converged                 = False
        self._stopped                   = False

    # -------------------------------------------------------------------------

    def record(self, residual_norm: float) -> bool:
        '''
        Append the scaled residual norm and report whether the loop should stop.

        Args:
            residual_norm (float):
                Absolute residual norm ||b - Ax||.
        Returns:
            bool: True if the relative residual is below the tolerance.
        '''
        relnorm = float(residual_norm) / self._norm_b
        self._values.append(relnorm)
        self._converged = relnorm < self._tol
        self._stopped   = self._converged
        return self._converged

    def stop(self):
        '''
        Mark the last entry as final although it is above the tolerance
        (breakdown of the iteration, no update follows it).
        '''
        self._stopped = True

    # -------------------------------------------------------------------------

    @overload
    def __getitem__(self, idx: int) -> float: ...
    @overload
    def __getitem__(self, idx: slice) -> List[float]: ...

    def __getitem__(self, idx: Union[int, slice]):
        return self._values[idx]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)

    def __eq__(self, other) -> bool:
        if isinstance(other, ConvergenceHistory):
            return self._values == other._values
        if isinstance(other, (list, tuple)):
            return self._values == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        last = f"{self._values[-1]:.3e}" if self._values else "-"
        return f"ConvergenceHistory(n={len(self)}, last={last}, tol={self._tol:.1e}, converged={self._converged})"

    # -------------------------------------------------------------------------

    @property
    def tol(self) -> float:
        return self._tol

    @property
    def norm_b(self) -> float:
        return self._norm_b

    @property
    def converged(self) -> bool:
        ''' True if the last recorded entry is below the tolerance. '''
        return self._converged

    @property
    def stopped(self) -> bool:
        ''' True if no update was applied after the last recorded entry. '''
        return self._stopped

    @property
    def updates(self) -> int:
        ''' Number of updates applied to the iterate. '''
        return len(self._values) - int(self._stopped)

    @property
    def last(self) -> Optional[float]:
        return self._values[-1] if self._values else None

    def as_array(self) -> np.ndarray:
        return np.asarray(self._values, dtype=float)

    # -------------------------------------------------------------------------
    #! Diagnostics
    # -------------------------------------------------------------------------

    def reduction_factors(self) -> np.ndarray:
        '''
        Ratios history[k+1] / history[k] of consecutive entries.
        '''
        h = self.as_array()
        if h.size < 2:
            return np.empty(0)
        with np.errstate(divide='ignore', invalid='ignore'):
            return h[1:] / h[:-1]

    def observed_rate(self, tail: Optional[int] = None) -> float:
        '''
        Geometric mean of the reduction factors over the last `tail` steps.

        For linearly converging methods this approaches the asymptotic rate,
        e.g. (kappa - 1) / (kappa + 1) for steepest descent.

        Args:
            tail (int, optional):
                Number of trailing steps to average over. Defaults to all.
        Returns:
            float: The averaged factor, NaN with fewer than two entries.
        '''
        h = self.as_array()
        if h.size < 2:
            return float('nan')
        steps = h.size - 1 if tail is None else max(1, min(int(tail), h.size - 1))
        first = h[-steps - 1]
        if first <= 0 or h[-1] <= 0:
            return 0.0
        return float((h[-1] / first) ** (1.0 / steps))

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
