r'''
file:       itersolve/algebra/convergence.py

Convergence analysis of the iterative solvers.

Richardson iteration with preconditioner P propagates the error by the
iteration matrix

$$
B = I - P^{-1} A, \qquad e^{(k+1)} = B e^{(k)},
$$

and converges for every initial guess iff the spectral radius rho(B) < 1.
The norm ||B|| < 1 is a sufficient condition that also bounds the error
reduction per step.

For symmetric positive definite A with condition number kappa the gradient
methods contract the A-norm error at least by

    steepest descent    (kappa - 1) / (kappa + 1)
    conjugate gradient  (sqrt(kappa) - 1) / (sqrt(kappa) + 1)

All helpers work on dense copies and are meant for small diagnostic problems.
'''

from typing import Any

import numpy as np

from .operators import as_operator
from .preconditioners import prepare_precond

# -----------------------------------------------------------------------------

def _dense(a: Any) -> np.ndarray:
    return as_operator(a).to_dense()

def condition_number(a: Any) -> float:
    '''
    Two-norm condition number sigma_max / sigma_min of A.
    '''
    return float(np.linalg.cond(_dense(a)))

def iteration_matrix(a: Any, P: Any = None) -> np.ndarray:
    '''
    Dense iteration matrix B = I - P^{-1} A of the Richardson iteration.

    Args:
        a:
            System matrix.
        P:
            Preconditioner in any form accepted by `richardson` (None for identity).
    Returns:
        np.ndarray: B, shape (n, n).
    '''
    op          = as_operator(a)
    dense_a     = op.to_dense()
    pc          = prepare_precond(P, op)
    if pc is None:
        return np.eye(op.n) - dense_a
    p_inv_a     = np.column_stack([pc(dense_a[:, j]) for j in range(op.n)])
    return np.eye(op.n) - p_inv_a

def spectral_radius(m: Any) -> float:
    ''' Largest eigenvalue modulus of a square matrix. '''
    return float(np.max(np.abs(np.linalg.eigvals(_dense(m)))))

def iteration_matrix_norm(a: Any, P: Any = None) -> float:
    ''' Spectral norm ||I - P^{-1} A||_2, a sufficient convergence criterion when below one. '''
    return float(np.linalg.norm(iteration_matrix(a, P), 2))

def richardson_converges(a: Any, P: Any = None) -> bool:
    '''
    True iff rho(I - P^{-1} A) < 1, i.e. Richardson converges for every x0.
    '''
    return spectral_radius(iteration_matrix(a, P)) < 1.0

# -----------------------------------------------------------------------------
#! Rates
# -----------------------------------------------------------------------------

def steepest_descent_rate(kappa: float) -> float:
    ''' Worst-case contraction (kappa - 1) / (kappa + 1) of steepest descent. '''
    kappa = float(kappa)
    if kappa < 1.0:
        raise ValueError(f"Condition number must be >= 1, got {kappa}")
    return (kappa - 1.0) / (kappa + 1.0)

def cg_rate(kappa: float) -> float:
    ''' Worst-case contraction (sqrt(kappa) - 1) / (sqrt(kappa) + 1) of CG. '''
    kappa = float(kappa)
    if kappa < 1.0:
        raise ValueError(f"Condition number must be >= 1, got {kappa}")
    sk = np.sqrt(kappa)
    return float((sk - 1.0) / (sk + 1.0))

def relative_error(x: Any, x_ref: Any) -> float:
    '''
    ||x - x_ref|| / ||x_ref|| (absolute error if x_ref = 0).
    '''
    x       = np.asarray(x, dtype=float)
    x_ref   = np.asarray(x_ref, dtype=float)
    nrm     = np.linalg.norm(x_ref)
    err     = np.linalg.norm(x - x_ref)
    return float(err / nrm) if nrm > 0 else float(err)

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
