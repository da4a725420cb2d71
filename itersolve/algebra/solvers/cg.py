r'''
file:       itersolve/algebra/solvers/cg.py

Implements the Conjugate Gradient (CG) iterative algorithm for solving linear systems
of equations :math:`Ax = b`, where the matrix :math:`A` is symmetric and positive-definite (SPD).

Mathematical Formulation (Preconditioned CG):
-------------------------------------------
Given an SPD matrix :math:`A`, a right-hand side vector :math:`b`, an initial guess
:math:`x_0`, and an SPD preconditioner :math:`P \approx A`:

1.  Initialize:
    *   :math:`r_0 = b - Ax_0`
    *   :math:`z_0 = P^{-1}r_0`
    *   :math:`p_0 = z_0`
    *   :math:`\rho_0 = r_0^T z_0`

2.  Iterate :math:`k = 0, 1, 2, \dots` until :math:`\|r_k\| < \epsilon \|b\|`:
    *   :math:`v_k = A p_k`
    *   :math:`\alpha_k = \rho_k / (p_k^T v_k)`
    *   :math:`x_{k+1} = x_k + \alpha_k p_k`
    *   :math:`r_{k+1} = r_k - \alpha_k v_k`
    *   :math:`z_{k+1} = P^{-1} r_{k+1}`
    *   :math:`\rho_{k+1} = r_{k+1}^T z_{k+1}`
    *   :math:`\beta_k = \rho_{k+1} / \rho_k`
    *   :math:`p_{k+1} = z_{k+1} + \beta_k p_k`

Without preconditioner :math:`z_k = r_k`, so :math:`\alpha_k = (r_k^T r_k)/(p_k^T A p_k)`
and :math:`\beta_k = (r_{k+1}^T r_{k+1}) / (r_k^T r_k)`. In exact arithmetic CG
terminates after at most n updates; the A-norm error contracts at least by
:math:`(\sqrt{\kappa} - 1)/(\sqrt{\kappa} + 1)` per step.

References:
-----------
    - Hestenes, M. R., & Stiefel, E. (1952). Methods of Conjugate Gradients for
        Solving Linear Systems. Journal of Research of the National Bureau of Standards, 49(6), 409.
    - Saad, Y. (2003). Iterative Methods for Sparse Linear Systems (2nd ed.). SIAM. Chapter 6.
    - Shewchuk, J. R. (1994). An Introduction to the Conjugate Gradient Method
        Without the Agonizing Pain. Carnegie Mellon University Technical Report CS-94-125.
'''

from typing import Optional, Any

import numpy as np

from ..solver           import (Solver, SolverResult, SolverType, Array, CallbackFunc,
                                check_parameters, notify, report, record_residual, breakdown)
from ..history          import ConvergenceHistory
from ..operators        import prepare_system
from ..preconditioners  import prepare_precond
from ..config           import DEFAULT_TOL, DEFAULT_MAXITER
from ...common.flog     import get_global_logger

# -----------------------------------------------------------------------------

def conjugate_gradient(a    : Any,
            b               : Array,
            P               : Any                       = None,
            x0              : Optional[Array]           = None,
            tol             : float                     = DEFAULT_TOL,
            maxiter         : int                       = DEFAULT_MAXITER,
            callback        : Optional[CallbackFunc]    = None) -> SolverResult:
    """
    Conjugate gradient method, optionally preconditioned.

    Args:
        a:
            Symmetric positive definite system matrix.
        b (Array):
            Right-hand side.
        P (optional):
            Symmetric positive definite preconditioner, see `richardson`.
        x0 (Array, optional):
            Initial guess, zeros if None. Not modified.
        tol (float):
            Tolerance on ||b - Ax|| / ||b||.
        maxiter (int):
            Maximal number of passes through the loop.
        callback (Callable, optional):
            Called as callback(k, x) after the k-th update.

    Returns:
        SolverResult: (x, history).

    Example:
        >>> x, history = conjugate_gradient(laplacian_1d(100), np.ones(100), tol=1e-10)
    """
    tol, maxiter    = check_parameters(tol, maxiter)
    op, b, x        = prepare_system(a, b, x0)
    pc              = prepare_precond(P, op)
    name            = "CG"

    history         = ConvergenceHistory(tol, np.linalg.norm(b))
    get_global_logger().debug(f"({name}) Starting: n={op.n}, tol={tol:.1e}, maxiter={maxiter}, precond={pc}", lvl=1)

    r               = b - op.apply(x)
    z               = r if pc is None else pc(r)
    p               = z.copy()
    rho             = np.dot(r, z)

    for k in range(1, maxiter + 1):
        r_prev      = r
        stop, r     = record_residual(history, op, b, x, r)
        if stop:
            break
        if r is not r_prev:
            # true residual took over, restart the recurrence from it
            z       = r if pc is None else pc(r)
            p       = z.copy()
            rho     = np.dot(r, z)

        v           = op.apply(p)
        pv          = np.dot(p, v)
        if pv == 0.0 or rho == 0.0 or not np.isfinite(pv):
            breakdown(name, history, f"p^T A p = {pv}, r^T z = {rho}", k)
            break

        alpha       = rho / pv
        x           = x + alpha * p
        r           = r - alpha * v
        z           = r if pc is None else pc(r)
        rho_new     = np.dot(r, z)
        beta        = rho_new / rho
        p           = z + beta * p
        rho         = rho_new
        notify(callback, k, x)

    report(name, history, maxiter)
    return SolverResult(x, history)

# -----------------------------------------------------------------------------

class CgSolver(Solver):
    '''
    Conjugate Gradient (CG) solver for symmetric positive definite linear systems.
    '''
    _solver_type    = SolverType.CG

    @staticmethod
    def solve(a         : Any,
            b           : Array,
            x0          : Optional[Array] = None,
            *,
            tol         : float,
            maxiter     : int,
            precond     : Any = None,
            callback    : Optional[CallbackFunc] = None,
            **kwargs) -> SolverResult:
        """ Static CG execution, see `conjugate_gradient`. """
        return conjugate_gradient(a, b, P=precond, x0=x0, tol=tol, maxiter=maxiter, callback=callback)

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
