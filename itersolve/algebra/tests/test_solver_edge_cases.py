import functools

import pytest
import numpy as np
import scipy.sparse as sps

from itersolve.algebra.solver import SolverError, SolverErrorMsg
from itersolve.algebra.solvers.fixed_point import richardson
from itersolve.algebra.solvers.stationary import jacobi, gauss_seidel
from itersolve.algebra.solvers.descent import steepest_descent
from itersolve.algebra.solvers.cg import conjugate_gradient
from itersolve.algebra.operators import DiagonalOperator, TridiagonalOperator
from itersolve.algebra.ran_matrices import random_spd, diagonally_dominant

# unpreconditioned Richardson only converges for spectra inside (0, 2)
JACOBI_RICHARDSON = functools.partial(richardson, P='jacobi')
ALL_SOLVERS       = [JACOBI_RICHARDSON, jacobi, gauss_seidel, steepest_descent, conjugate_gradient]
PRECOND_SOLVERS   = [richardson, steepest_descent, conjugate_gradient]

def spd_problem(n=12, seed=0):
    A = random_spd(n, cond=20.0, rng=seed)
    A = A + 2 * n * np.eye(n)   # 2D - A is SPD, so Jacobi converges as well
    b = np.random.default_rng(seed + 1).standard_normal(n)
    return A, b

class TestSolverEdgeCases:

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_inputs_are_not_modified(self, method):
        A, b        = spd_problem()
        x0          = np.full(12, 0.25)
        A_c, b_c    = A.copy(), b.copy()
        x0_c        = x0.copy()

        res         = method(A, b, x0=x0, tol=1e-8, maxiter=500)

        assert res.converged
        assert np.array_equal(A, A_c)
        assert np.array_equal(b, b_c)
        assert np.array_equal(x0, x0_c)
        assert not np.shares_memory(res.x, x0)

    @pytest.mark.parametrize("method", PRECOND_SOLVERS)
    def test_preconditioner_is_not_modified(self, method):
        A, b        = spd_problem()
        P           = np.diag(np.diag(A))
        P_c         = P.copy()
        method(A, b, P, tol=1e-8, maxiter=500)
        assert np.array_equal(P, P_c)

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_exact_initial_guess(self, method):
        A, b        = spd_problem()
        x_ref       = np.linalg.solve(A, b)
        res         = method(A, A @ x_ref, x0=x_ref, tol=1e-6)
        assert res.converged
        assert res.iterations == 0
        assert len(res.history) == 1
        assert np.array_equal(res.x, x_ref)

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_zero_right_hand_side(self, method):
        A, _        = spd_problem()
        res         = method(A, np.zeros(12))
        assert res.converged
        assert res.iterations == 0
        assert res.history[0] == 0.0
        assert np.all(res.x == 0.0)

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_maxiter_exhausted(self, method):
        A, b        = spd_problem()
        res         = method(A, b, tol=1e-15, maxiter=2)
        assert not res.converged
        assert len(res.history) == 2
        assert res.iterations == 2
        assert res.residual_norm == res.history[-1]

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_tolerance_is_strict(self, method):
        A, b        = spd_problem()
        res         = method(A, b, tol=1.0, maxiter=10)
        # history[0] == 1.0 exactly for x0 = 0, not below tol
        assert res.history[0] == pytest.approx(1.0)
        assert len(res.history) >= 2

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_result_satisfies_tolerance(self, method):
        A, b        = spd_problem(seed=3)
        res         = method(A, b, tol=1e-9, maxiter=1000)
        assert res.converged
        assert np.linalg.norm(b - A @ res.x) / np.linalg.norm(b) < 1e-9

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_column_vector_rhs(self, method):
        A, b        = spd_problem()
        res         = method(A, b.reshape(-1, 1), tol=1e-8, maxiter=500)
        assert res.x.shape == (12,)

    # ---------------------------------------------------------------
    #! Errors
    # ---------------------------------------------------------------

    @pytest.mark.parametrize("P", [
        np.array([[1.0, 2.0], [2.0, 4.0]]),
        np.zeros((2, 2)),
        DiagonalOperator([1.0, 0.0]),
        TridiagonalOperator([1.0], [1.0, 1.0], [1.0]),
        sps.csr_matrix(np.array([[1.0, 1.0], [1.0, 1.0]])),
    ])
    @pytest.mark.parametrize("method", PRECOND_SOLVERS)
    def test_singular_preconditioner(self, method, P):
        A = np.array([[2.0, 0.5], [0.5, 3.0]])
        with pytest.raises(SolverError) as exc:
            method(A, np.ones(2), P)
        assert exc.value.code == SolverErrorMsg.MAT_SINGULAR

    @pytest.mark.parametrize("method", [jacobi, gauss_seidel])
    @pytest.mark.parametrize("fmt", ['dense', 'csr'])
    def test_zero_diagonal(self, method, fmt):
        A = np.array([[0.0, 1.0], [1.0, 2.0]])
        A = A if fmt == 'dense' else sps.csr_matrix(A)
        with pytest.raises(SolverError) as exc:
            method(A, np.ones(2))
        assert exc.value.code == SolverErrorMsg.ZERO_DIAGONAL

    @pytest.mark.parametrize("P", ['jacobi', 'gauss_seidel'])
    def test_zero_diagonal_preconditioner(self, P):
        A = np.array([[0.0, 1.0], [1.0, 2.0]])
        with pytest.raises(SolverError) as exc:
            richardson(A, np.ones(2), P)
        assert exc.value.code == SolverErrorMsg.ZERO_DIAGONAL

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_dimension_mismatch(self, method):
        A = np.eye(3) * 2.0
        with pytest.raises(SolverError) as exc:
            method(A, np.ones(4))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH
        with pytest.raises(SolverError) as exc:
            method(A, np.ones(3), x0=np.ones(2))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH
        with pytest.raises(SolverError) as exc:
            method(np.ones((3, 2)), np.ones(3))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    def test_preconditioner_dimension_mismatch(self):
        with pytest.raises(SolverError) as exc:
            richardson(np.eye(3), np.ones(3), np.eye(2))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    @pytest.mark.parametrize("kwargs", [
        {'tol': 0.0}, {'tol': -1e-3}, {'tol': np.nan}, {'maxiter': 0}, {'maxiter': -5}, {'tol': 'abc'},
    ])
    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_invalid_parameters(self, method, kwargs):
        with pytest.raises(SolverError) as exc:
            method(np.eye(2), np.ones(2), **kwargs)
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT

    @pytest.mark.parametrize("b", [np.array([1.0, np.nan]), np.array([1.0, np.inf]), np.array([1.0 + 1j, 2.0])])
    def test_invalid_rhs(self, b):
        with pytest.raises(SolverError) as exc:
            conjugate_gradient(np.eye(2), b)
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT

    @pytest.mark.parametrize("fmt", ['dense', 'csr', 'tridiagonal', 'diagonal'])
    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_non_finite_matrix(self, method, fmt):
        A = np.array([[2.0, np.nan], [0.0, 3.0]]) if fmt != 'diagonal' else np.diag([2.0, np.inf])
        A = {
            'dense'         : A,
            'csr'           : sps.csr_matrix(A),
            'tridiagonal'   : TridiagonalOperator.from_dense(A),
            'diagonal'      : DiagonalOperator(np.diag(A)),
        }[fmt]
        with pytest.raises(SolverError) as exc:
            method(A, np.ones(2))
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT

    @pytest.mark.parametrize("P", [
        np.array([[1.0, np.inf], [0.0, 1.0]]),
        sps.csr_matrix(np.array([[1.0, 0.0], [np.nan, 1.0]])),
        DiagonalOperator([1.0, np.nan]),
    ])
    @pytest.mark.parametrize("method", PRECOND_SOLVERS)
    def test_non_finite_preconditioner(self, method, P):
        with pytest.raises(SolverError) as exc:
            method(2.0 * np.eye(2), np.ones(2), P)
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT

    def test_preconditioner_instance_is_not_modified(self):
        from itersolve.algebra.preconditioners import JacobiPreconditioner
        pc      = JacobiPreconditioner().set(4.0 * np.eye(4))
        res     = richardson(np.diag([2.0, 4.0]), np.ones(2), pc, tol=1e-10)
        assert res.converged
        assert np.allclose(res.x, [0.5, 0.25])
        assert pc.n == 4
        assert np.allclose(pc(np.ones(4)), 0.25)

    @pytest.mark.parametrize("method", ALL_SOLVERS)
    def test_residual_norm_after_maxiter_belongs_to_previous_iterate(self, method):
        A, b    = spd_problem()
        seen    = []
        res     = method(A, b, tol=1e-15, maxiter=2, callback=lambda k, x: seen.append(x.copy()))
        assert len(seen) == 2
        assert np.array_equal(res.x, seen[-1])
        prev    = np.linalg.norm(b - A @ seen[0]) / np.linalg.norm(b)
        assert res.residual_norm == pytest.approx(prev, rel=1e-8)

    def test_invalid_preconditioner_identifier(self):
        with pytest.raises(SolverError) as exc:
            richardson(np.eye(2), np.ones(2), P='ilu')
        assert exc.value.code == SolverErrorMsg.PRECOND_INVALID
        with pytest.raises(SolverError) as exc:
            richardson(np.eye(2), np.ones(2), P=object())
        assert exc.value.code == SolverErrorMsg.PRECOND_INVALID

    def test_callback_gets_read_only_iterate(self):
        A, b = spd_problem()

        def callback(k, x):
            x[0] = 1.0

        with pytest.raises(ValueError):
            conjugate_gradient(A, b, callback=callback)

    def test_callback_counts_updates(self):
        A, b    = spd_problem()
        seen    = []
        res     = gauss_seidel(A, b, tol=1e-8, maxiter=500, callback=lambda k, x: seen.append(k))
        assert seen == list(range(1, res.iterations + 1))

    def test_error_message_format(self):
        err = SolverError(SolverErrorMsg.ZERO_DIAGONAL, "a_00 = 0")
        assert err.code.value == 114
        assert "ZERO_DIAGONAL" in str(err)
        assert "a_00 = 0" in str(err)
        assert str(SolverErrorMsg.MAT_SINGULAR) == "Mat Singular"

    def test_diagonally_dominant_jacobi_converges_from_random_start(self):
        A       = diagonally_dominant(16, rng=21)
        b       = np.ones(16)
        x0      = np.random.default_rng(22).standard_normal(16) * 100.0
        res     = jacobi(A, b, x0=x0, tol=1e-10, maxiter=300)
        assert res.converged
        assert np.allclose(A @ res.x, b, atol=1e-8)
