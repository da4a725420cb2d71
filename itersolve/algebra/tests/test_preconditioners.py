import pytest
import numpy as np
import scipy.sparse as sps

from itersolve.algebra.solver import SolverError, SolverErrorMsg
from itersolve.algebra.operators import DiagonalOperator, TridiagonalOperator, SparseOperator
from itersolve.algebra.preconditioners import (
    PreconditionerType, Preconditioner, IdentityPreconditioner, JacobiPreconditioner,
    GaussSeidelPreconditioner, OperatorPreconditioner, CallablePreconditioner,
    choose_precond, prepare_precond, check_diagonal,
)
from itersolve.algebra.ran_matrices import diagonally_dominant, laplacian_1d

class TestPreconditioners:

    def setup_method(self):
        self.A = diagonally_dominant(8, rng=5)
        self.r = np.random.default_rng(6).standard_normal(8)

    def test_identity(self):
        pc = IdentityPreconditioner().set(self.A)
        assert pc.is_set
        assert pc.type is PreconditionerType.IDENTITY
        assert np.array_equal(pc(self.r), self.r)

    def test_jacobi(self):
        pc = JacobiPreconditioner().set(self.A)
        assert np.allclose(pc(self.r), self.r / np.diag(self.A))
        assert pc.n == 8

    @pytest.mark.parametrize("fmt", ['dense', 'csr', 'operator'])
    def test_gauss_seidel_formats(self, fmt):
        dense   = laplacian_1d(8, fmt='dense')
        a       = laplacian_1d(8, fmt=fmt)
        pc      = GaussSeidelPreconditioner().set(a)
        assert np.allclose(pc(self.r), np.linalg.solve(np.tril(dense), self.r))

    def test_gauss_seidel_dense(self):
        pc = GaussSeidelPreconditioner().set(self.A)
        assert np.allclose(np.tril(self.A) @ pc(self.r), self.r)

    @pytest.mark.parametrize("p_form", ['dense', 'diagonal', 'tridiagonal', 'sparse'])
    def test_operator_preconditioner(self, p_form):
        d       = np.diag(self.A)
        dense   = np.diag(d) + np.diag(np.full(7, 0.5), 1) + np.diag(np.full(7, -0.5), -1)
        p       = {
            'dense'         : dense,
            'diagonal'      : DiagonalOperator(d),
            'tridiagonal'   : TridiagonalOperator(np.full(7, -0.5), d, np.full(7, 0.5)),
            'sparse'        : SparseOperator(sps.csr_matrix(dense)),
        }[p_form]
        expected = np.linalg.solve(np.diag(d) if p_form == 'diagonal' else dense, self.r)
        pc = OperatorPreconditioner(p).set(self.A)
        assert np.allclose(pc(self.r), expected)

    def test_callable(self):
        pc = CallablePreconditioner(lambda r: 0.5 * r).set(self.A)
        assert np.allclose(pc(self.r), 0.5 * self.r)

    def test_callable_wrong_shape(self):
        pc = CallablePreconditioner(lambda r: r[:-1]).set(self.A)
        with pytest.raises(SolverError) as exc:
            pc(self.r)
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    # ---------------------------------------------------------------
    #! Errors
    # ---------------------------------------------------------------

    def test_not_set(self):
        with pytest.raises(SolverError) as exc:
            JacobiPreconditioner()(self.r)
        assert exc.value.code == SolverErrorMsg.PRECOND_INVALID

    def test_wrong_vector(self):
        pc = JacobiPreconditioner().set(self.A)
        with pytest.raises(SolverError) as exc:
            pc(np.ones(3))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    @pytest.mark.parametrize("cls", [JacobiPreconditioner, GaussSeidelPreconditioner])
    def test_zero_diagonal(self, cls):
        a = np.array([[1.0, 2.0], [3.0, 0.0]])
        with pytest.raises(SolverError) as exc:
            cls().set(a)
        assert exc.value.code == SolverErrorMsg.ZERO_DIAGONAL
        assert "index 1" in exc.value.message

    def test_check_diagonal(self):
        check_diagonal(np.array([1.0, -2.0]))
        with pytest.raises(SolverError):
            check_diagonal(np.array([1.0, 0.0]))

    def test_singular_matrix_fails_at_set(self):
        pc = OperatorPreconditioner(np.ones((8, 8)))
        with pytest.raises(SolverError) as exc:
            pc.set(self.A)
        assert exc.value.code == SolverErrorMsg.MAT_SINGULAR
        assert not pc.is_set

    def test_shape_mismatch(self):
        with pytest.raises(SolverError) as exc:
            OperatorPreconditioner(np.eye(3)).set(self.A)
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    def test_invalid_matrix(self):
        with pytest.raises(SolverError) as exc:
            OperatorPreconditioner(np.ones(3))
        assert exc.value.code == SolverErrorMsg.PRECOND_INVALID

    # ---------------------------------------------------------------
    #! Factory
    # ---------------------------------------------------------------

    @pytest.mark.parametrize("pid, cls", [
        ('identity',                    IdentityPreconditioner),
        ('Jacobi',                      JacobiPreconditioner),
        ('gauss-seidel',                GaussSeidelPreconditioner),
        ('GAUSS_SEIDEL',                GaussSeidelPreconditioner),
        (1,                             JacobiPreconditioner),
        (PreconditionerType.IDENTITY,   IdentityPreconditioner),
    ])
    def test_choose_by_identifier(self, pid, cls):
        assert type(choose_precond(pid)) is cls

    def test_choose_other_forms(self):
        assert choose_precond(None) is None
        pc = JacobiPreconditioner()
        assert choose_precond(pc) is pc
        assert isinstance(choose_precond(np.eye(2)), OperatorPreconditioner)
        assert isinstance(choose_precond([[1.0, 0.0], [0.0, 1.0]]), OperatorPreconditioner)
        assert isinstance(choose_precond(sps.identity(2, format='csr')), OperatorPreconditioner)
        assert isinstance(choose_precond(DiagonalOperator(np.ones(2))), OperatorPreconditioner)
        assert isinstance(choose_precond(lambda r: r), CallablePreconditioner)

    @pytest.mark.parametrize("pid", ['ilu', 42, PreconditionerType.OPERATOR, 'callable', 3.5])
    def test_choose_invalid(self, pid):
        with pytest.raises(SolverError) as exc:
            choose_precond(pid)
        assert exc.value.code == SolverErrorMsg.PRECOND_INVALID

    def test_prepare_precond(self):
        assert prepare_precond(None, self.A) is None
        pc = prepare_precond('jacobi', self.A)
        assert isinstance(pc, Preconditioner) and pc.is_set
        assert "Jacobi" in repr(pc)

    def test_prepare_precond_sets_up_a_copy(self):
        own = JacobiPreconditioner()
        pc  = prepare_precond(own, self.A)
        assert pc is not own
        assert pc.is_set and not own.is_set

    def test_non_finite_operator(self):
        with pytest.raises(SolverError) as exc:
            OperatorPreconditioner(np.diag([1.0, np.inf])).set(np.eye(2))
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT
