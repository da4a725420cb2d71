import pytest
import numpy as np
import scipy.sparse as sps

from itersolve.algebra.solver import SolverError, SolverErrorMsg
from itersolve.algebra.operators import (
    OperatorKind, DenseOperator, DiagonalOperator, TridiagonalOperator, SparseOperator,
    as_operator, identity, apply, solve, prepare_system,
)

def tridiag_dense(n=6):
    rng     = np.random.default_rng(4)
    lo, up  = rng.standard_normal(n - 1), rng.standard_normal(n - 1)
    d       = 4.0 + rng.random(n)
    return lo, d, up, np.diag(d) + np.diag(lo, -1) + np.diag(up, 1)

def all_variants(n=6):
    ''' The same matrix in every representation. '''
    lo, d, up, dense = tridiag_dense(n)
    return [
        DenseOperator(dense),
        TridiagonalOperator(lo, d, up),
        SparseOperator(sps.csr_matrix(dense)),
    ], dense

class TestOperators:

    def test_kinds(self):
        ops, _ = all_variants()
        assert [op.kind for op in ops] == [OperatorKind.DENSE, OperatorKind.TRIDIAGONAL, OperatorKind.SPARSE]
        assert DiagonalOperator([1.0, 2.0]).kind is OperatorKind.DIAGONAL

    def test_apply_agrees_with_dense(self):
        ops, dense  = all_variants()
        v           = np.arange(1.0, 7.0)
        for op in ops:
            assert op.shape == (6, 6)
            assert np.allclose(op.apply(v), dense @ v)
            assert np.allclose(op @ v, dense @ v)
            assert np.allclose(apply(op, v), dense @ v)

    def test_solve_agrees_with_dense(self):
        ops, dense  = all_variants()
        r           = np.linspace(-1.0, 1.0, 6)
        expected    = np.linalg.solve(dense, r)
        for op in ops:
            assert np.allclose(op.solve(r), expected)
            assert np.allclose(op.factorize()(r), expected)

    def test_conversions(self):
        ops, dense = all_variants()
        for op in ops:
            assert np.allclose(op.to_dense(), dense)
            assert np.allclose(op.to_csr().toarray(), dense)
            assert np.allclose(op.diagonal(), np.diag(dense))
            assert np.allclose(op.lower().to_dense(), np.tril(dense))

    def test_diagonal_operator(self):
        op = DiagonalOperator([2.0, 4.0, 8.0])
        assert np.allclose(op.apply(np.ones(3)), [2.0, 4.0, 8.0])
        assert np.allclose(op.solve(np.ones(3)), [0.5, 0.25, 0.125])
        assert np.allclose(op.to_dense(), np.diag([2.0, 4.0, 8.0]))
        assert np.allclose(identity(3).apply(np.arange(3.0)), np.arange(3.0))

    def test_tridiagonal_from_dense(self):
        _, _, _, dense  = tridiag_dense()
        op              = TridiagonalOperator.from_dense(dense)
        lo, d, up       = op.bands
        assert np.allclose(lo, np.diag(dense, -1))
        assert np.allclose(d, np.diag(dense))
        assert np.allclose(up, np.diag(dense, 1))

    def test_tridiagonal_size_one(self):
        op = TridiagonalOperator([], [3.0], [])
        assert np.allclose(op.apply(np.array([2.0])), [6.0])
        assert np.allclose(op.solve(np.array([3.0])), [1.0])
        assert op.to_csr().shape == (1, 1)

    def test_operators_do_not_modify_input(self):
        _, dense    = all_variants()
        dense_c     = dense.copy()
        op          = DenseOperator(dense)
        op.factorize()
        op.solve(np.ones(6))
        assert np.array_equal(dense, dense_c)

    def test_is_finite(self):
        ops, _ = all_variants()
        assert all(op.is_finite() for op in ops)
        assert DiagonalOperator([1.0, 2.0]).is_finite()
        assert not DenseOperator([[1.0, np.nan], [0.0, 1.0]]).is_finite()
        assert not DiagonalOperator([1.0, np.inf]).is_finite()
        assert not TridiagonalOperator([np.nan], [1.0, 1.0], [0.0]).is_finite()
        assert not SparseOperator(sps.csr_matrix(np.array([[1.0, 0.0], [0.0, -np.inf]]))).is_finite()

    def test_dense_factorize_non_finite(self):
        with pytest.raises(SolverError) as exc:
            DenseOperator([[1.0, np.inf], [0.0, 1.0]]).factorize()
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT

    def test_sparse_duplicates_are_summed(self):
        m   = sps.coo_matrix(([1.0, 2.0, 5.0], ([0, 0, 1], [0, 0, 1])), shape=(2, 2))
        op  = SparseOperator(m)
        assert np.allclose(op.diagonal(), [3.0, 5.0])

    # ---------------------------------------------------------------
    #! Dispatch
    # ---------------------------------------------------------------

    def test_as_operator(self):
        dense = np.eye(3)
        assert isinstance(as_operator(dense), DenseOperator)
        assert isinstance(as_operator([[1.0, 0.0], [0.0, 1.0]]), DenseOperator)
        assert isinstance(as_operator(sps.csr_matrix(dense)), SparseOperator)
        assert isinstance(as_operator(sps.csc_matrix(dense)), SparseOperator)
        op = DiagonalOperator(np.ones(3))
        assert as_operator(op) is op

    def test_as_operator_rejects(self):
        with pytest.raises(SolverError) as exc:
            as_operator(np.ones(3))
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT
        with pytest.raises(SolverError) as exc:
            as_operator(np.eye(2) * 1j)
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT
        with pytest.raises(SolverError) as exc:
            as_operator(np.ones((2, 3)))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    def test_vector_shape_checked(self):
        ops, _ = all_variants()
        for op in ops:
            with pytest.raises(SolverError) as exc:
                op.apply(np.ones(5))
            assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    def test_bad_bands(self):
        with pytest.raises(SolverError) as exc:
            TridiagonalOperator([1.0, 1.0], [1.0, 1.0], [1.0])
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH
        with pytest.raises(SolverError) as exc:
            DiagonalOperator(np.eye(2))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH

    @pytest.mark.parametrize("p", [
        np.array([[1.0, 2.0], [2.0, 4.0]]),
        DiagonalOperator([0.0, 1.0]),
        TridiagonalOperator([2.0], [1.0, 4.0], [2.0]),
        sps.csr_matrix((2, 2)),
    ])
    def test_singular_solve(self, p):
        with pytest.raises(SolverError) as exc:
            solve(p, np.ones(2))
        assert exc.value.code == SolverErrorMsg.MAT_SINGULAR

    # ---------------------------------------------------------------
    #! System validation
    # ---------------------------------------------------------------

    def test_prepare_system_copies(self):
        a       = np.eye(3) * 2.0
        b       = np.array([1, 2, 3])          # integer input is converted
        x0      = np.ones(3)
        op, bb, x = prepare_system(a, b, x0)
        assert bb.dtype == np.float64
        assert not np.shares_memory(bb, b)
        assert not np.shares_memory(x, x0)
        x[0] = 10.0
        assert x0[0] == 1.0

    def test_prepare_system_default_guess(self):
        _, _, x = prepare_system(np.eye(4), np.ones((4, 1)))
        assert np.array_equal(x, np.zeros(4))

    def test_prepare_system_rejects(self):
        with pytest.raises(SolverError) as exc:
            prepare_system(np.eye(2), np.ones(2), x0=np.array([np.nan, 0.0]))
        assert exc.value.code == SolverErrorMsg.INVALID_INPUT
        with pytest.raises(SolverError) as exc:
            prepare_system(np.eye(2), np.ones((2, 2)))
        assert exc.value.code == SolverErrorMsg.DIM_MISMATCH
