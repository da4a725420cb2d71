r"""
Test problems for the iterative solvers.

- random_spd:           U diag(s) U^T with U orthogonal from the SVD of a Gaussian matrix
- diagonally_dominant:  Gaussian matrix with a large positive diagonal shift
- laplacian_1d:         tridiagonal [-1, 2, -1] second difference matrix
- laplacian_2d:         five point Laplacian on an L x L grid (sparse)
"""

from typing import Optional, Union

import numpy as np
import numpy.random as npr
import scipy.sparse as sps

from .operators import TridiagonalOperator, SparseOperator


def _rng(rng: Optional[Union[int, npr.Generator]]) -> npr.Generator:
    if isinstance(rng, npr.Generator):
        return rng
    return npr.default_rng(rng)


def random_spd(n: int, cond: Optional[float] = None, rng: Optional[Union[int, npr.Generator]] = None) -> np.ndarray:
    """
    Random symmetric positive definite matrix U diag(s) U^T.

    Without `cond` the spectrum s is the set of singular values of an n x n
    Gaussian matrix. With `cond` the eigenvalues are spaced geometrically
    between 1 and `cond`, so the two-norm condition number equals `cond`.
    """
    gen         = _rng(rng)
    u, s, _     = np.linalg.svd(gen.standard_normal((n, n)))
    if cond is not None:
        if cond < 1:
            raise ValueError(f"cond must be >= 1, got {cond}")
        s = np.geomspace(1.0, float(cond), n)
    a = (u * np.abs(s)) @ u.T
    return 0.5 * (a + a.T)


def diagonally_dominant(n: int, rng: Optional[Union[int, npr.Generator]] = None,
                        shift: float = 15.0, spread: float = 50.0) -> np.ndarray:
    """
    Gaussian n x n matrix plus diag(shift + spread * U(0,1)).

    The off-diagonal part has spectral norm close to 2 sqrt(n), hence for
    4n < shift^2 the Jacobi iteration matrix I - D^{-1}A has norm below one
    while unpreconditioned Richardson diverges.
    """
    gen = _rng(rng)
    return gen.standard_normal((n, n)) + np.diag(shift + spread * gen.random(n))


def laplacian_1d(n: int, fmt: str = 'operator'):
    """
    Second difference matrix tridiag(-1, 2, -1) of size n.

    Args:
        fmt: 'operator' (TridiagonalOperator), 'dense' or 'csr'.
    """
    off = -np.ones(n - 1)
    op  = TridiagonalOperator(off, 2.0 * np.ones(n), off.copy())
    if fmt == 'operator':
        return op
    if fmt == 'dense':
        return op.to_dense()
    if fmt == 'csr':
        return op.to_csr()
    raise ValueError(f"Unknown format: {fmt}")


def laplacian_2d(L: int) -> SparseOperator:
    """
    Five point Laplacian on an L x L grid with Dirichlet boundary, n = L^2.
    """
    t   = laplacian_1d(L, fmt='csr')
    eye = sps.identity(L, format='csr')
    return SparseOperator(sps.kron(eye, t) + sps.kron(t, eye))
