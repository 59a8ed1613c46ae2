"""Threshold incomplete Cholesky factorization of normal-equations matrices.

The constraint projections of the AE solver need approximate solves with
normal-equations matrices M = U^H U. This module provides the factorization
primitive

    ichol(M, tol) -> ICholFactor     (or raises FactorizationError)

with R upper triangular and R^H R ~= M. The factor is only ever used through
two triangular solves, `R \\ (R^H \\ b)`, which is what `ICholFactor.solve`
does; no explicit inverse is formed.

Algorithm
---------
Left-looking, column-oriented Cholesky on the lower factor L = R^H. Column j
is formed from M[j:, j] minus the contributions of the previous columns that
have a nonzero in row j. Off-diagonal entries with

    |L[i, j]| < tol * ||M[:, j]||_2

are dropped; the diagonal is never dropped. With `tol = 0` this is the exact
Cholesky factorization (up to rounding).

Forming U^H U squares the condition number of U, so `tol` should stay small
(the default is 2^-20).

Cost
----
The column loop runs in Python; each column costs one vectorized update per
earlier column linked to its row. The factorization time therefore grows
with the number of constraint columns plus the kept fill, and dominates the
fold when a level carries many thousands of constraint columns.

Sparse right-hand sides are solved column by column with `spsolve` and stay
sparse; dense ones go through `spsolve_triangular`.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.sparse import csc_array, csr_array, issparse
from scipy.sparse.linalg import spsolve, spsolve_triangular

from .errors import FactorizationError


@dataclass(slots=True, frozen=True, eq=False)
class ICholFactor:
    """Incomplete Cholesky factor of a Hermitian matrix M.

    Attributes
    ----------
    R
        Upper-triangular CSR factor with R^H R ~= M.
    L
        Lower-triangular CSR factor, L = R^H (kept for the forward solve).
    tol
        Drop tolerance the factor was computed with.
    """

    R: csr_array
    L: csr_array
    tol: float

    @property
    def shape(self) -> tuple[int, int]:
        return self.R.shape

    @property
    def nnz(self) -> int:
        return int(self.R.nnz)

    def solve(self, B):
        """Approximately solve (R^H R) X = B by two triangular solves.

        Parameters
        ----------
        B
            Right-hand side of shape (n,) or (n, k); dense or sparse.

        Returns
        -------
        X
            Solution with the shape of B. Sparse B gives a sparse CSR X, so
            the cost follows the nonzeros of B and the factor, not n * k.
        """
        if issparse(B):
            return self._solve_sparse(B)

        B = np.asarray(B)
        n = self.R.shape[0]
        if B.shape[0] != n:
            raise ValueError(f"right-hand side has {B.shape[0]} rows, expected {n}")

        dtype = np.result_type(self.R.dtype, B.dtype, float)
        if n == 0 or B.size == 0:
            return np.zeros(B.shape, dtype=dtype)

        Z = spsolve_triangular(self.L, B.astype(dtype), lower=True)
        return spsolve_triangular(self.R, Z, lower=False)

    def _solve_sparse(self, B) -> csr_array:
        n = self.R.shape[0]
        if B.ndim != 2:
            raise ValueError("sparse right-hand side must be two-dimensional")
        if B.shape[0] != n:
            raise ValueError(f"right-hand side has {B.shape[0]} rows, expected {n}")

        dtype = np.result_type(self.R.dtype, B.dtype, float)
        B = csc_array(B, dtype=dtype)
        if n == 0 or B.shape[1] == 0 or B.nnz == 0:
            return csr_array(B.shape, dtype=dtype)

        # spsolve keeps sparse right-hand sides sparse; the factors are cast
        # to the result dtype since spsolve returns the dtype of its matrix
        Z = _spsolve_csc(csc_array(self.L, dtype=dtype), B)
        X = _spsolve_csc(csc_array(self.R, dtype=dtype), Z)
        X.eliminate_zeros()
        return csr_array(X)


def _spsolve_csc(T: csc_array, B: csc_array) -> csc_array:
    """Sparse solve with a sparse right-hand side, always returning CSC of B's shape."""
    X = spsolve(T, B)
    if issparse(X):
        return csc_array(X)
    # spsolve densifies single-column right-hand sides
    return csc_array(np.asarray(X).reshape(B.shape))


def ichol(M, tol: float = 2.0 ** -20) -> ICholFactor:
    """Threshold incomplete Cholesky factorization of a Hermitian matrix.

    Parameters
    ----------
    M
        Square Hermitian positive (semi)definite matrix, sparse or dense.
    tol
        Relative drop tolerance, >= 0.

    Returns
    -------
    factor
        ICholFactor with R^H R ~= M.

    Raises
    ------
    FactorizationError
        If a pivot is non-positive or non-finite. `column` is set to the
        offending column.
    ValueError
        If M is not square or tol is negative.
    """
    if tol < 0:
        raise ValueError(f"drop tolerance must be nonnegative, got {tol!r}")

    A = csc_array(M)
    n, m = A.shape
    if n != m:
        raise ValueError("expected square matrix")

    dtype = np.result_type(A.dtype, float)
    if n == 0:
        empty = csr_array((0, 0), dtype=dtype)
        return ICholFactor(R=empty, L=empty.copy(), tol=float(tol))

    A.sum_duplicates()
    A.sort_indices()

    col_of = np.repeat(np.arange(n), np.diff(A.indptr))
    col_norm = np.sqrt(np.bincount(col_of, weights=np.abs(A.data) ** 2, minlength=n))
    thresh = tol * col_norm

    L_rows: list[np.ndarray] = []
    L_vals: list[np.ndarray] = []
    # row_links[i] holds (k, L[i, k]) for the kept off-diagonal entries of row i
    row_links: list[list[tuple[int, complex]]] = [[] for _ in range(n)]
    work = np.zeros(n, dtype=dtype)

    for j in range(n):
        lo, hi = A.indptr[j], A.indptr[j + 1]
        rows = A.indices[lo:hi]
        vals = A.data[lo:hi]
        lower = rows >= j

        touched = [np.array([j]), rows[lower]]
        work[rows[lower]] = vals[lower]

        for k, ljk in row_links[j]:
            rk = L_rows[k]
            vk = L_vals[k]
            start = int(np.searchsorted(rk, j))
            work[rk[start:]] -= vk[start:] * np.conj(ljk)
            touched.append(rk[start:])

        idx = np.unique(np.concatenate(touched))
        pivot = float(np.real(work[j]))
        if not np.isfinite(pivot) or pivot <= 0.0:
            raise FactorizationError(
                f"non-positive pivot {pivot:.3e} in incomplete Cholesky", column=j
            )

        diag = np.sqrt(pivot)
        off = idx[idx > j]
        lv = work[off] / diag
        work[idx] = 0

        keep = (lv != 0) & (np.abs(lv) >= thresh[j])
        off = off[keep]
        lv = lv[keep]

        L_rows.append(np.concatenate(([j], off)).astype(np.int64))
        L_vals.append(np.concatenate(([diag], lv)).astype(dtype))
        for r, v in zip(off.tolist(), lv.tolist()):
            row_links[r].append((j, v))

    indptr = np.zeros(n + 1, dtype=np.int64)
    indptr[1:] = np.cumsum([r.size for r in L_rows])
    L = csc_array(
        (np.concatenate(L_vals), np.concatenate(L_rows), indptr), shape=(n, n)
    )
    R = csr_array(L.conj().T)
    return ICholFactor(R=R, L=L.tocsr(), tol=float(tol))
