"""Constraint operators for one pyramid level.

Two pieces are built here:

1) The level's constraint operator
       U = D^{-1/2} U_raw     (U_raw from the first u_size_cum[s] triplets)
   together with an incomplete Cholesky factor R of U^H U, used by the solver
   for constraint projection within the level.

2) The incremental blocks of the constraints introduced at level s. With
   nea = ne_cum[s-1] the number of vertices surviving on the coarser level,
   the incremental constraint matrix splits into
       Ua : rows <  nea  (constraints touching surviving coarse vertices)
       Ub : rows >= nea  (re-based to start at 0)
   and Rb factors Ub^H Ub. The solver interpolates with the degree-normalized
   exports Da^{-1/2} Ua and Db^{1/2} Ub, where Da, Db are the diagonal blocks
   of the current level's degrees.
"""

from __future__ import annotations

import numpy as np
from scipy.sparse import csr_array, diags_array

from .errors import FactorizationError
from .factor import ICholFactor, ichol
from .types import ABSENT, AEIncrement, MaybeFactor, MaybeSparse


def _ae_sparse_from_triplets(
    *,
    rows: np.ndarray,
    cols: np.ndarray,
    vals: np.ndarray,
    shape: tuple[int, int],
) -> csr_array:
    """Compress (row, col, value) triplets into CSR; duplicate entries are summed."""
    A = csr_array(
        (np.asarray(vals), (np.asarray(rows, dtype=np.int64), np.asarray(cols, dtype=np.int64))),
        shape=shape,
    )
    A.sum_duplicates()
    A.sort_indices()
    return A


def _ae_factor_normal(*, U, tol: float, level: int, path: str) -> ICholFactor:
    """Factor U^H U, tagging any failure with the level index and path."""
    M = csr_array(U.conj().T @ U)
    try:
        return ichol(M, tol)
    except FactorizationError as e:
        raise e.with_context(level=level, path=path) from e


def _ae_assemble_constraints(
    *,
    rows: np.ndarray,
    cols: np.ndarray,
    vals: np.ndarray,
    shape: tuple[int, int],
    D_sqrt_inv,
    tol: float,
    level: int,
) -> tuple[MaybeSparse, MaybeFactor]:
    """Build the degree-normalized constraint operator of a level and factor it.

    Parameters
    ----------
    rows, cols, vals
        Constraint triplets active on this level.
    shape
        (ne_cum[s], nu_cum[s]).
    D_sqrt_inv
        Inverse square-root degree scaling of this level, (ne_cum[s] x ne_cum[s]).
    tol
        Incomplete Cholesky drop tolerance.
    level
        Level index, used for error reporting.

    Returns
    -------
    U, R
        The normalized operator and the factor of U^H U, or (ABSENT, ABSENT)
        when the level has no constraint columns or no stored entries.
    """
    if shape[1] == 0:
        return ABSENT, ABSENT

    U = _ae_sparse_from_triplets(rows=rows, cols=cols, vals=vals, shape=shape)
    U.eliminate_zeros()
    if U.nnz == 0:
        return ABSENT, ABSENT

    U = csr_array(D_sqrt_inv @ U)
    R = _ae_factor_normal(U=U, tol=tol, level=level, path="constraint")
    return U, R


def _ae_split_increment(
    *,
    rows: np.ndarray,
    cols: np.ndarray,
    vals: np.ndarray,
    nea: int,
    neb: int,
    nu: int,
    col_offset: int,
    tol: float,
    level: int,
) -> AEIncrement:
    """Split the constraints introduced at a level into coarse and fine blocks.

    Parameters
    ----------
    rows, cols, vals
        Incremental constraint triplets (global vertex rows, global columns).
    nea
        Number of vertices on the next coarser level, ne_cum[s-1].
    neb
        Number of vertices on this level, ne_cum[s].
    nu
        Number of constraint columns introduced at this level, nu_arr[s].
    col_offset
        nu_cum[s-1]; subtracted from the columns to re-base them.
    tol, level
        Factorization tolerance and level index for error reporting.

    Returns
    -------
    inc
        AEIncrement holding raw Ua, Ub and the factor Rb of Ub^H Ub.
    """
    rows = np.asarray(rows, dtype=np.int64)
    cols = np.asarray(cols, dtype=np.int64) - int(col_offset)
    vals = np.asarray(vals)

    in_a = rows < nea
    in_b = ~in_a

    Ua = _ae_sparse_from_triplets(
        rows=rows[in_a], cols=cols[in_a], vals=vals[in_a], shape=(nea, nu)
    )
    Ub = _ae_sparse_from_triplets(
        rows=rows[in_b] - nea, cols=cols[in_b], vals=vals[in_b], shape=(neb - nea, nu)
    )

    Rb = _ae_factor_normal(U=Ub, tol=tol, level=level, path="incremental")
    return AEIncrement(Ua=Ua, Ub=Ub, Rb=Rb, nea=int(nea), neb=int(neb))


def _ae_export_increment(
    *,
    inc: AEIncrement,
    D_sqrt_inv,
    D_sqrt,
) -> tuple[csr_array, csr_array]:
    """Degree-normalize the incremental blocks with the current level's scalings.

    Returns
    -------
    Ua_n, Ub_n
        Da^{-1/2} Ua and Db^{1/2} Ub, where Da, Db are the leading nea and
        trailing neb - nea diagonal blocks of the current degrees.
    """
    nea, neb = inc.nea, inc.neb
    dval_sqrt_inv = D_sqrt_inv.diagonal()
    dval_sqrt = D_sqrt.diagonal()

    Da_sqrt_inv = diags_array(dval_sqrt_inv[:nea], offsets=0, shape=(nea, nea), format="csr")
    Db_sqrt = diags_array(dval_sqrt[nea:neb], offsets=0, shape=(neb - nea, neb - nea), format="csr")

    Ua_n = csr_array(Da_sqrt_inv @ inc.Ua)
    Ub_n = csr_array(Db_sqrt @ inc.Ub)
    return Ua_n, Ub_n
