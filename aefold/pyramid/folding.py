"""Weight folding from one pyramid level to the next coarser one.

Each fold step consumes the running state (W, d) over the ne_cum[s] vertices
of level s and returns a new state over the nea = ne_cum[s-1] vertices of
level s-1. The state is never modified in place.

Two modes
---------
drop (transform_flag=False)
    Truncation. W is rebuilt directly from the first w_size_cum[s-1] edge
    triplets and d is the leading nea entries of the full degree vector. The
    weights of level s are discarded.

transform (transform_flag=True)
    Analytic elimination through the incremental constraints. With W split
    into its diagonal blocks Wa (coarse) and Wb (fine), and Ra the factor of
    Ua^H Ua,

        Wt1 = Ua (Ua^H Ua)^{-1} (-Ub^H Wb)
        Wt2 = Ua (Ua^H Ua)^{-1} (-Ub^H Wt1^H)
        W'  = Wa + Wt2^H

    i.e. W' = Wa + X Wb X^H with X = Ua (Ua^H Ua)^{-1} Ub^H, which is Hermitian
    whenever Wb is. Entries of W coupling the two partitions are dropped by
    the block split. New degrees are the row sums of |W'|.

    Wt1 and Wt2 are kept sparse throughout, so the cost follows the nonzeros
    of Ua, Ub, Wb and the factor rather than nea * neb.
"""

from __future__ import annotations

from scipy.sparse import csr_array

from .constraints import _ae_factor_normal, _ae_sparse_from_triplets
from .degree import _ae_degree_from_weights
from .types import AEFoldConfig, AEFoldState, AEIncrement, AEUnpacked


def _ae_initial_state(*, unpacked: AEUnpacked) -> AEFoldState:
    """Full-graph weight operator and degree vector (state of the finest level)."""
    ne = unpacked.ne
    W = _ae_sparse_from_triplets(
        rows=unpacked.wi, cols=unpacked.wj, vals=unpacked.wval, shape=(ne, ne)
    )
    return AEFoldState(W=W, d=unpacked.dval.copy())


def _ae_split_weights(*, W, nea: int) -> tuple[csr_array, csr_array]:
    """Return the coarse-coarse and fine-fine diagonal blocks of W."""
    n = W.shape[0]
    Wc = W.tocoo()
    wi, wj, wval = Wc.row, Wc.col, Wc.data

    in_a = (wi < nea) & (wj < nea)
    in_b = (wi >= nea) & (wj >= nea)

    Wa = _ae_sparse_from_triplets(
        rows=wi[in_a], cols=wj[in_a], vals=wval[in_a], shape=(nea, nea)
    )
    Wb = _ae_sparse_from_triplets(
        rows=wi[in_b] - nea, cols=wj[in_b] - nea, vals=wval[in_b], shape=(n - nea, n - nea)
    )
    return Wa, Wb


def _ae_fold_drop(*, unpacked: AEUnpacked, s: int) -> AEFoldState:
    """Drop level s: rebuild (W, d) of level s-1 from the problem vectors."""
    nea = int(unpacked.ne_cum[s - 1])
    sl = unpacked.edge_slice(s - 1)
    W = _ae_sparse_from_triplets(
        rows=unpacked.wi[sl], cols=unpacked.wj[sl], vals=unpacked.wval[sl], shape=(nea, nea)
    )
    return AEFoldState(W=W, d=unpacked.dval[:nea].copy())


def _ae_fold_transform(
    *,
    state: AEFoldState,
    inc: AEIncrement,
    tol: float,
    level: int,
) -> AEFoldState:
    """Eliminate the fine partition of level `level` into the coarse one.

    Parameters
    ----------
    state
        Running state over the neb vertices of this level.
    inc
        Raw incremental constraint blocks Ua (nea x nu) and Ub (nb x nu).
    tol
        Drop tolerance for the factor of Ua^H Ua.
    level
        Level index, used for error reporting.

    Returns
    -------
    state
        New state over the nea coarse vertices.

    Raises
    ------
    FactorizationError
        If Ua^H Ua cannot be factored (path "solve").
    """
    nea, neb = inc.nea, inc.neb
    if state.n != neb:
        raise ValueError(f"fold state has {state.n} vertices, expected {neb}")

    Ra = _ae_factor_normal(U=inc.Ua, tol=tol, level=level, path="solve")
    Wa, Wb = _ae_split_weights(W=state.W, nea=nea)

    # Ra.solve keeps sparse right-hand sides sparse
    UbH = csr_array(inc.Ub.conj().T)
    Wt = csr_array(inc.Ua @ Ra.solve(csr_array(-(UbH @ Wb))))
    Wt = csr_array(inc.Ua @ Ra.solve(csr_array(-(UbH @ Wt.conj().T))))

    W = csr_array(Wa + Wt.conj().T)
    W.eliminate_zeros()
    W.sort_indices()
    return AEFoldState(W=W, d=_ae_degree_from_weights(W=W))


def _ae_fold_weights(
    *,
    unpacked: AEUnpacked,
    state: AEFoldState,
    inc: AEIncrement,
    s: int,
    config: AEFoldConfig,
) -> AEFoldState:
    """Produce the state of level s-1 from the state of level s."""
    if config.transform_flag:
        return _ae_fold_transform(state=state, inc=inc, tol=config.tol_ichol, level=s)
    return _ae_fold_drop(unpacked=unpacked, s=s)
