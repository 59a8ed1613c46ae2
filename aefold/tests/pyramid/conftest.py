"""Shared problem builders for the pyramid fold tests."""

from __future__ import annotations

import numpy as np
import pytest

from aefold import AEProblem


def _hermitian_edges(pairs, cval, tval):
    """Expand undirected (i, j) pairs into both directions with conjugate phases."""
    wi, wj, cv, tv = [], [], [], []
    for (i, j), c, t in zip(pairs, cval, tval):
        wi += [i, j]
        wj += [j, i]
        cv += [c, c]
        tv += [t, -t]
    return wi, wj, cv, tv


def _dense_weights(wi, wj, cval, tval, n):
    """Dense complex weight matrix from magnitude/phase triplets (duplicates summed)."""
    W = np.zeros((n, n), dtype=complex)
    np.add.at(W, (np.asarray(wi), np.asarray(wj)), np.asarray(cval) * np.exp(1j * np.asarray(tval)))
    return W


def _make_problem(*, ne_arr, nu_arr, level_edges, level_constraints, dval=None):
    """Assemble an AEProblem from per-level edge and constraint lists.

    level_edges[s] is a list of (i, j, c, t) undirected edges introduced at
    level s; level_constraints[s] is a list of (row, col, value) entries
    introduced at level s (global column indices).
    """
    ne_cum = np.cumsum(ne_arr)
    nu_cum = np.cumsum(nu_arr)

    wi, wj, cv, tv, w_size_cum = [], [], [], [], []
    for edges in level_edges:
        if edges:
            a, b, c, d = _hermitian_edges(
                [(i, j) for i, j, _, _ in edges],
                [e[2] for e in edges],
                [e[3] for e in edges],
            )
            wi += a
            wj += b
            cv += c
            tv += d
        w_size_cum.append(len(wi))

    ui, uj, uval, u_size_cum = [], [], [], []
    for entries in level_constraints:
        for r, c, v in entries:
            ui.append(r)
            uj.append(c)
            uval.append(v)
        u_size_cum.append(len(ui))

    if dval is None:
        W = _dense_weights(wi, wj, cv, tv, int(ne_cum[-1]))
        dval = np.abs(W).sum(axis=1)

    return AEProblem(
        ne_arr=ne_arr,
        ne_cum=ne_cum,
        nu_arr=nu_arr,
        nu_cum=nu_cum,
        w_size_cum=w_size_cum,
        u_size_cum=u_size_cum,
        wi=wi,
        wj=wj,
        cval=cv,
        tval=tv,
        ui=ui,
        uj=uj,
        uval=uval,
        dval=dval,
    )


@pytest.fixture
def make_problem():
    """Builder for AEProblems from per-level edge and constraint lists."""
    return _make_problem


@pytest.fixture
def dense_weights():
    """Dense reference weight matrix from magnitude/phase triplets."""
    return _dense_weights


@pytest.fixture
def two_level_problem():
    """2 coarse + 2 fine vertices, one constraint linking the partitions.

    Edge (0, 1) is coarse, (2, 3) fine and (1, 2) crosses the partitions.
    """
    return _make_problem(
        ne_arr=[2, 2],
        nu_arr=[0, 1],
        level_edges=[
            [(0, 1, 1.0, 0.3)],
            [(2, 3, 2.0, 0.0), (1, 2, 0.5, -0.7)],
        ],
        level_constraints=[
            [],
            [(0, 0, 1.0), (1, 0, 0.5), (2, 0, -1.0), (3, 0, -0.5)],
        ],
    )


@pytest.fixture
def three_level_problem():
    """Random Hermitian three-level problem with well-posed constraints."""
    rng = np.random.default_rng(7)
    ne_arr = [4, 3, 3]
    ne_cum = np.cumsum(ne_arr)

    level_edges = [[(0, 1, 1.0, 0.2), (1, 2, 0.7, -1.1), (2, 3, 1.3, 0.4), (0, 3, 0.9, 2.0)]]
    for s in (1, 2):
        lo, hi = int(ne_cum[s - 1]), int(ne_cum[s])
        edges = []
        for v in range(lo, hi):
            for u in rng.choice(v, size=2, replace=False):
                edges.append((int(u), v, float(rng.uniform(0.5, 2.0)), float(rng.uniform(-np.pi, np.pi))))
        level_edges.append(edges)

    level_constraints = [[(0, 0, 1.0), (1, 0, -1.0)]]
    col = 1
    for s in (1, 2):
        lo, hi = int(ne_cum[s - 1]), int(ne_cum[s])
        coarse = rng.choice(lo, size=2, replace=False)
        entries = []
        for k in range(2):
            entries.append((int(coarse[k]), col, 1.0))
            entries.append((lo + k, col, -1.0))
            col += 1
        level_constraints.append(entries)

    return _make_problem(
        ne_arr=ne_arr,
        nu_arr=[1, 2, 2],
        level_edges=level_edges,
        level_constraints=level_constraints,
    )
