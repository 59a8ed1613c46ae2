"""Degree normalization of weight operators.

Given a weight operator W over n vertices and a degree vector d, the
diffusion operator used for relaxation is

    P = D^{-1/2} W D^{-1/2},   D^{-1/2} = diag(1 / sqrt(d + eps)).

The scaling is real and diagonal, so a Hermitian W gives a Hermitian P. The
`eps` floor keeps isolated vertices (d = 0) finite; hitting it is reported as
a NumericWarning, not an error.
"""

from __future__ import annotations

from warnings import warn

import numpy as np
from scipy.sparse import csr_array, diags_array

from .errors import NumericWarning


def _ae_degree_scalings(*, d: np.ndarray, eps: float) -> tuple[csr_array, csr_array]:
    """Return the diagonal operators (D^{1/2}, D^{-1/2}) of `d + eps`."""
    d = np.asarray(d, dtype=float)
    n = d.size

    n_floored = int(np.count_nonzero(d <= eps))
    if n_floored:
        warn(
            f"{n_floored} of {n} degrees are at or below eps={eps:.3g}; "
            "near-isolated vertices are floored",
            NumericWarning,
            stacklevel=3,
        )

    dsqrt = np.sqrt(d + eps)
    D_sqrt = diags_array(dsqrt, offsets=0, shape=(n, n), format="csr")
    D_sqrt_inv = diags_array(1.0 / dsqrt, offsets=0, shape=(n, n), format="csr")
    return D_sqrt, D_sqrt_inv


def _ae_normalize_degree(
    *,
    W,
    d: np.ndarray,
    eps: float,
) -> tuple[csr_array, csr_array, csr_array]:
    """Degree-normalize a weight operator.

    Parameters
    ----------
    W
        Sparse (n x n) weight operator, typically Hermitian and complex.
    d
        Degree vector of length n.
    eps
        Floor added to every degree.

    Returns
    -------
    P, D_sqrt, D_sqrt_inv
        P = D_sqrt_inv @ W @ D_sqrt_inv, plus the two diagonal scalings.
    """
    n = W.shape[0]
    if W.shape != (n, n) or np.size(d) != n:
        raise ValueError(f"weight operator {W.shape} does not match {np.size(d)} degrees")

    D_sqrt, D_sqrt_inv = _ae_degree_scalings(d=d, eps=eps)
    P = csr_array(D_sqrt_inv @ W @ D_sqrt_inv)
    P.sort_indices()
    return P, D_sqrt, D_sqrt_inv


def _ae_degree_from_weights(*, W) -> np.ndarray:
    """Row sums of |W|, the degrees of a (folded) weight operator."""
    return np.asarray(abs(W).sum(axis=1), dtype=float).ravel()
