"""Level-by-level assembly of the AE pyramid operators.

This module provides:
  - the per-level step (degree normalization, constraint assembly, incremental
    split and weight fold),
  - the loop over levels from the finest to the coarsest,
  - packing of the per-level records into the solver's operator array.

The loop is a small state machine over level indices s = L-1, ..., 0. The
running state (W, d) starts as the full graph; the step at level s > 0 ends
by producing the state of level s-1, and the step at s = 0 ends the loop.
Any error aborts the whole assembly.
"""

from __future__ import annotations

from .constraints import (
    _ae_assemble_constraints,
    _ae_export_increment,
    _ae_split_increment,
)
from .degree import _ae_normalize_degree
from .folding import _ae_fold_weights, _ae_initial_state
from .stats import AELevelStats, _ae_finalize_level_stats, _ae_print_level_summary
from .types import ABSENT, AEFoldConfig, AEFoldState, AELevelOps, AEOperators, AEUnpacked


def _ae_process_level(
    *,
    unpacked: AEUnpacked,
    state: AEFoldState,
    s: int,
    config: AEFoldConfig,
) -> tuple[AELevelOps, AEFoldState | None, AELevelStats]:
    """Assemble the operators of level s and fold the state to level s-1.

    Parameters
    ----------
    unpacked
        Validated problem.
    state
        Running (W, d) over the ne_cum[s] vertices of this level.
    s
        Level index (0 = coarsest).
    config
        Fold configuration.

    Returns
    -------
    ops, next_state, stats
        The level's operators, the state of level s-1 (None when s == 0) and
        the level's diagnostics.
    """
    stats = AELevelStats(level=s, n=state.n)
    tol = config.tol_ichol

    with stats.timeit("normalize"):
        P, D_sqrt, D_sqrt_inv = _ae_normalize_degree(W=state.W, d=state.d, eps=config.eps)

    with stats.timeit("constraints"):
        sl = unpacked.constraint_slice(s)
        U, R = _ae_assemble_constraints(
            rows=unpacked.ui[sl],
            cols=unpacked.uj[sl],
            vals=unpacked.uval[sl],
            shape=(int(unpacked.ne_cum[s]), int(unpacked.nu_cum[s])),
            D_sqrt_inv=D_sqrt_inv,
            tol=tol,
            level=s,
        )

    if s == 0:
        ops = AELevelOps(P=P, U=U, R=R, Ua=ABSENT, Ub=ABSENT, Rb=ABSENT)
        _ae_finalize_level_stats(stats=stats, ops=ops, n_coarse=None)
        return ops, None, stats

    with stats.timeit("split"):
        sl = unpacked.increment_slice(s)
        inc = _ae_split_increment(
            rows=unpacked.ui[sl],
            cols=unpacked.uj[sl],
            vals=unpacked.uval[sl],
            nea=int(unpacked.ne_cum[s - 1]),
            neb=int(unpacked.ne_cum[s]),
            nu=int(unpacked.nu_arr[s]),
            col_offset=int(unpacked.nu_cum[s - 1]),
            tol=tol,
            level=s,
        )
        Ua, Ub = _ae_export_increment(inc=inc, D_sqrt_inv=D_sqrt_inv, D_sqrt=D_sqrt)

    with stats.timeit("fold"):
        next_state = _ae_fold_weights(
            unpacked=unpacked, state=state, inc=inc, s=s, config=config
        )

    ops = AELevelOps(P=P, U=U, R=R, Ua=Ua, Ub=Ub, Rb=inc.Rb)
    _ae_finalize_level_stats(stats=stats, ops=ops, n_coarse=next_state.n)
    return ops, next_state, stats


def _ae_build_pyramid(
    *,
    unpacked: AEUnpacked,
    config: AEFoldConfig,
) -> tuple[list[AELevelOps], list[AELevelStats]]:
    """Run the fold from the finest level to the coarsest.

    Returns
    -------
    level_ops, level_stats
        Per-level records in processing order (finest first).
    """
    level_ops: list[AELevelOps] = []
    level_stats: list[AELevelStats] = []

    state: AEFoldState | None = _ae_initial_state(unpacked=unpacked)
    for s in range(unpacked.nlvls - 1, -1, -1):
        ops, state, stats = _ae_process_level(
            unpacked=unpacked, state=state, s=s, config=config
        )
        _ae_print_level_summary(stats, print_info=config.print_info)
        level_ops.append(ops)
        level_stats.append(stats)

    return level_ops, level_stats


def _ae_assemble_output(
    *,
    level_ops: list[AELevelOps],
    level_stats: list[AELevelStats],
) -> AEOperators:
    """Pack finest-first per-level records into the coarsest-first operator array."""
    return AEOperators(
        levels=tuple(reversed(level_ops)),
        stats=tuple(reversed(level_stats)),
    )
