"""Timing and diagnostic reporting for the pyramid fold.

This module provides:
  - A small per-level timing collector (`AELevelStats`) that supports labeled timers.
  - A finalize step that records sizes, nonzeros and a Hermitian check of P.
  - A compact, human-readable per-level summary printer.

Typical usage
-------------
Within the level loop, create an `AELevelStats` for the current level:

    stats = AELevelStats(level=s, n=state.n)
    with stats.timeit("normalize"):
        ... degree-normalize W ...
    with stats.timeit("constraints"):
        ... assemble and factor U ...
    _ae_finalize_level_stats(stats=stats, ops=ops)
    _ae_print_level_summary(stats, print_info=print_info)

The caller decides which timer keys are used; this module simply stores them.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any
import time

from pyamg.util.linalg import ishermitian

from .types import AELevelOps, is_absent


@dataclass(slots=True)
class AELevelStats:
    """Per-level setup timings and summary statistics.

    Attributes
    ----------
    level
        Pyramid level index (0 = coarsest).
    n
        Number of vertices active on this level.
    n_coarse
        Number of vertices on the next coarser level (None at the top).
    timings
        Dict mapping timer keys to elapsed seconds.
    extra
        Dict for derived metrics (nnz counts, constraint columns, Hermitian check).
    """

    level: int
    n: int
    n_coarse: int | None = None
    timings: dict[str, float] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @contextmanager
    def timeit(self, key: str):
        """Context manager that accumulates elapsed time under `timings[key]`."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.timings[key] = self.timings.get(key, 0.0) + (time.perf_counter() - t0)


def _ae_finalize_level_stats(
    *,
    stats: AELevelStats,
    ops: AELevelOps,
    n_coarse: int | None,
    herm_tol: float = 1e-8,
) -> None:
    """Populate derived diagnostics for a completed level.

    Parameters
    ----------
    stats
        The stats object for this level (mutated in-place).
    ops
        The operators just assembled for this level.
    n_coarse
        Vertex count of the next coarser level, or None at the top.
    herm_tol
        Absolute tolerance of the Hermitian check on P.
    """
    stats.n_coarse = None if n_coarse is None else int(n_coarse)
    stats.extra["P_nnz"] = int(ops.P.nnz)
    stats.extra["P_hermitian"] = bool(ishermitian(ops.P, fast_check=False, tol=herm_tol))

    if is_absent(ops.U):
        stats.extra["nu"] = 0
    else:
        stats.extra["nu"] = int(ops.U.shape[1])
        stats.extra["U_nnz"] = int(ops.U.nnz)
        stats.extra["R_nnz"] = int(ops.R.nnz)

    if not is_absent(ops.Rb):
        stats.extra["nu_inc"] = int(ops.Ua.shape[1])
        stats.extra["Rb_nnz"] = int(ops.Rb.nnz)


def _fmt_ms(t: float) -> str:
    """Format a duration in seconds as either milliseconds or seconds."""
    return f"{t*1e3:7.1f}ms" if t < 1.0 else f"{t:7.2f}s"


def _ae_print_level_summary(
    stats: AELevelStats,
    *,
    print_info: bool,
    prefix: str = "AE",
    indent: str = "",
) -> None:
    """Print a compact per-level summary of setup diagnostics and timings.

    Parameters
    ----------
    stats
        Per-level stats object that has already been finalized.
    print_info
        If False, does nothing.
    prefix
        Short label prefix printed per level.
    indent
        Optional indentation string.
    """
    if not print_info:
        return

    n_c = stats.n_coarse if stats.n_coarse is not None else "-"
    print(f"{indent}{prefix:<3}  level={stats.level:<2d}  n={stats.n:<7d} -> {n_c:<7}")

    ex = stats.extra
    print(f"{indent}     operators:")
    print(f"{indent}       P     : nnz={ex.get('P_nnz', 'n/a')}  hermitian={ex.get('P_hermitian', 'n/a')}")
    if ex.get("nu", 0):
        print(f"{indent}       U     : nu={ex['nu']}  nnz={ex.get('U_nnz')}  R nnz={ex.get('R_nnz')}")
    else:
        print(f"{indent}       U     : absent")
    if "Rb_nnz" in ex:
        print(f"{indent}       Ua/Ub : nu={ex['nu_inc']}  Rb nnz={ex['Rb_nnz']}")

    order = ["normalize", "constraints", "split", "fold"]
    total = 0.0
    print(f"{indent}     timing:")
    for k in order:
        if k in stats.timings:
            v = stats.timings[k]
            total += v
            print(f"{indent}       {k:<11} {_fmt_ms(v)}")
    print(f"{indent}       {'total':<11} {_fmt_ms(total)}")


def _ae_print_setup_summary(*, setup_time: float, nlvls: int, print_info: bool, indent: str = "") -> None:
    """Print the total setup time over all levels.

    Parameters
    ----------
    setup_time
        Wall time of the whole fold (seconds).
    nlvls
        Number of pyramid levels.
    print_info
        If False, does nothing.
    indent
        Optional indentation prefix.
    """
    if not print_info:
        return
    print(f"{indent}AE  levels={nlvls}  setup {_fmt_ms(float(setup_time))}")
