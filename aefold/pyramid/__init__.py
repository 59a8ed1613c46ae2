"""Multilevel AE subproblem fold internals.

This package contains the modular building blocks of
`aefold.subproblem_fold.ae_subproblem_fold`.

Modules
-------
types
    Problem, state, config and per-level operator containers.
errors
    ValidationError, FactorizationError and NumericWarning.
problem
    Validation of the vectorized problem and per-level index ranges.
degree
    Degree normalization of weight operators.
factor
    Threshold incomplete Cholesky factorization and its triangular solves.
constraints
    Level constraint operators and incremental coarse/fine constraint blocks.
folding
    Weight folding (drop or transform) from one level to the next coarser one.
hierarchy
    Per-level step, the fine-to-coarse loop and output packing.
stats
    Per-level timing and diagnostic reporting.
"""

from __future__ import annotations

from . import constraints, degree, errors, factor, folding, hierarchy, problem, stats, types

__all__ = [
    "types",
    "errors",
    "problem",
    "degree",
    "factor",
    "constraints",
    "folding",
    "hierarchy",
    "stats",
]
