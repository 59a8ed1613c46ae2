"""Subproblem assembly for (transformed) progressive multigrid Angular Embedding.

Assemble the vector representation of a multilevel constrained AE problem
into the per-level matrices used by the multigrid solver. Optionally
transform the intermediate subproblems by folding the weights of dropped
finer levels into the active coarser levels.

    ops = ae_subproblem_fold(prob, tol_ichol=None, transform_flag=None)

`ops[s]` (s = 0 coarsest, ..., L-1 finest) holds
    P   diffusion matrix for relaxation
    U   constraint matrix for projection
    R   incomplete Cholesky factor of U^H U
    Ua  upper incremental constraint block for interpolation
    Ub  lower incremental constraint block for interpolation
    Rb  incomplete Cholesky factor of the raw Ub^H Ub
"""


from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
import time

from .pyramid.hierarchy import _ae_assemble_output, _ae_build_pyramid
from .pyramid.problem import _ae_unpack_problem
from .pyramid.stats import _ae_print_setup_summary
from .pyramid.types import AEFoldConfig, AEOperators, AEProblem


def ae_fold_defaults() -> AEFoldConfig:
    """Return the default fold configuration (no problem instance required)."""
    return AEFoldConfig()


def ae_subproblem_fold(
    prob,
    tol_ichol: float | None = None,
    transform_flag: bool | None = None,
    *,
    print_info: bool = False,
) -> AEOperators:
    """Assemble the per-level operators of a multilevel AE problem.

    Parameters
    ----------
    prob : AEProblem or mapping
        Vector representation of the multilevel problem. A mapping with the
        AEProblem field names is accepted as well.
    tol_ichol : float, optional
        Incomplete Cholesky drop tolerance (default 2^-20).
    transform_flag : bool, optional
        Use the constraints to transform weights of dropped levels (default False).
    print_info : bool
        Print per-level diagnostics and timings.

    Returns
    -------
    ops : AEOperators
        Sequence of AELevelOps, index 0 = coarsest level.

    Raises
    ------
    ValidationError
        Malformed problem description.
    FactorizationError
        An incomplete factorization failed; carries the level and path.

    Examples
    --------
    >>> import numpy as np
    >>> from aefold import AEProblem, ae_subproblem_fold
    >>> prob = AEProblem(
    ...     ne_arr=[2], ne_cum=[2], nu_arr=[0], nu_cum=[0],
    ...     w_size_cum=[2], u_size_cum=[0],
    ...     wi=[0, 1], wj=[1, 0], cval=[1.0, 1.0], tval=[0.5, -0.5],
    ...     ui=[], uj=[], uval=[], dval=[1.0, 1.0])
    >>> ops = ae_subproblem_fold(prob)
    >>> len(ops), ops[0].P.shape
    (1, (2, 2))
    """
    if isinstance(prob, Mapping):
        prob = AEProblem.from_mapping(prob)
    elif not isinstance(prob, AEProblem):
        raise TypeError(f"expected AEProblem or mapping, got {type(prob).__name__}")

    config = ae_fold_defaults()
    if tol_ichol is not None:
        config = replace(config, tol_ichol=float(tol_ichol))
    if transform_flag is not None:
        config = replace(config, transform_flag=bool(transform_flag))
    config = replace(config, print_info=bool(print_info))

    if not config.tol_ichol >= 0:
        raise ValueError(f"tol_ichol must be nonnegative, got {config.tol_ichol!r}")

    t0 = time.perf_counter()
    unpacked = _ae_unpack_problem(prob=prob)
    level_ops, level_stats = _ae_build_pyramid(unpacked=unpacked, config=config)
    ops = _ae_assemble_output(level_ops=level_ops, level_stats=level_stats)
    _ae_print_setup_summary(
        setup_time=time.perf_counter() - t0, nlvls=unpacked.nlvls, print_info=config.print_info
    )
    return ops
