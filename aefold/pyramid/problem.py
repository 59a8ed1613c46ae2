"""Validation and unpacking of the vectorized multilevel AE problem.

The problem arrives as flat triplet vectors plus cumulative counts per level
(see `types.AEProblem`). Before any matrix is built, `_ae_unpack_problem`
checks that

  - there is at least one level and every per-level array has length L,
  - cumulative counts are nonnegative and non-decreasing, agree with the
    per-level counts, and their finest entries match the vector lengths,
  - every triplet active at level s lies inside that level's shape
    (ne_cum[s] vertices, nu_cum[s] constraint columns),
  - constraint triplets introduced at level s only use columns of level s,
  - magnitudes, phases and degrees are real and finite, degrees nonnegative,

and converts the magnitude/phase edge description to complex weights. This
is the only place where the magnitude/phase pair is looked at.
"""

from __future__ import annotations

import numpy as np

from .errors import ValidationError
from .types import AEProblem, AEUnpacked, IndexArray


def _check_cumulative(name: str, cum: IndexArray, nlvls: int) -> None:
    """Cumulative count arrays must have one nonnegative, non-decreasing entry per level."""
    if cum.size != nlvls:
        raise ValidationError(f"{name} has {cum.size} entries, expected {nlvls}")
    if np.any(cum < 0):
        raise ValidationError(f"{name} has negative entries")
    if np.any(np.diff(cum) < 0):
        raise ValidationError(f"{name} must be non-decreasing")


def _check_per_level(name: str, arr: IndexArray, cum: IndexArray, cum_name: str) -> None:
    """Per-level counts must be the first differences of their cumulative counts."""
    if arr.size != cum.size:
        raise ValidationError(f"{name} has {arr.size} entries, expected {cum.size}")
    if not np.array_equal(arr, np.diff(cum, prepend=0)):
        raise ValidationError(f"{name} disagrees with the first differences of {cum_name}")


def _check_level_bounds(
    name: str,
    idx: IndexArray,
    size_cum: IndexArray,
    bound_cum: IndexArray,
) -> None:
    """Entries active up to level s must be < bound_cum[s].

    Because size_cum and bound_cum are both non-decreasing, it is enough to
    check each triplet against the bound of the first level it is active on.
    """
    if idx.size == 0:
        return
    if np.any(idx < 0):
        raise ValidationError(f"{name} has negative indices")
    first_level = np.searchsorted(size_cum, np.arange(idx.size), side="right")
    bad = np.flatnonzero(idx >= bound_cum[first_level])
    if bad.size:
        k = int(bad[0])
        s = int(first_level[k])
        raise ValidationError(
            f"{name}[{k}] = {int(idx[k])} is out of bounds for level {s} "
            f"(size {int(bound_cum[s])})"
        )


def _ae_unpack_problem(*, prob: AEProblem) -> AEUnpacked:
    """Validate a multilevel problem and return its unpacked view.

    Parameters
    ----------
    prob
        Vectorized multilevel AE problem.

    Returns
    -------
    unpacked
        AEUnpacked with complex edge weights `cval * exp(1j * tval)`.

    Raises
    ------
    ValidationError
        On any inconsistency listed in the module docstring.
    """
    nlvls = prob.nlvls
    if nlvls < 1:
        raise ValidationError("problem must have at least one level")

    for name in ("ne_cum", "nu_cum", "w_size_cum", "u_size_cum"):
        _check_cumulative(name, getattr(prob, name), nlvls)
    _check_per_level("ne_arr", prob.ne_arr, prob.ne_cum, "ne_cum")
    _check_per_level("nu_arr", prob.nu_arr, prob.nu_cum, "nu_cum")

    nw = prob.wi.size
    if not (prob.wj.size == prob.cval.size == prob.tval.size == nw):
        raise ValidationError("edge triplet vectors wi, wj, cval, tval differ in length")
    nu_trip = prob.ui.size
    if not (prob.uj.size == prob.uval.size == nu_trip):
        raise ValidationError("constraint triplet vectors ui, uj, uval differ in length")

    if int(prob.w_size_cum[-1]) != nw:
        raise ValidationError(f"w_size_cum[-1] = {int(prob.w_size_cum[-1])} but there are {nw} edges")
    if int(prob.u_size_cum[-1]) != nu_trip:
        raise ValidationError(
            f"u_size_cum[-1] = {int(prob.u_size_cum[-1])} but there are {nu_trip} constraint entries"
        )
    if int(prob.ne_cum[-1]) != prob.dval.size:
        raise ValidationError(f"ne_cum[-1] = {int(prob.ne_cum[-1])} but there are {prob.dval.size} degrees")

    _check_level_bounds("wi", prob.wi, prob.w_size_cum, prob.ne_cum)
    _check_level_bounds("wj", prob.wj, prob.w_size_cum, prob.ne_cum)
    _check_level_bounds("ui", prob.ui, prob.u_size_cum, prob.ne_cum)
    _check_level_bounds("uj", prob.uj, prob.u_size_cum, prob.nu_cum)

    # constraints introduced at level s must live in that level's columns
    if nu_trip:
        first_level = np.searchsorted(prob.u_size_cum, np.arange(nu_trip), side="right")
        col_floor = np.concatenate(([0], prob.nu_cum[:-1]))[first_level]
        bad = np.flatnonzero(prob.uj < col_floor)
        if bad.size:
            k = int(bad[0])
            raise ValidationError(
                f"uj[{k}] = {int(prob.uj[k])} belongs to a coarser level than the "
                f"level {int(first_level[k])} that introduces it"
            )

    for name in ("cval", "tval", "dval"):
        if np.iscomplexobj(getattr(prob, name)):
            raise ValidationError(f"{name} must be real")

    if not np.all(np.isfinite(prob.dval)) or np.any(prob.dval < 0):
        raise ValidationError("degrees must be finite and nonnegative")
    if not (np.all(np.isfinite(prob.cval)) and np.all(np.isfinite(prob.tval))):
        raise ValidationError("edge magnitudes and phases must be finite")
    if not np.all(np.isfinite(prob.uval)):
        raise ValidationError("constraint values must be finite")

    wval = prob.cval * np.exp(1j * prob.tval)

    return AEUnpacked(
        nlvls=nlvls,
        ne_arr=prob.ne_arr,
        ne_cum=prob.ne_cum,
        nu_arr=prob.nu_arr,
        nu_cum=prob.nu_cum,
        w_size_cum=prob.w_size_cum,
        u_size_cum=prob.u_size_cum,
        wi=prob.wi,
        wj=prob.wj,
        wval=wval,
        ui=prob.ui,
        uj=prob.uj,
        uval=prob.uval,
        dval=prob.dval,
    )
