"""Typed containers used throughout the multilevel AE fold.

This module groups the problem description, the running fold state and the
per-level operator records into small dataclasses, so that the pipeline does
not pass around a dozen parallel arrays.

Containers
----------
AEFoldConfig
    Tolerance of the incomplete factorization, the transform flag, the degree
    floor `eps` and the print switch.
AEProblem
    Vectorized multilevel problem (edge/constraint triplets, cumulative
    counts, degrees), as produced by problem extraction.
AEUnpacked
    Validated view of an AEProblem with complex edge weights and per-level
    index ranges.
AEFoldState
    Running (W, d) state over the currently finest, not yet folded vertices.
AEIncrement
    Constraint blocks newly introduced at a level, split at the coarse boundary.
AELevelOps
    Operators for one pyramid level (P, U, R, Ua, Ub, Rb).
AEOperators
    The full per-level array handed to the solver.

Invariants
----------
- Level index 0 is the coarsest (top) level, index L-1 the finest (full graph).
- All vertex and constraint indices are 0-based.
- Missing operators are the explicit `ABSENT` sentinel, never None and never
  an empty matrix.
"""


from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
from numpy.typing import NDArray

from scipy.sparse import csr_array, sparray, spmatrix

from .errors import ValidationError

if TYPE_CHECKING:
    from .factor import ICholFactor
    from .stats import AELevelStats

SparseLike = spmatrix | sparray

IndexArray = NDArray[np.int64]


class Absent(enum.Enum):
    """Explicit marker for an operator that does not exist on a level."""

    ABSENT = "absent"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent.ABSENT

MaybeSparse: TypeAlias = "csr_array | Absent"
MaybeFactor: TypeAlias = "ICholFactor | Absent"


def is_absent(x: Any) -> bool:
    """Return True if `x` is the ABSENT sentinel."""
    return x is ABSENT


@dataclass(slots=True, frozen=True)
class AEFoldConfig:
    """Configuration parameters for assembling the pyramid operators.

    Attributes
    ----------
    tol_ichol : float
        Drop tolerance of the incomplete Cholesky factorizations.
    transform_flag : bool
        If True, fold the weights of each dropped finer level into the next
        coarser level through the constraints; otherwise truncate.
    eps : float
        Floor added to every degree before taking square roots.
    print_info : bool
        Whether to print per-level diagnostics via `pyramid.stats`.
    """

    tol_ichol: float = 2.0 ** -20
    transform_flag: bool = False
    eps: float = float(np.finfo(float).eps)
    print_info: bool = False


def _as_index(a: Any) -> IndexArray:
    """Coerce a count or index vector to a flat int64 array."""
    arr = np.asarray(a)
    if arr.size == 0:
        return np.zeros(0, dtype=np.int64)
    if not np.issubdtype(arr.dtype, np.integer):
        if not np.all(np.isfinite(arr)) or np.any(arr != np.round(arr)):
            raise ValidationError("index and count arrays must hold integers")
    return np.ravel(arr).astype(np.int64)


def _as_values(a: Any) -> np.ndarray:
    """Coerce a value vector to a flat float (or complex) array.

    Complex input stays complex; `_ae_unpack_problem` decides which fields
    may be complex.
    """
    arr = np.ravel(np.asarray(a))
    if np.iscomplexobj(arr):
        return arr.astype(complex)
    return arr.astype(float)


@dataclass(frozen=True, eq=False)
class AEProblem:
    """Vectorized description of a multilevel constrained AE problem.

    Attributes
    ----------
    ne_arr, ne_cum
        Per-level and cumulative vertex counts, length L.
    nu_arr, nu_cum
        Per-level and cumulative constraint-column counts, length L.
    w_size_cum
        Cumulative number of edge triplets active up to each level.
    u_size_cum
        Cumulative number of constraint triplets active up to each level.
    wi, wj, cval, tval
        Edge triplets: endpoints, magnitude (confidence) and phase (order).
    ui, uj, uval
        Constraint triplets: vertex row, constraint column, value.
    dval
        Degrees of the full graph, length ne.
    """

    ne_arr: IndexArray
    ne_cum: IndexArray
    nu_arr: IndexArray
    nu_cum: IndexArray
    w_size_cum: IndexArray
    u_size_cum: IndexArray
    wi: IndexArray
    wj: IndexArray
    cval: np.ndarray
    tval: np.ndarray
    ui: IndexArray
    uj: IndexArray
    uval: np.ndarray
    dval: np.ndarray

    def __post_init__(self) -> None:
        for name in ("ne_arr", "ne_cum", "nu_arr", "nu_cum", "w_size_cum",
                     "u_size_cum", "wi", "wj", "ui", "uj"):
            object.__setattr__(self, name, _as_index(getattr(self, name)))
        object.__setattr__(self, "cval", _as_values(self.cval))
        object.__setattr__(self, "tval", _as_values(self.tval))
        object.__setattr__(self, "uval", _as_values(self.uval))
        object.__setattr__(self, "dval", _as_values(self.dval))

    @property
    def nlvls(self) -> int:
        """Number of pyramid levels L."""
        return int(self.ne_arr.size)

    @property
    def ne(self) -> int:
        """Number of vertices of the full graph."""
        return int(self.ne_cum[-1]) if self.ne_cum.size else 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AEProblem":
        """Build an AEProblem from a mapping of its field names (extra keys such as `ne` are ignored)."""
        names = [f.name for f in fields(cls)]
        missing = [n for n in names if n not in data]
        if missing:
            raise TypeError(f"problem description is missing fields: {', '.join(missing)}")
        return cls(**{n: data[n] for n in names})


@dataclass(slots=True, frozen=True, eq=False)
class AEUnpacked:
    """Validated view of an AEProblem.

    Edge weights are complex (`cval * exp(1j * tval)`); everything downstream
    works over complex values only.
    """

    nlvls: int
    ne_arr: IndexArray
    ne_cum: IndexArray
    nu_arr: IndexArray
    nu_cum: IndexArray
    w_size_cum: IndexArray
    u_size_cum: IndexArray
    wi: IndexArray
    wj: IndexArray
    wval: np.ndarray
    ui: IndexArray
    uj: IndexArray
    uval: np.ndarray
    dval: np.ndarray

    @property
    def ne(self) -> int:
        return int(self.ne_cum[-1])

    def edge_slice(self, s: int) -> slice:
        """Edge triplets active up to level s."""
        return slice(0, int(self.w_size_cum[s]))

    def constraint_slice(self, s: int) -> slice:
        """Constraint triplets active up to level s."""
        return slice(0, int(self.u_size_cum[s]))

    def increment_slice(self, s: int) -> slice:
        """Constraint triplets introduced at level s (s >= 1)."""
        return slice(int(self.u_size_cum[s - 1]), int(self.u_size_cum[s]))


@dataclass(slots=True, frozen=True, eq=False)
class AEFoldState:
    """Weight operator and degree vector of the current, not yet folded, vertex set."""

    W: csr_array
    d: np.ndarray

    @property
    def n(self) -> int:
        return int(self.W.shape[0])


@dataclass(slots=True, frozen=True, eq=False)
class AEIncrement:
    """Incremental constraint blocks at one level, before degree normalization.

    Attributes
    ----------
    Ua
        Rows touching the surviving coarse vertices, shape (nea, nu).
    Ub
        Rows touching only the finer vertices (re-based), shape (neb - nea, nu).
    Rb
        Incomplete Cholesky factor of Ub^H Ub.
    nea, neb
        Coarse boundary and vertex count of the current level.
    """

    Ua: csr_array
    Ub: csr_array
    Rb: "ICholFactor"
    nea: int
    neb: int


@dataclass(slots=True, frozen=True, eq=False)
class AELevelOps:
    """Operators active on one pyramid level.

    Attributes
    ----------
    P
        Degree-normalized diffusion operator (always present).
    U, R
        Degree-normalized constraint operator and the factor of U^H U
        (ABSENT iff the level has no active constraints).
    Ua, Ub, Rb
        Degree-normalized incremental constraint blocks and the factor of the
        raw Ub^H Ub, used for interpolation (ABSENT at the coarsest level).
    """

    P: csr_array
    U: MaybeSparse = ABSENT
    R: MaybeFactor = ABSENT
    Ua: MaybeSparse = ABSENT
    Ub: MaybeSparse = ABSENT
    Rb: MaybeFactor = ABSENT


@dataclass(frozen=True, eq=False)
class AEOperators(Sequence):
    """Per-level operators for the multigrid solver, index 0 = coarsest.

    Behaves as a read-only sequence of AELevelOps. The `*_arr` properties give
    the column views (one entry per level) that the solver loop indexes.
    """

    levels: tuple[AELevelOps, ...]
    stats: tuple["AELevelStats", ...] = field(default=(), compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, s):
        return self.levels[s]

    @property
    def P_arr(self) -> list[csr_array]:
        return [lv.P for lv in self.levels]

    @property
    def U_arr(self) -> list[MaybeSparse]:
        return [lv.U for lv in self.levels]

    @property
    def R_arr(self) -> list[MaybeFactor]:
        return [lv.R for lv in self.levels]

    @property
    def Ua_arr(self) -> list[MaybeSparse]:
        return [lv.Ua for lv in self.levels]

    @property
    def Ub_arr(self) -> list[MaybeSparse]:
        return [lv.Ub for lv in self.levels]

    @property
    def Rb_arr(self) -> list[MaybeFactor]:
        return [lv.Rb for lv in self.levels]
