"""Error and warning kinds raised while folding a multilevel AE problem.

Kinds
-----
ValidationError
    Malformed vectorized problem (inconsistent cumulative counts, indices out
    of the declared shape, bad degrees). Raised before any matrix work.
FactorizationError
    The incomplete Cholesky factorization hit a non-positive or non-finite
    pivot. Carries the level index, the path it occurred in
    ("constraint", "incremental" or "solve") and the offending column.
NumericWarning
    Non-fatal numerical condition, emitted through `warnings.warn`.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Malformed multilevel problem description."""


class FactorizationError(ArithmeticError):
    """Incomplete factorization failed to produce a usable factor.

    Attributes
    ----------
    level
        Pyramid level index (0 = coarsest) at which the failure happened, or
        None when raised directly by the factorization primitive.
    path
        One of "constraint", "incremental", "solve", or None.
    column
        Column of the normal-equations matrix with the bad pivot, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        level: int | None = None,
        path: str | None = None,
        column: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.level = level
        self.path = path
        self.column = column

    def __str__(self) -> str:
        where = []
        if self.level is not None:
            where.append(f"level={self.level}")
        if self.path is not None:
            where.append(f"path={self.path}")
        if self.column is not None:
            where.append(f"column={self.column}")
        if not where:
            return self.message
        return f"{self.message} ({', '.join(where)})"

    def with_context(self, *, level: int, path: str) -> "FactorizationError":
        """Return a copy of this error annotated with the level and path."""
        return FactorizationError(self.message, level=level, path=path, column=self.column)


class NumericWarning(UserWarning):
    """Non-fatal numerical condition (e.g. a degree floored by eps)."""
