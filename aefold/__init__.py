"""Operator assembly for progressive multigrid Angular Embedding."""
from . import subproblem_fold
from .subproblem_fold import ae_fold_defaults, ae_subproblem_fold
from .pyramid.errors import FactorizationError, NumericWarning, ValidationError
from .pyramid.factor import ICholFactor, ichol
from .pyramid.types import (
    ABSENT,
    AEFoldConfig,
    AELevelOps,
    AEOperators,
    AEProblem,
    Absent,
    is_absent,
)

__all__ = [
    'subproblem_fold',
    'ae_subproblem_fold',
    'ae_fold_defaults',
    'AEProblem',
    'AEFoldConfig',
    'AELevelOps',
    'AEOperators',
    'ABSENT',
    'Absent',
    'is_absent',
    'ICholFactor',
    'ichol',
    'ValidationError',
    'FactorizationError',
    'NumericWarning',
]
