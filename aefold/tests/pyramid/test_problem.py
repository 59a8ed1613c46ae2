"""Tests for validation and unpacking of the vectorized problem."""

from __future__ import annotations

from dataclasses import fields

import numpy as np
import pytest

from aefold import AEProblem, ValidationError, ae_subproblem_fold
from aefold.pyramid.problem import _ae_unpack_problem


def _fields(prob: AEProblem) -> dict:
    return {f.name: getattr(prob, f.name) for f in fields(prob)}


def _with(prob: AEProblem, **changes) -> AEProblem:
    data = _fields(prob)
    data.update(changes)
    return AEProblem(**data)


def test_unpack_builds_complex_weights(two_level_problem) -> None:
    up = _ae_unpack_problem(prob=two_level_problem)
    assert up.nlvls == 2
    assert up.ne == 4
    np.testing.assert_allclose(
        up.wval, two_level_problem.cval * np.exp(1j * two_level_problem.tval)
    )
    assert up.edge_slice(0) == slice(0, 2)
    assert up.constraint_slice(0) == slice(0, 0)
    assert up.increment_slice(1) == slice(0, 4)


def test_from_mapping_roundtrip(two_level_problem) -> None:
    data = _fields(two_level_problem)
    data["ne"] = 4
    prob = AEProblem.from_mapping(data)
    np.testing.assert_array_equal(prob.wi, two_level_problem.wi)
    assert prob.ne == 4

    del data["dval"]
    with pytest.raises(TypeError, match="dval"):
        AEProblem.from_mapping(data)


def test_float_counts_are_accepted_but_fractions_rejected(two_level_problem) -> None:
    prob = _with(two_level_problem, ne_cum=np.array([2.0, 4.0]))
    assert prob.ne_cum.dtype == np.int64
    with pytest.raises(ValidationError):
        _with(two_level_problem, ne_cum=np.array([2.0, 4.5]))


@pytest.mark.parametrize(
    "changes, match",
    [
        (dict(ne_arr=[], ne_cum=[], nu_arr=[], nu_cum=[], w_size_cum=[], u_size_cum=[]), "at least one level"),
        (dict(ne_cum=[2, 4, 4]), "ne_cum has 3 entries"),
        (dict(ne_arr=[3, 1]), "ne_arr disagrees"),
        (dict(nu_cum=[1, 0], nu_arr=[1, -1]), "nu_cum must be non-decreasing"),
        (dict(w_size_cum=[2, 5]), "w_size_cum"),
        (dict(u_size_cum=[0, 3]), "u_size_cum"),
        (dict(dval=[1.0, 1.0, 1.0]), "degrees"),
        (dict(dval=[1.0, -1.0, 1.0, 1.0]), "nonnegative"),
        (dict(cval=[1.0, 1.0, 2.0, 2.0, np.inf, 0.5]), "finite"),
        (dict(tval=[0.3, -0.3, 0.0, 0.0]), "differ in length"),
    ],
)
def test_inconsistent_counts_rejected(two_level_problem, changes, match) -> None:
    prob = _with(two_level_problem, **changes)
    with pytest.raises(ValidationError, match=match):
        _ae_unpack_problem(prob=prob)


def test_edge_outside_its_level_rejected(two_level_problem) -> None:
    wj = two_level_problem.wj.copy()
    wj[0] = 2  # level-0 edge pointing at a level-1 vertex
    with pytest.raises(ValidationError, match="wj\\[0\\] = 2 is out of bounds for level 0"):
        _ae_unpack_problem(prob=_with(two_level_problem, wj=wj))


def test_constraint_row_out_of_bounds_rejected(two_level_problem) -> None:
    ui = two_level_problem.ui.copy()
    ui[-1] = 4
    with pytest.raises(ValidationError, match="ui"):
        _ae_unpack_problem(prob=_with(two_level_problem, ui=ui))


def test_negative_index_rejected(two_level_problem) -> None:
    wi = two_level_problem.wi.copy()
    wi[1] = -1
    with pytest.raises(ValidationError, match="negative"):
        _ae_unpack_problem(prob=_with(two_level_problem, wi=wi))


def test_increment_using_coarser_column_rejected(three_level_problem) -> None:
    uj = three_level_problem.uj.copy()
    k = int(three_level_problem.u_size_cum[0])  # first constraint entry of level 1
    uj[k] = 0
    with pytest.raises(ValidationError, match="coarser level"):
        _ae_unpack_problem(prob=_with(three_level_problem, uj=uj))


def test_validation_happens_before_assembly(two_level_problem) -> None:
    with pytest.raises(ValidationError):
        ae_subproblem_fold(_with(two_level_problem, w_size_cum=[3, 6]))


@pytest.mark.parametrize("name", ["cval", "tval", "dval"])
def test_complex_magnitudes_phases_and_degrees_rejected(two_level_problem, name) -> None:
    values = getattr(two_level_problem, name).astype(complex)
    values[0] += 0.5j
    prob = _with(two_level_problem, **{name: values})
    assert np.iscomplexobj(getattr(prob, name))
    with pytest.raises(ValidationError, match=f"{name} must be real"):
        _ae_unpack_problem(prob=prob)
