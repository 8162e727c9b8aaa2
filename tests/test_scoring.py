# tests/test_scoring.py

from __future__ import annotations

import itertools
import math

import pytest

from rice_companion.tasks.scoring import (
    completeness,
    compute_score,
    missing_parameters,
    priority_order,
    rice_score,
    round_half_up,
    validate_parameters,
)
from rice_companion.tasks.task_models import PARAMETER_NAMES, RiceParameters, Task

VALUES = {"reach": 500, "impact": 9, "confidence": 0.8, "effort": 2}

SUBSETS = [
    subset
    for size in range(len(PARAMETER_NAMES) + 1)
    for subset in itertools.combinations(PARAMETER_NAMES, size)
]


@pytest.mark.parametrize("subset", SUBSETS, ids=lambda s: "+".join(s) or "none")
def test_complete_only_when_all_four_are_set(subset) -> None:
    params = RiceParameters().merged({name: VALUES[name] for name in subset})

    c = completeness(params)
    assert c.is_complete == (len(subset) == 4)
    assert (compute_score(params) is not None) == c.is_complete
    assert missing_parameters(params) == [n for n in PARAMETER_NAMES if n not in subset]


def test_zero_counts_as_set() -> None:
    params = RiceParameters(reach=0, impact=0, confidence=0, effort=1)
    assert completeness(params).is_complete
    assert compute_score(params) == 0.0


@pytest.mark.parametrize(
    ("reach", "impact", "confidence", "effort", "expected"),
    [
        (500, 9, 0.8, 2, 1800.00),
        (12, 7, 0.9, 1.5, 50.40),
        (1, 1, 1, 3, 0.33),
        (2, 1, 1, 3, 0.67),
    ],
)
def test_score_examples(reach, impact, confidence, effort, expected) -> None:
    params = RiceParameters(reach=reach, impact=impact, confidence=confidence, effort=effort)
    assert compute_score(params) == expected

    score = rice_score(params)
    assert score is not None
    assert score.score == expected
    assert (score.reach, score.impact, score.confidence, score.effort) == (reach, impact, confidence, effort)


def test_incomplete_score_is_none() -> None:
    assert compute_score(RiceParameters(reach=10, impact=3, confidence=0.5)) is None
    assert rice_score(RiceParameters()) is None


def test_round_half_up_uses_decimal_representation() -> None:
    assert round_half_up(1.005) == 1.01
    assert round_half_up(2.675) == 2.68
    assert round_half_up(0.125) == 0.13
    assert round_half_up(-0.125) == -0.13


def test_missing_parameters_keep_canonical_order() -> None:
    params = RiceParameters().merged({"effort": 3})
    params = params.merged({"reach": 10})
    assert missing_parameters(params) == ["impact", "confidence"]


def _task(tid: str, created_at: float, **params) -> Task:
    return Task(
        id=tid,
        description=tid,
        created_at=created_at,
        last_updated=created_at,
        parameters=RiceParameters(**params),
    )


def test_priority_order_prefers_tasks_closest_to_complete() -> None:
    a = _task("A", 1.0, reach=10)
    b = _task("B", 2.0, reach=10, impact=3, confidence=0.5)
    c = _task("C", 3.0)

    assert [t.id for t in priority_order([a, b, c])] == ["B", "A", "C"]


def test_priority_order_ties_go_to_oldest_and_complete_tasks_are_excluded() -> None:
    done = _task("done", 0.5, **VALUES)
    newer = _task("newer", 5.0, reach=1)
    older = _task("older", 1.0, impact=2)

    assert [t.id for t in priority_order([done, newer, older])] == ["older", "newer"]


def test_validate_parameters_drops_none_and_unknown_keys() -> None:
    assert validate_parameters({"reach": 5, "impact": None, "colour": "red"}) == {"reach": 5.0}


@pytest.mark.parametrize(
    "updates",
    [
        {"reach": True},
        {"reach": "five"},
        {"impact": math.nan},
        {"effort": math.inf},
        {"effort": 0},
        {"confidence": 1.5},
        {"confidence": -0.1},
        {"reach": -1},
    ],
)
def test_validate_parameters_rejects_invalid_values(updates) -> None:
    with pytest.raises(ValueError):
        validate_parameters(updates)


def test_overflowing_score_raises_value_error() -> None:
    params = RiceParameters(reach=1e200, impact=1e200, confidence=1, effort=1)
    with pytest.raises(ValueError, match="out of range"):
        compute_score(params)
    with pytest.raises(ValueError):
        rice_score(params)


def test_round_half_up_handles_large_finite_values() -> None:
    assert round_half_up(1e300) == 1e300
    with pytest.raises(ValueError):
        round_half_up(math.inf)
