# src/rice_companion/tasks/scoring.py

"""
Completion / scoring engine.

Pure functions over a RiceParameters set:
- completeness flags (one per parameter + aggregate),
- missing parameters in canonical order,
- RICE score = (reach * impact * confidence) / effort, rounded half-up to 2 decimals,
- priority ordering of incomplete tasks.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any

from .task_models import PARAMETER_NAMES, Completeness, RiceParameters, RiceScore, Task

_TWO_PLACES = Decimal("0.01")
# Enough digits to quantize any finite float (up to ~1.8e308) to two places.
_QUANTIZE_CONTEXT = Context(prec=400)


def completeness(params: RiceParameters) -> Completeness:
    return Completeness(
        has_reach=params.reach is not None,
        has_impact=params.impact is not None,
        has_confidence=params.confidence is not None,
        has_effort=params.effort is not None,
    )


def missing_parameters(params: RiceParameters) -> list[str]:
    return [name for name in PARAMETER_NAMES if getattr(params, name) is None]


def count_set(params: RiceParameters) -> int:
    return len(PARAMETER_NAMES) - len(missing_parameters(params))


def round_half_up(value: float, places: Decimal = _TWO_PLACES) -> float:
    """
    Round on the shortest decimal representation of `value`.

    repr() is used so 1.005 rounds to 1.01 the way a reader expects,
    not to 1.0 as the binary value 1.00499999... would.
    Raises ValueError for inf and nan.
    """
    if not math.isfinite(value):
        raise ValueError(f"cannot round non-finite value {value!r}")
    return float(Decimal(repr(value)).quantize(places, rounding=ROUND_HALF_UP, context=_QUANTIZE_CONTEXT))


def compute_score(params: RiceParameters) -> float | None:
    """
    Return the rounded RICE score, or None while any parameter is unset.

    Raises ValueError when the product overflows a float (e.g. reach=impact=1e200).
    """
    if not completeness(params).is_complete:
        return None
    raw = (params.reach * params.impact * params.confidence) / params.effort  # type: ignore[operator]
    if not math.isfinite(raw):
        raise ValueError("RICE score is out of range for these parameters")
    return round_half_up(raw)


def rice_score(params: RiceParameters) -> RiceScore | None:
    score = compute_score(params)
    if score is None:
        return None
    return RiceScore(
        reach=float(params.reach),  # type: ignore[arg-type]
        impact=float(params.impact),  # type: ignore[arg-type]
        confidence=float(params.confidence),  # type: ignore[arg-type]
        effort=float(params.effort),  # type: ignore[arg-type]
        score=score,
    )


def validate_parameters(updates: dict[str, Any]) -> dict[str, float]:
    """
    Normalize a partial parameter update.

    - unknown keys and None values are dropped,
    - values must be finite real numbers (bools are rejected),
    - reach/impact >= 0, 0 <= confidence <= 1, effort > 0.

    Raises ValueError on the first invalid value.
    """
    out: dict[str, float] = {}
    for name in PARAMETER_NAMES:
        if name not in updates or updates[name] is None:
            continue
        raw = updates[name]
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"{name} must be a number, got {raw!r}")
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite, got {raw!r}")
        if name == "effort" and value <= 0:
            raise ValueError("effort must be greater than 0")
        if name == "confidence" and not 0.0 <= value <= 1.0:
            raise ValueError("confidence must be between 0 and 1")
        if name in ("reach", "impact") and value < 0:
            raise ValueError(f"{name} must not be negative")
        out[name] = value
    return out


def priority_order(tasks: Iterable[Task]) -> list[Task]:
    """
    Incomplete tasks, closest to completion first; ties go to the oldest task.

    Tasks created within the same clock tick keep their input order (sorted() is stable).
    """
    incomplete = [t for t in tasks if not completeness(t.parameters).is_complete]
    return sorted(incomplete, key=lambda t: (-count_set(t.parameters), t.created_at))
