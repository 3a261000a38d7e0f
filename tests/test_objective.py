"""Tests for schedule scoring."""

from __future__ import annotations

import pytest

from custom_components.hormone_scheduler.const import (
    DOSE_COMPLEXITY_WEIGHT,
    SIMPLICITY_WEIGHT,
)
from custom_components.hormone_scheduler.medication import Dose
from custom_components.hormone_scheduler.objective import (
    ScheduleObjective,
    dose_key,
    multi_objective_score,
    normalized_mse,
)
from custom_components.hormone_scheduler.reference import generate_reference_cycle


def test_empty_schedule_has_unit_error():
    # Every sample is off by 100% of its target.
    assert normalized_mse([], generate_reference_cycle(7, "hrt_target"), 7) == pytest.approx(1.0)
    assert normalized_mse([], generate_reference_cycle(7, "typical"), 7) == pytest.approx(1.0)


def test_reasonable_schedule_beats_empty(valerate):
    reference = generate_reference_cycle(7, "hrt_target")
    doses = [Dose(day, 0.8, valerate) for day in (0, 2, 4, 6)]
    assert normalized_mse(doses, reference, 7, steady_state=True) < 0.5


def test_accuracy_only_returns_mse(valerate):
    doses = [Dose(0, 4.0, valerate), Dose(3, 5.0, valerate)]
    assert multi_objective_score(doses, 0.3, accuracy_only=True) == 0.3


def test_penalties(valerate, oral_progesterone):
    doses = [
        Dose(0, 4.0, valerate),
        Dose(3, 4.0, valerate),
        Dose(5, 100.0, oral_progesterone),
    ]
    expected = 0.3 + 2 * SIMPLICITY_WEIGHT + 2 * DOSE_COMPLEXITY_WEIGHT
    assert multi_objective_score(doses, 0.3) == pytest.approx(expected)


def test_dose_key_ignores_order(valerate):
    a = Dose(0, 4.0, valerate)
    b = Dose(3, 5.0, valerate)
    assert dose_key([a, b]) == dose_key([b, a])
    assert dose_key([a]) != dose_key([b])


def test_results_are_cached_per_run(valerate):
    objective = ScheduleObjective(generate_reference_cycle(7), 7)
    doses = [Dose(1, 3.0, valerate)]

    first = objective.mse(doses)
    assert objective.mse(list(reversed(doses))) == first
    assert objective.cache_size == 1

    objective.clear()
    assert objective.cache_size == 0


def test_score_adds_penalties_unless_accuracy_only(valerate):
    reference = generate_reference_cycle(7, "hrt_target")
    doses = [Dose(0, 4.0, valerate)]
    penalized = ScheduleObjective(reference, 7)
    plain = ScheduleObjective(reference, 7, accuracy_only=True)

    assert plain.score(doses) == plain.mse(doses)
    assert penalized.score(doses) > penalized.mse(doses)
