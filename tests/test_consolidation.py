"""Tests for merging and rounding of final schedules."""

from __future__ import annotations

import pytest

from custom_components.hormone_scheduler.consolidation import (
    consolidate_doses,
    finalize_doses,
    round_dose,
    round_half_up,
)
from custom_components.hormone_scheduler.medication import Dose


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(0.49) == 0


def test_same_day_same_medication_is_summed(valerate, oral_progesterone):
    doses = [
        Dose(3, 100.0, oral_progesterone),
        Dose(0, 2.0, valerate),
        Dose(0, 3.0, valerate),
        Dose(3, 100.0, oral_progesterone),
        Dose(0, 100.0, oral_progesterone),
    ]
    merged = consolidate_doses(doses)

    assert [d.day for d in merged] == sorted(d.day for d in merged)
    keys = [(d.day, d.medication.name) for d in merged]
    assert len(keys) == len(set(keys)) == 3
    amounts = {(d.day, d.medication.name): d.amount for d in merged}
    assert amounts[(0, "Estradiol valerate")] == 5.0
    assert amounts[(3, "Oral progesterone")] == 200.0


def test_ester_volume_rounding(make_params, valerate):
    params = make_params(valerate)
    # 6.3 mg at 40 mg/mL is 0.1575 mL, three 0.05 mL steps.
    assert round_dose(Dose(0, 6.3, valerate), params).amount == pytest.approx(6.0)


def test_ester_clamped_to_max(make_params, valerate):
    params = make_params(valerate, max_dose_per_injection=10.0)
    assert round_dose(Dose(0, 12.4, valerate), params).amount == 10.0


def test_rectal_progesterone_uses_a_single_dose(make_params, rectal_progesterone):
    params = make_params(rectal_progesterone)
    assert round_dose(Dose(0, 130.0, rectal_progesterone), params).amount == 100.0
    assert round_dose(Dose(0, 160.0, rectal_progesterone), params).amount == 200.0
    assert round_dose(Dose(0, 400.0, rectal_progesterone), params).amount == 200.0


def test_oral_progesterone_uses_multiples(make_params, oral_progesterone):
    params = make_params(oral_progesterone)
    assert round_dose(Dose(0, 250.0, oral_progesterone), params).amount == 300.0
    assert round_dose(Dose(0, 30.0, oral_progesterone), params).amount == 100.0


def test_underflow_is_dropped(make_params, valerate):
    params = make_params(valerate)
    doses = [Dose(0, 0.5, valerate), Dose(2, 4.0, valerate)]
    final = finalize_doses(doses, params)
    assert [d.day for d in final] == [2]


def test_finalize_merges_before_rounding(make_params, valerate):
    params = make_params(valerate)
    # Each half rounds to zero alone; merged they make one step.
    final = finalize_doses([Dose(1, 0.9, valerate), Dose(1, 0.9, valerate)], params)
    assert len(final) == 1
    assert final[0].amount == pytest.approx(2.0)
