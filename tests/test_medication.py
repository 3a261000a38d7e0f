"""Tests for the medication catalog."""

from __future__ import annotations

import math

import pytest

from custom_components.hormone_scheduler.const import PRESETS
from custom_components.hormone_scheduler.medication import (
    ALL_MEDICATIONS,
    MEDICATION_NAMES,
    Dose,
    Ester,
    doses_from_dicts,
    ester_strength,
    get_medication,
    is_ester,
    preset_schedule,
)


def test_catalog_lookup(valerate, rectal_progesterone):
    assert len(ALL_MEDICATIONS) == len(MEDICATION_NAMES) == 10
    assert is_ester(valerate)
    assert not is_ester(rectal_progesterone)
    assert rectal_progesterone.is_rectal
    with pytest.raises(KeyError):
        get_medication("Estradiol sulfate")
    with pytest.raises(TypeError):
        is_ester("Estradiol valerate")


def test_half_life_from_k2(valerate):
    assert valerate.half_life_days == pytest.approx(math.log(2) / valerate.k2)


def test_rate_constants_must_be_positive():
    with pytest.raises(ValueError):
        Ester("broken", 100.0, 1.0, 0.0, 1.0)


def test_strength_falls_back(valerate):
    assert ester_strength(valerate, {"Estradiol valerate": 20.0}) == 20.0
    assert ester_strength(valerate, {}) == 40.0


def test_dose_round_trip_through_dicts(valerate):
    dose = Dose(3, 4.123456, valerate)
    assert dose.as_dict() == {
        "day": 3,
        "amount": 4.1235,
        "medication": "Estradiol valerate",
    }
    assert doses_from_dicts([dose.as_dict()])[0].medication is valerate


@pytest.mark.parametrize("key", list(PRESETS))
def test_presets_resolve(key):
    doses, schedule_length = preset_schedule(key)
    assert doses
    assert schedule_length == PRESETS[key]["schedule_length"]
