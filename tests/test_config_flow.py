"""Tests for config flow input validation."""

from __future__ import annotations

from custom_components.hormone_scheduler.config_flow import (
    validate_limits_input,
    validate_schedule_input,
)


def test_medications_required():
    assert validate_schedule_input({"medications": []}) == {
        "medications": "no_medications"
    }
    assert validate_schedule_input({"medications": ["Estradiol valerate"]}) == {}


def test_bounds_must_be_ordered():
    assert validate_limits_input(
        {"min_dose_per_injection": 5.0, "max_dose_per_injection": 2.0}
    ) == {"base": "invalid_bounds"}
    assert validate_limits_input(
        {"min_dose_per_injection": 0.1, "max_dose_per_injection": 10.0}
    ) == {}


def test_vial_strengths_validated():
    limits = {"min_dose_per_injection": 0.1, "max_dose_per_injection": 10.0}
    assert validate_limits_input(
        {**limits, "ester_concentrations": {"Estradiol valerate": 20}}
    ) == {}
    assert validate_limits_input({**limits, "ester_concentrations": {}}) == {}
    assert validate_limits_input(
        {**limits, "ester_concentrations": {"Estradiol valerate": -1}}
    ) == {"ester_concentrations": "invalid_concentrations"}
    assert validate_limits_input(
        {**limits, "ester_concentrations": ["Estradiol valerate"]}
    ) == {"ester_concentrations": "invalid_concentrations"}
