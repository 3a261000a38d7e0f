"""Tests for parameter validation."""

from __future__ import annotations

import pytest

from custom_components.hormone_scheduler.const import (
    DEFAULT_PROGESTERONE_DOSES,
    DEFAULT_SCHEDULE_LENGTH,
)
from custom_components.hormone_scheduler.params import (
    InvalidOptimizationParams,
    OptimizationParams,
    params_from_config,
)


def test_defaults_from_minimal_config(valerate):
    params = params_from_config({"medications": ["Estradiol valerate"]})
    assert params.available_medications == (valerate,)
    assert params.schedule_length == DEFAULT_SCHEDULE_LENGTH
    assert params.progesterone_doses == DEFAULT_PROGESTERONE_DOSES
    assert params.optimize_for_accuracy_only is False


def test_strings_are_coerced_and_extras_dropped():
    params = params_from_config(
        {
            "medications": ["Estradiol valerate", "Oral progesterone"],
            "schedule_length": "14",
            "granularity": "0.1",
            "config_entry_id": "abc",
        }
    )
    assert params.schedule_length == 14
    assert params.granularity == pytest.approx(0.1)
    assert len(params.available_medications) == 2


def test_duplicate_medications_collapse():
    params = params_from_config(
        {"medications": ["Estradiol valerate", "Estradiol valerate"]}
    )
    assert len(params.available_medications) == 1


def test_concentration_overrides_merge_with_catalog():
    params = params_from_config(
        {
            "medications": ["Estradiol valerate"],
            "ester_concentrations": {"Estradiol valerate": 20},
        }
    )
    assert params.ester_concentrations["Estradiol valerate"] == 20
    assert params.ester_concentrations["Estradiol cypionate suspension"] == 5


@pytest.mark.parametrize(
    "config",
    [
        {"medications": []},
        {"medications": ["Estradiol sulfate"]},
        {"medications": ["Estradiol valerate"], "reference_cycle": "lunar"},
        {"medications": ["Estradiol valerate"], "schedule_length": 0},
        {
            "medications": ["Estradiol valerate"],
            "min_dose_per_injection": 5,
            "max_dose_per_injection": 2,
        },
    ],
)
def test_invalid_configs(config):
    with pytest.raises(InvalidOptimizationParams):
        params_from_config(config)


def test_validate_rejects_empty_medications():
    with pytest.raises(InvalidOptimizationParams):
        OptimizationParams(available_medications=(), schedule_length=7).validate()


def test_invalid_params_are_value_errors():
    assert issubclass(InvalidOptimizationParams, ValueError)


def test_with_overrides_copies(valerate):
    params = OptimizationParams(available_medications=(valerate,), schedule_length=7)
    changed = params.with_overrides(max_injections_per_cycle=2)
    assert changed.max_injections_per_cycle == 2
    assert params.max_injections_per_cycle != 2
