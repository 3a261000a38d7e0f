"""Tests for service schemas and entry config merging."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import voluptuous as vol

from custom_components.hormone_scheduler import (
    SERVICE_FIND_BEST_INJECTION_COUNT_SCHEMA,
    SERVICE_OPTIMIZE_SCHEDULE_SCHEMA,
    _overrides,
)
from custom_components.hormone_scheduler.consolidation import round_dose
from custom_components.hormone_scheduler.coordinator import (
    HormoneSchedulerCoordinator,
)
from custom_components.hormone_scheduler.medication import Dose, get_medication
from custom_components.hormone_scheduler.params import params_from_config

ENTRY_CONFIG = {"medications": ["Estradiol valerate"], "schedule_length": 14}


def test_optimize_service_accepts_vial_strengths():
    data = SERVICE_OPTIMIZE_SCHEDULE_SCHEMA(
        {
            "config_entry_id": "abc",
            "ester_concentrations": {"Estradiol valerate": "20"},
        }
    )
    params = params_from_config({**ENTRY_CONFIG, **_overrides(data)})

    assert params.ester_concentrations["Estradiol valerate"] == 20.0
    # one 0.05 mL step: 1 mg at 20 mg/mL, 2 mg at the catalog's 40 mg/mL
    dose = Dose(0, 1.02, get_medication("Estradiol valerate"))
    assert round_dose(dose, params).amount == pytest.approx(1.0)
    assert round_dose(dose, params_from_config(ENTRY_CONFIG)).amount == pytest.approx(
        2.0
    )


def test_find_best_service_accepts_vial_strengths():
    data = SERVICE_FIND_BEST_INJECTION_COUNT_SCHEMA(
        {
            "config_entry_id": "abc",
            "max_count": 3,
            "ester_concentrations": {"Estradiol enanthate": 10},
        }
    )
    assert _overrides(data) == {"ester_concentrations": {"Estradiol enanthate": 10.0}}


@pytest.mark.parametrize(
    "strengths",
    [
        {"Estradiol valerate": 0},
        {"Not a medication": 40},
        "40",
    ],
)
def test_service_rejects_bad_vial_strengths(strengths):
    with pytest.raises(vol.Invalid):
        SERVICE_OPTIMIZE_SCHEDULE_SCHEMA(
            {"config_entry_id": "abc", "ester_concentrations": strengths}
        )


def _config_for(data, options):
    entry = SimpleNamespace(data=data, options=options)
    return HormoneSchedulerCoordinator._get_config(SimpleNamespace(config_entry=entry))


def test_entry_vial_strengths_reach_params():
    config = _config_for(
        {**ENTRY_CONFIG, "ester_concentrations": {"Estradiol valerate": 20}},
        {},
    )
    params = params_from_config(config)
    assert params.ester_concentrations["Estradiol valerate"] == 20.0


def test_options_vial_strengths_replace_entry_data():
    config = _config_for(
        {**ENTRY_CONFIG, "ester_concentrations": {"Estradiol valerate": 20}},
        {"ester_concentrations": {"Estradiol valerate": 10}},
    )
    assert config["ester_concentrations"] == {"Estradiol valerate": 10}


def test_missing_vial_strengths_use_catalog():
    params = params_from_config(_config_for(ENTRY_CONFIG, {}))
    assert params.ester_concentrations["Estradiol valerate"] == 40.0
