"""Shared fixtures for the hormone scheduler tests."""

from __future__ import annotations

import pytest

from custom_components.hormone_scheduler.medication import get_medication
from custom_components.hormone_scheduler.params import OptimizationParams


@pytest.fixture
def valerate():
    return get_medication("Estradiol valerate")


@pytest.fixture
def enanthate():
    return get_medication("Estradiol enanthate")


@pytest.fixture
def oral_progesterone():
    return get_medication("Oral progesterone")


@pytest.fixture
def rectal_progesterone():
    return get_medication("Rectal progesterone")


@pytest.fixture
def make_params():
    """Build OptimizationParams with small, fast defaults."""

    def _make(*medications, **kwargs):
        kwargs.setdefault("schedule_length", 10)
        kwargs.setdefault("reference_cycle_type", "hrt_target")
        return OptimizationParams(available_medications=tuple(medications), **kwargs)

    return _make
