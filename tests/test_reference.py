"""Tests for the reference curves."""

from __future__ import annotations

import pytest

from custom_components.hormone_scheduler.const import HRT_TARGET_E2, MENSTRUAL_CYCLE_DATA
from custom_components.hormone_scheduler.reference import generate_reference_cycle


def test_one_point_per_day_inclusive():
    points = generate_reference_cycle(29)
    assert [p.day for p in points] == list(range(30))
    assert points[14].estradiol == pytest.approx(255.88)
    assert points[21].progesterone == pytest.approx(12.4)


def test_cycle_repeats_past_its_length():
    points = generate_reference_cycle(40)
    assert points[32].estradiol == MENSTRUAL_CYCLE_DATA["E2"][2]


def test_conservative_halves_progesterone():
    typical = generate_reference_cycle(29, "typical")
    conservative = generate_reference_cycle(29, "conservative")
    assert conservative[21].progesterone == pytest.approx(typical[21].progesterone / 2)
    assert conservative[14].estradiol == MENSTRUAL_CYCLE_DATA["E2p5"][14]


def test_hrt_target_is_flat_without_progesterone():
    points = generate_reference_cycle(10, "hrt_target")
    assert {p.estradiol for p in points} == {HRT_TARGET_E2}
    assert all(p.progesterone is None for p in points)


def test_unknown_cycle_type():
    with pytest.raises(ValueError):
        generate_reference_cycle(10, "lunar")
