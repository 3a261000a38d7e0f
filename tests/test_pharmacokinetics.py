"""Tests for the concentration model."""

from __future__ import annotations

import math

import numpy as np
import pytest

from custom_components.hormone_scheduler.const import EFFECT_DURATION_DAYS
from custom_components.hormone_scheduler.medication import (
    ESTRADIOL_ESTERS,
    Dose,
    Ester,
    ProgesteroneRoute,
    ProgesteroneRouteKind,
)
from custom_components.hormone_scheduler.pharmacokinetics import (
    ester_concentration,
    generate_time_grid,
    medication_concentration,
    progesterone_concentration,
    simulate_schedule,
    total_concentration,
)


def test_ester_zero_outside_effect_window(valerate):
    assert ester_concentration(-0.5, 0, 5.0, valerate) == 0.0
    assert ester_concentration(9.0, 10, 5.0, valerate) == 0.0
    assert ester_concentration(EFFECT_DURATION_DAYS + 0.5, 0, 5.0, valerate) == 0.0


@pytest.mark.parametrize("ester", ESTRADIOL_ESTERS, ids=lambda e: e.name)
def test_ester_values_finite_and_non_negative(ester):
    values = ester_concentration(np.linspace(0, 110, 441), 0, 5.0, ester)
    assert np.all(np.isfinite(values))
    assert np.all(values >= 0)


def test_ester_linear_in_amount(valerate):
    single = ester_concentration(3.5, 1, 2.0, valerate)
    double = ester_concentration(3.5, 1, 4.0, valerate)
    assert double == pytest.approx(2 * single)


def test_ester_time_shift_invariance(valerate):
    shifted = ester_concentration(12.25, 9, 3.0, valerate)
    assert shifted == pytest.approx(ester_concentration(3.25, 0, 3.0, valerate))


def test_valerate_rises_then_washes_out():
    ester = Ester("test valerate", 2596.06, 2.382, 0.233, 1.376)
    times = generate_time_grid(100, 0.25)
    curve = ester_concentration(np.asarray(times), 0, 6.0, ester)

    assert ester_concentration(2, 0, 6.0, ester) > ester_concentration(0, 0, 6.0, ester)
    assert ester_concentration(100, 0, 6.0, ester) < 0.01 * curve.max()


@pytest.mark.parametrize(
    "rates",
    [(1.0, 1.0, 0.5), (1.0, 0.5, 1.0), (0.5, 1.0, 1.0), (0.8, 0.8, 0.8)],
)
def test_coincident_rates_match_nearby_general_solution(rates):
    k1, k2, k3 = rates
    degenerate = Ester("degenerate", 100.0, k1, k2, k3)
    nearby = Ester("nearby", 100.0, k1 + 1e-5, k2, k3 - 2e-5)
    for t in (0.5, 2.0, 7.5, 30.0):
        value = ester_concentration(t, 0, 1.0, degenerate)
        assert math.isfinite(value)
        assert value >= 0
        assert value == pytest.approx(ester_concentration(t, 0, 1.0, nearby), rel=1e-2)


def test_progesterone_zero_before_dose(oral_progesterone):
    assert progesterone_concentration(0.9, 1, 100, oral_progesterone) == 0.0
    assert progesterone_concentration(1.5, 1, 100, oral_progesterone) > 0


def test_progesterone_equal_rates_branch():
    route = ProgesteroneRoute("equal", ProgesteroneRouteKind.ORAL, 0.1, 0.2, 0.2, 1.0)
    value = progesterone_concentration(0.5, 0, 100, route)
    assert math.isfinite(value)
    assert value > 0


def test_medication_concentration_rejects_unknown_kind():
    with pytest.raises(TypeError):
        medication_concentration(1.0, 0, 1.0, object())


def test_total_concentration_is_superposition(valerate, oral_progesterone):
    doses = [
        Dose(0, 4.0, valerate),
        Dose(3, 2.0, valerate),
        Dose(2, 100.0, oral_progesterone),
    ]
    grid = generate_time_grid(10)
    combined = total_concentration(doses, grid)
    singles = [total_concentration([dose], grid) for dose in doses]

    for index, point in enumerate(combined):
        assert point.estradiol == pytest.approx(sum(s[index].estradiol for s in singles))
        assert point.progesterone == pytest.approx(
            sum(s[index].progesterone for s in singles)
        )


def test_hormones_do_not_interact(valerate, oral_progesterone):
    points = total_concentration([Dose(0, 100.0, oral_progesterone)], [1.0, 2.0])
    assert all(p.estradiol == 0 for p in points)
    points = total_concentration([Dose(0, 5.0, valerate)], [1.0, 2.0])
    assert all(p.progesterone == 0 for p in points)


def test_generate_time_grid_inclusive():
    assert generate_time_grid(2, 0.5) == [0.0, 0.5, 1.0, 1.5, 2.0]
    assert len(generate_time_grid(29)) == 59
    with pytest.raises(ValueError):
        generate_time_grid(5, 0)


def test_simulate_schedule_repeat_adds_next_cycles(valerate):
    doses = [Dose(0, 5.0, valerate)]
    once = simulate_schedule(doses, 7, 14, repeat=False)
    repeated = simulate_schedule(doses, 7, 14, repeat=True)

    assert [p.time for p in once] == [p.time for p in repeated]
    at_ten = {p.time: p for p in repeated}[10.0]
    assert at_ten.estradiol > {p.time: p for p in once}[10.0].estradiol


def test_simulate_schedule_steady_state_raises_trough(valerate):
    doses = [Dose(0, 5.0, valerate)]
    cold = simulate_schedule(doses, 7, 7, repeat=False)
    steady = simulate_schedule(doses, 7, 7, repeat=False, steady_state=True)
    assert steady[0].estradiol > cold[0].estradiol
