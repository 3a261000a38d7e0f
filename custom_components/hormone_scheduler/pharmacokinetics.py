"""Closed-form concentration model for estradiol esters and progesterone.

Every dose contributes independently (linear superposition), and the two
hormones never interact. Time arguments may be scalars or numpy arrays; the
objective evaluates whole grids per medication in one call.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from .const import (
    EFFECT_DURATION_DAYS,
    RATE_EQUALITY_EPSILON,
    STEADY_STATE_CYCLES,
    TIME_POINT_STEP,
)
from .medication import Dose, Ester, Medication, ProgesteroneRoute


@dataclass(frozen=True)
class ConcentrationPoint:
    """Simulated hormone levels at one time point (days)."""

    time: float
    estradiol: float
    progesterone: float

    def as_dict(self) -> dict[str, float]:
        return {
            "time": self.time,
            "estradiol": round(self.estradiol, 3),
            "progesterone": round(self.progesterone, 3),
        }


def _output(values: np.ndarray) -> Any:
    """Unwrap 0-d results to plain floats."""
    if values.ndim == 0:
        return float(values)
    return values


def _ester_shape(
    dt: np.ndarray, k1: float, k2: float, k3: float
) -> np.ndarray:
    """Unit-dose response of the three-exponential model at elapsed time dt.

    Coincident rate constants make the general solution singular, so the
    analytic limits are used for those cases.
    """
    eq12 = abs(k1 - k2) < RATE_EQUALITY_EPSILON
    eq13 = abs(k1 - k3) < RATE_EQUALITY_EPSILON
    eq23 = abs(k2 - k3) < RATE_EQUALITY_EPSILON

    if eq12 and eq13:
        return k1 * k1 * dt * dt * np.exp(-k1 * dt) / 2.0
    if eq12:
        return (
            k1 * k1
            * (np.exp(-k3 * dt) - np.exp(-k1 * dt) * (1 + (k1 - k3) * dt))
            / (k1 - k3) ** 2
        )
    if eq13:
        return (
            k1 * k2
            * (np.exp(-k2 * dt) - np.exp(-k1 * dt) * (1 + (k1 - k2) * dt))
            / (k1 - k2) ** 2
        )
    if eq23:
        return (
            k1 * k2
            * (np.exp(-k1 * dt) - np.exp(-k2 * dt) * (1 - (k1 - k2) * dt))
            / (k1 - k2) ** 2
        )

    term1 = np.exp(-dt * k1) / ((k1 - k2) * (k1 - k3))
    term2 = np.exp(-dt * k3) / ((k1 - k3) * (k2 - k3))
    term3 = np.exp(-dt * k2) * (k3 - k1) / ((k1 - k2) * (k1 - k3) * (k2 - k3))
    return k1 * k2 * (term1 + term2 + term3)


def ester_concentration(t, dose_day, amount, ester: Ester):
    """Estradiol level (pg/mL) at day t from an ester injection.

    Zero before the injection and past EFFECT_DURATION_DAYS after it.
    """
    dt = np.asarray(t, dtype=float) - np.asarray(dose_day, dtype=float)
    active = (dt >= 0) & (dt <= EFFECT_DURATION_DAYS)
    dt = np.where(active, dt, 0.0)
    shape = _ester_shape(dt, ester.k1, ester.k2, ester.k3)
    conc = np.asarray(amount, dtype=float) * ester.D / 5.0 * shape
    return _output(np.where(active, np.maximum(conc, 0.0), 0.0))


def progesterone_concentration(t, dose_day, amount, route: ProgesteroneRoute):
    """Progesterone level (ng/mL) at day t from a dose given on dose_day."""
    dt_hours = (np.asarray(t, dtype=float) - np.asarray(dose_day, dtype=float)) * 24.0
    active = dt_hours >= 0
    dt_hours = np.where(active, dt_hours, 0.0)
    amount = np.asarray(amount, dtype=float)
    ka, ke = route.ka, route.ke

    if abs(ka - ke) < RATE_EQUALITY_EPSILON:
        conc = route.F * amount * ka * dt_hours / route.Vd * np.exp(-ke * dt_hours)
    else:
        conc = (
            route.F * amount * ka / (route.Vd * (ka - ke))
            * (np.exp(-ke * dt_hours) - np.exp(-ka * dt_hours))
        )
    return _output(np.where(active, np.maximum(conc, 0.0), 0.0))


def medication_concentration(t, dose_day, amount, medication: Medication):
    """Dispatch to the model matching the medication kind."""
    if isinstance(medication, Ester):
        return ester_concentration(t, dose_day, amount, medication)
    if isinstance(medication, ProgesteroneRoute):
        return progesterone_concentration(t, dose_day, amount, medication)
    raise TypeError(f"Not a medication: {medication!r}")


def concentration_arrays(
    doses: Iterable[Dose], times: Sequence[float] | np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Summed estradiol and progesterone levels at each time.

    Doses sharing a medication are evaluated together as a
    (doses x times) matrix.
    """
    times = np.asarray(times, dtype=float)
    estradiol = np.zeros_like(times)
    progesterone = np.zeros_like(times)

    grouped: dict[str, tuple[Medication, list[float], list[float]]] = {}
    for dose in doses:
        _med, days, amounts = grouped.setdefault(
            dose.medication.name, (dose.medication, [], [])
        )
        days.append(dose.day)
        amounts.append(dose.amount)

    for medication, days, amounts in grouped.values():
        contribution = medication_concentration(
            times[np.newaxis, :],
            np.asarray(days)[:, np.newaxis],
            np.asarray(amounts)[:, np.newaxis],
            medication,
        ).sum(axis=0)
        if isinstance(medication, Ester):
            estradiol += contribution
        else:
            progesterone += contribution

    return estradiol, progesterone


def total_concentration(
    doses: Iterable[Dose], time_grid: Sequence[float]
) -> list[ConcentrationPoint]:
    """Concentration time series for a set of doses."""
    times = list(time_grid)
    estradiol, progesterone = concentration_arrays(doses, times)
    return [
        ConcentrationPoint(time=t, estradiol=float(e2), progesterone=float(p4))
        for t, e2, p4 in zip(times, estradiol, progesterone)
    ]


def generate_time_grid(
    max_days: float, step: float = TIME_POINT_STEP
) -> list[float]:
    """Times 0, step, 2*step, ... up to and including max_days."""
    if step <= 0:
        raise ValueError("step must be > 0")
    count = int(math.floor(max_days / step + 1e-9))
    return [round(i * step, 10) for i in range(count + 1)]


def prior_cycle_doses(
    doses: Sequence[Dose],
    schedule_length: float,
    cycles: int = STEADY_STATE_CYCLES,
) -> list[Dose]:
    """Virtual copies of the schedule shifted back by whole cycles."""
    return [
        Dose(dose.day + cycle * schedule_length, dose.amount, dose.medication)
        for cycle in range(-cycles, 0)
        for dose in doses
    ]


def simulate_schedule(
    doses: Sequence[Dose],
    schedule_length: float,
    days: float,
    step: float = TIME_POINT_STEP,
    repeat: bool = True,
    steady_state: bool = False,
) -> list[ConcentrationPoint]:
    """Concentration series for a schedule shown over ``days`` days.

    With ``repeat`` the schedule is tiled every ``schedule_length`` days;
    ``steady_state`` additionally prepends prior cycles.
    """
    timeline = list(doses)
    if repeat and schedule_length > 0:
        cycles = int(math.ceil(days / schedule_length))
        timeline = [
            Dose(dose.day + cycle * schedule_length, dose.amount, dose.medication)
            for cycle in range(cycles + 1)
            for dose in doses
        ]
    if steady_state:
        timeline = prior_cycle_doses(doses, schedule_length) + timeline
    return total_concentration(timeline, generate_time_grid(days, step))
