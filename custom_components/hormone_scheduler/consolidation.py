"""Post-processing of optimized schedules into administrable doses."""

from __future__ import annotations

import math
from collections.abc import Iterable

from .medication import Dose, Ester, ProgesteroneRoute, ester_strength
from .params import OptimizationParams


def round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


def _nearest(options: Iterable[float], target: float) -> float:
    """Closest option; ties keep the earlier one."""
    best = None
    for option in options:
        if best is None or abs(option - target) < abs(best - target):
            best = option
    return best


def consolidate_doses(doses: Iterable[Dose]) -> list[Dose]:
    """Merge same-day doses of the same medication by summing amounts."""
    merged: dict[tuple[float, str], Dose] = {}
    for dose in doses:
        key = (dose.day, dose.medication.name)
        existing = merged.get(key)
        if existing is None:
            merged[key] = dose
        else:
            merged[key] = Dose(dose.day, existing.amount + dose.amount, dose.medication)
    return sorted(merged.values(), key=lambda d: d.day)


def round_dose(dose: Dose, params: OptimizationParams) -> Dose:
    """Snap a dose to what can actually be given.

    Esters round their volume to the granularity and are capped at the
    per-injection maximum. Rectal progesterone becomes the nearest single
    configured dose, oral/vaginal a multiple of the smallest one.
    """
    medication = dose.medication
    if isinstance(medication, ProgesteroneRoute):
        if medication.is_rectal:
            amount = _nearest(params.progesterone_doses, dose.amount)
        else:
            smallest = min(params.progesterone_doses)
            amount = max(smallest, round_half_up(dose.amount / smallest) * smallest)
        return Dose(dose.day, amount, medication)
    if isinstance(medication, Ester):
        strength = ester_strength(medication, params.ester_concentrations)
        steps = round_half_up(dose.amount / strength / params.granularity)
        amount = min(steps * params.granularity * strength, params.max_dose_per_injection)
        return Dose(dose.day, amount, medication)
    raise TypeError(f"Not a medication: {medication!r}")


def finalize_doses(
    doses: Iterable[Dose], params: OptimizationParams
) -> list[Dose]:
    """Consolidate, round and drop doses that rounded below the minimum."""
    rounded = [round_dose(dose, params) for dose in consolidate_doses(doses)]
    return [d for d in rounded if d.amount >= params.min_dose_per_injection]
