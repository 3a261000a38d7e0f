"""Reference hormone curves the optimizer tries to reproduce."""

from __future__ import annotations

from dataclasses import dataclass

from .const import HRT_TARGET_E2, MENSTRUAL_CYCLE_DATA, REFERENCE_CYCLES


@dataclass(frozen=True)
class ReferencePoint:
    """Target levels for one day (estradiol pg/mL, progesterone ng/mL)."""

    day: int
    estradiol: float
    progesterone: float | None = None


def _cycle_profile(cycle_type: str) -> list[tuple[float, float | None]]:
    """One reference cycle as (estradiol, progesterone) per day."""
    e2 = MENSTRUAL_CYCLE_DATA["E2"]
    p4 = MENSTRUAL_CYCLE_DATA["P4"]
    if cycle_type == "typical":
        return list(zip(e2, p4))
    if cycle_type == "conservative":
        return list(zip(MENSTRUAL_CYCLE_DATA["E2p5"], (v / 2 for v in p4)))
    if cycle_type == "high":
        return list(zip(MENSTRUAL_CYCLE_DATA["E2p95"], p4))
    if cycle_type == "hrt_target":
        return [(HRT_TARGET_E2, None)] * len(e2)
    raise ValueError(
        f"Unknown reference cycle: {cycle_type} (expected one of "
        f"{', '.join(REFERENCE_CYCLES)})"
    )


def generate_reference_cycle(
    total_days: int, cycle_type: str = "typical"
) -> list[ReferencePoint]:
    """Reference point for every day in [0, total_days], tiling the cycle."""
    profile = _cycle_profile(cycle_type)
    points = []
    for day in range(int(total_days) + 1):
        estradiol, progesterone = profile[day % len(profile)]
        points.append(ReferencePoint(day, estradiol, progesterone))
    return points

