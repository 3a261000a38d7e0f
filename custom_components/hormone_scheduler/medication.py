"""Medication catalog and dose types for the Hormone Scheduler integration."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Union

from .const import (
    DEFAULT_ESTER_CONCENTRATION,
    ESTER_PARAMETERS,
    PRESETS,
    PROGESTERONE_PARAMETERS,
)


class ProgesteroneRouteKind(StrEnum):
    """Administration route of a progesterone formulation."""

    ORAL = "oral"
    VAGINAL = "vaginal"
    RECTAL = "rectal"


@dataclass(frozen=True)
class Ester:
    """Estradiol ester described by a three-exponential depot model.

    D scales the curve, k1/k2/k3 are the rate constants (1/day).
    """

    name: str
    D: float
    k1: float
    k2: float
    k3: float

    def __post_init__(self) -> None:
        for field in ("D", "k1", "k2", "k3"):
            if not getattr(self, field) > 0:
                raise ValueError(f"{self.name}: {field} must be > 0")

    @property
    def half_life_days(self) -> float:
        """Approximate half-life from the k2 rate."""
        return math.log(2) / self.k2


@dataclass(frozen=True)
class ProgesteroneRoute:
    """Progesterone formulation with one-compartment first-order kinetics.

    F is the bioavailable fraction, ka/ke are per hour, Vd is the apparent
    volume of distribution.
    """

    name: str
    route: ProgesteroneRouteKind
    F: float
    ka: float
    ke: float
    Vd: float

    def __post_init__(self) -> None:
        for field in ("F", "ka", "ke", "Vd"):
            if not getattr(self, field) > 0:
                raise ValueError(f"{self.name}: {field} must be > 0")

    @property
    def is_rectal(self) -> bool:
        return self.route == ProgesteroneRouteKind.RECTAL


Medication = Union[Ester, ProgesteroneRoute]


@dataclass(frozen=True)
class Dose:
    """A single administration: amount (mg) of a medication on a day."""

    day: float
    amount: float
    medication: Medication

    def as_dict(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "amount": round(self.amount, 4),
            "medication": self.medication.name,
        }


def _build_esters() -> list[Ester]:
    return [
        Ester(name, d, k1, k2, k3)
        for name, (d, k1, k2, k3) in ESTER_PARAMETERS.items()
    ]


def _build_progesterone_routes() -> list[ProgesteroneRoute]:
    return [
        ProgesteroneRoute(name, ProgesteroneRouteKind(route), f, ka, ke, vd)
        for name, (route, (f, ka, ke, vd)) in PROGESTERONE_PARAMETERS.items()
    ]


ESTRADIOL_ESTERS: list[Ester] = _build_esters()
PROGESTERONE_ROUTES: list[ProgesteroneRoute] = _build_progesterone_routes()
ALL_MEDICATIONS: list[Medication] = [*ESTRADIOL_ESTERS, *PROGESTERONE_ROUTES]

_BY_NAME: dict[str, Medication] = {med.name: med for med in ALL_MEDICATIONS}

MEDICATION_NAMES: list[str] = list(_BY_NAME)


def get_medication(name: str) -> Medication:
    """Look up a catalog medication by name."""
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown medication: {name}") from None


def is_ester(medication: Medication) -> bool:
    """Return True for estradiol esters, False for progesterone routes."""
    if isinstance(medication, Ester):
        return True
    if isinstance(medication, ProgesteroneRoute):
        return False
    raise TypeError(f"Not a medication: {medication!r}")


def ester_strength(
    medication: Medication, concentrations: dict[str, float]
) -> float:
    """Return the vial strength (mg/mL) used for volume-based dosing."""
    return concentrations.get(medication.name) or DEFAULT_ESTER_CONCENTRATION


def doses_from_dicts(raw: list[dict[str, Any]]) -> list[Dose]:
    """Build doses from ``{"day", "amount", "medication"}`` mappings."""
    return [
        Dose(
            day=float(item["day"]),
            amount=float(item["amount"]),
            medication=get_medication(item["medication"]),
        )
        for item in raw
    ]


def preset_schedule(key: str) -> tuple[list[Dose], int]:
    """Doses and schedule length of a named preset."""
    preset = PRESETS[key]
    return doses_from_dicts(preset["doses"]), preset["schedule_length"]
