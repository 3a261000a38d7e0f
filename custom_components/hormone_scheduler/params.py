"""Optimization parameters and their validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import voluptuous as vol

from .const import (
    CONF_ACCURACY_ONLY,
    CONF_ESTER_CONCENTRATIONS,
    CONF_GRANULARITY,
    CONF_MAX_DOSE,
    CONF_MAX_INJECTIONS,
    CONF_MEDICATIONS,
    CONF_MIN_DOSE,
    CONF_PROGESTERONE_DOSES,
    CONF_REFERENCE_CYCLE,
    CONF_SCHEDULE_LENGTH,
    CONF_SEED,
    CONF_STEADY_STATE,
    DEFAULT_ACCURACY_ONLY,
    DEFAULT_ESTER_CONCENTRATIONS,
    DEFAULT_GRANULARITY_ML,
    DEFAULT_MAX_DOSE_MG,
    DEFAULT_MAX_INJECTIONS,
    DEFAULT_MIN_DOSE_MG,
    DEFAULT_PROGESTERONE_DOSES,
    DEFAULT_REFERENCE_CYCLE,
    DEFAULT_SCHEDULE_LENGTH,
    DEFAULT_SEED,
    DEFAULT_STEADY_STATE,
    REFERENCE_CYCLES,
)
from .medication import MEDICATION_NAMES, Medication, get_medication


class InvalidOptimizationParams(ValueError):
    """Raised when an optimization is requested with an unusable configuration."""


@dataclass(frozen=True)
class OptimizationParams:
    """Everything one optimization run needs from its caller."""

    available_medications: tuple[Medication, ...]
    schedule_length: int
    reference_cycle_type: str = DEFAULT_REFERENCE_CYCLE
    steady_state: bool = False
    granularity: float = DEFAULT_GRANULARITY_ML
    min_dose_per_injection: float = DEFAULT_MIN_DOSE_MG
    max_dose_per_injection: float = DEFAULT_MAX_DOSE_MG
    max_injections_per_cycle: int = DEFAULT_MAX_INJECTIONS
    ester_concentrations: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_ESTER_CONCENTRATIONS)
    )
    progesterone_doses: tuple[float, ...] = DEFAULT_PROGESTERONE_DOSES
    optimize_for_accuracy_only: bool = False
    seed: int = DEFAULT_SEED

    def validate(self) -> None:
        """Fail fast on configurations no search can satisfy."""
        if not self.available_medications:
            raise InvalidOptimizationParams(
                "At least one medication must be available"
            )
        if self.schedule_length < 1:
            raise InvalidOptimizationParams("schedule_length must be >= 1")
        if self.granularity <= 0:
            raise InvalidOptimizationParams("granularity must be > 0")
        if self.min_dose_per_injection > self.max_dose_per_injection:
            raise InvalidOptimizationParams(
                "min_dose_per_injection cannot exceed max_dose_per_injection"
            )
        if self.max_injections_per_cycle < 1:
            raise InvalidOptimizationParams("max_injections_per_cycle must be >= 1")
        if not self.progesterone_doses or min(self.progesterone_doses) <= 0:
            raise InvalidOptimizationParams(
                "progesterone_doses must contain positive amounts"
            )
        if self.reference_cycle_type not in REFERENCE_CYCLES:
            raise InvalidOptimizationParams(
                f"Unknown reference cycle: {self.reference_cycle_type}"
            )

    def with_overrides(self, **changes: Any) -> OptimizationParams:
        return replace(self, **changes)


# Vial strength (mg/mL) per medication; missing entries use the catalog default.
ESTER_CONCENTRATIONS_SCHEMA = vol.Schema(
    {vol.In(MEDICATION_NAMES): vol.All(vol.Coerce(float), vol.Range(min=0.01))}
)

OPTIMIZATION_PARAMS_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_MEDICATIONS): vol.All(
            [vol.In(MEDICATION_NAMES)], vol.Length(min=1)
        ),
        vol.Optional(CONF_SCHEDULE_LENGTH, default=DEFAULT_SCHEDULE_LENGTH): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=365)
        ),
        vol.Optional(CONF_REFERENCE_CYCLE, default=DEFAULT_REFERENCE_CYCLE): vol.In(
            REFERENCE_CYCLES
        ),
        vol.Optional(CONF_STEADY_STATE, default=DEFAULT_STEADY_STATE): bool,
        vol.Optional(CONF_GRANULARITY, default=DEFAULT_GRANULARITY_ML): vol.All(
            vol.Coerce(float), vol.Range(min=0.001, max=1.0)
        ),
        vol.Optional(CONF_MIN_DOSE, default=DEFAULT_MIN_DOSE_MG): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_MAX_DOSE, default=DEFAULT_MAX_DOSE_MG): vol.All(
            vol.Coerce(float), vol.Range(min=0.01)
        ),
        vol.Optional(CONF_MAX_INJECTIONS, default=DEFAULT_MAX_INJECTIONS): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=60)
        ),
        vol.Optional(
            CONF_ESTER_CONCENTRATIONS, default=dict
        ): ESTER_CONCENTRATIONS_SCHEMA,
        vol.Optional(
            CONF_PROGESTERONE_DOSES, default=list(DEFAULT_PROGESTERONE_DOSES)
        ): vol.All(
            [vol.All(vol.Coerce(float), vol.Range(min=0.01))], vol.Length(min=1)
        ),
        vol.Optional(CONF_ACCURACY_ONLY, default=DEFAULT_ACCURACY_ONLY): bool,
        vol.Optional(CONF_SEED, default=DEFAULT_SEED): vol.Coerce(int),
    },
    extra=vol.REMOVE_EXTRA,
)


def params_from_config(config: Mapping[str, Any]) -> OptimizationParams:
    """Validate a raw mapping (config entry or service data) into params.

    Raises InvalidOptimizationParams when the mapping fails validation.
    """
    try:
        data = OPTIMIZATION_PARAMS_SCHEMA(dict(config))
    except vol.Invalid as err:
        raise InvalidOptimizationParams(str(err)) from err

    concentrations = dict(DEFAULT_ESTER_CONCENTRATIONS)
    concentrations.update(data[CONF_ESTER_CONCENTRATIONS])

    params = OptimizationParams(
        available_medications=tuple(
            get_medication(name) for name in dict.fromkeys(data[CONF_MEDICATIONS])
        ),
        schedule_length=data[CONF_SCHEDULE_LENGTH],
        reference_cycle_type=data[CONF_REFERENCE_CYCLE],
        steady_state=data[CONF_STEADY_STATE],
        granularity=data[CONF_GRANULARITY],
        min_dose_per_injection=data[CONF_MIN_DOSE],
        max_dose_per_injection=data[CONF_MAX_DOSE],
        max_injections_per_cycle=data[CONF_MAX_INJECTIONS],
        ester_concentrations=concentrations,
        progesterone_doses=tuple(data[CONF_PROGESTERONE_DOSES]),
        optimize_for_accuracy_only=data[CONF_ACCURACY_ONLY],
        seed=data[CONF_SEED],
    )
    params.validate()
    return params
