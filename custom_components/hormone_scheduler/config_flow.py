"""Config flow for Hormone Scheduler."""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.const import CONF_NAME
from homeassistant.core import callback
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.selector import ObjectSelector

from .const import (
    CONF_ACCURACY_ONLY,
    CONF_ESTER_CONCENTRATIONS,
    CONF_GRANULARITY,
    CONF_MAX_DOSE,
    CONF_MAX_INJECTIONS,
    CONF_MEDICATIONS,
    CONF_MIN_DOSE,
    CONF_REFERENCE_CYCLE,
    CONF_SCHEDULE_LENGTH,
    CONF_STEADY_STATE,
    DEFAULT_ACCURACY_ONLY,
    DEFAULT_CONFIGURED_MAX_INJECTIONS,
    DEFAULT_GRANULARITY_ML,
    DEFAULT_MAX_DOSE_MG,
    DEFAULT_MEDICATIONS,
    DEFAULT_MIN_DOSE_MG,
    DEFAULT_REFERENCE_CYCLE,
    DEFAULT_SCHEDULE_LENGTH,
    DEFAULT_STEADY_STATE,
    DOMAIN,
    REFERENCE_CYCLES,
)
from .medication import MEDICATION_NAMES
from .params import ESTER_CONCENTRATIONS_SCHEMA

DEFAULT_NAME = "Hormone schedule"


def _schedule_schema(data: dict[str, Any]) -> dict:
    """Medications and cycle fields, defaulting to ``data``."""
    return {
        vol.Required(
            CONF_MEDICATIONS,
            default=list(data.get(CONF_MEDICATIONS, DEFAULT_MEDICATIONS)),
        ): cv.multi_select(MEDICATION_NAMES),
        vol.Required(
            CONF_SCHEDULE_LENGTH,
            default=data.get(CONF_SCHEDULE_LENGTH, DEFAULT_SCHEDULE_LENGTH),
        ): vol.All(vol.Coerce(int), vol.Range(min=1, max=90)),
        vol.Required(
            CONF_REFERENCE_CYCLE,
            default=data.get(CONF_REFERENCE_CYCLE, DEFAULT_REFERENCE_CYCLE),
        ): vol.In(REFERENCE_CYCLES),
        vol.Required(
            CONF_STEADY_STATE,
            default=data.get(CONF_STEADY_STATE, DEFAULT_STEADY_STATE),
        ): bool,
    }


def _limits_schema(data: dict[str, Any]) -> dict:
    """Dose limit fields, defaulting to ``data``."""
    return {
        vol.Required(
            CONF_GRANULARITY,
            default=data.get(CONF_GRANULARITY, DEFAULT_GRANULARITY_ML),
        ): vol.All(vol.Coerce(float), vol.Range(min=0.001, max=1.0)),
        vol.Required(
            CONF_MIN_DOSE,
            default=data.get(CONF_MIN_DOSE, DEFAULT_MIN_DOSE_MG),
        ): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
        vol.Required(
            CONF_MAX_DOSE,
            default=data.get(CONF_MAX_DOSE, DEFAULT_MAX_DOSE_MG),
        ): vol.All(vol.Coerce(float), vol.Range(min=0.01, max=100)),
        vol.Required(
            CONF_MAX_INJECTIONS,
            default=data.get(CONF_MAX_INJECTIONS, DEFAULT_CONFIGURED_MAX_INJECTIONS),
        ): vol.All(vol.Coerce(int), vol.Range(min=1, max=30)),
        vol.Required(
            CONF_ACCURACY_ONLY,
            default=data.get(CONF_ACCURACY_ONLY, DEFAULT_ACCURACY_ONLY),
        ): bool,
        vol.Optional(
            CONF_ESTER_CONCENTRATIONS,
            default=dict(data.get(CONF_ESTER_CONCENTRATIONS, {})),
        ): ObjectSelector(),
    }


def validate_schedule_input(user_input: dict[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not user_input.get(CONF_MEDICATIONS):
        errors[CONF_MEDICATIONS] = "no_medications"
    return errors


def validate_limits_input(user_input: dict[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if user_input.get(CONF_MIN_DOSE, 0) > user_input.get(CONF_MAX_DOSE, 0):
        errors["base"] = "invalid_bounds"
    try:
        ESTER_CONCENTRATIONS_SCHEMA(user_input.get(CONF_ESTER_CONCENTRATIONS) or {})
    except vol.Invalid:
        errors[CONF_ESTER_CONCENTRATIONS] = "invalid_concentrations"
    return errors


class HormoneSchedulerConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Hormone Scheduler."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self._data: dict[str, Any] = {}

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Step 1: Medications and reference cycle."""
        errors: dict[str, str] = {}
        if user_input is not None:
            errors = validate_schedule_input(user_input)
            if not errors:
                self._data.update(user_input)
                return await self.async_step_limits()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_NAME, default=self._data.get(CONF_NAME, DEFAULT_NAME)
                    ): str,
                    **_schedule_schema(user_input or self._data),
                }
            ),
            errors=errors,
        )

    async def async_step_limits(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Step 2: Dose granularity, bounds and injection cap."""
        errors: dict[str, str] = {}
        if user_input is not None:
            errors = validate_limits_input(user_input)
            if not errors:
                self._data.update(user_input)
                title = self._data.pop(CONF_NAME, DEFAULT_NAME)
                return self.async_create_entry(title=title, data=self._data)

        return self.async_show_form(
            step_id="limits",
            data_schema=vol.Schema(_limits_schema(user_input or {})),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> HormoneSchedulerOptionsFlow:
        """Get the options flow handler."""
        return HormoneSchedulerOptionsFlow()


class HormoneSchedulerOptionsFlow(config_entries.OptionsFlow):
    """Handle options for Hormone Scheduler."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Manage integration options."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = {
                **validate_schedule_input(user_input),
                **validate_limits_input(user_input),
            }
            if not errors:
                return self.async_create_entry(data=user_input)

        # Merge options over data so saved changes are reflected
        data = user_input or {**self.config_entry.data, **self.config_entry.options}

        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {**_schedule_schema(data), **_limits_schema(data)}
            ),
            errors=errors,
        )
