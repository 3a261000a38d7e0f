"""Hormone Scheduler integration for Home Assistant."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError

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
    DOMAIN,
    PLATFORMS,
    PRESETS,
    REFERENCE_CYCLES,
    TIME_POINT_STEP,
)
from .coordinator import HormoneSchedulerCoordinator
from .medication import MEDICATION_NAMES, doses_from_dicts, preset_schedule
from .optimizer import OptimizationCancelled
from .params import ESTER_CONCENTRATIONS_SCHEMA, InvalidOptimizationParams
from .pharmacokinetics import simulate_schedule

_LOGGER = logging.getLogger(__name__)

SERVICE_OPTIMIZE_SCHEDULE = "optimize_schedule"
SERVICE_FIND_BEST_INJECTION_COUNT = "find_best_injection_count"
SERVICE_CANCEL_OPTIMIZATION = "cancel_optimization"
SERVICE_SIMULATE_CONCENTRATION = "simulate_concentration"

# Per-call overrides of the entry config; full validation happens in
# params_from_config once merged.
_OVERRIDE_FIELDS = {
    vol.Optional(CONF_MEDICATIONS): vol.All(
        [vol.In(MEDICATION_NAMES)], vol.Length(min=1)
    ),
    vol.Optional(CONF_SCHEDULE_LENGTH): vol.Coerce(int),
    vol.Optional(CONF_REFERENCE_CYCLE): vol.In(REFERENCE_CYCLES),
    vol.Optional(CONF_STEADY_STATE): bool,
    vol.Optional(CONF_GRANULARITY): vol.Coerce(float),
    vol.Optional(CONF_MIN_DOSE): vol.Coerce(float),
    vol.Optional(CONF_MAX_DOSE): vol.Coerce(float),
    vol.Optional(CONF_MAX_INJECTIONS): vol.Coerce(int),
    vol.Optional(CONF_ESTER_CONCENTRATIONS): ESTER_CONCENTRATIONS_SCHEMA,
    vol.Optional(CONF_PROGESTERONE_DOSES): [vol.Coerce(float)],
    vol.Optional(CONF_ACCURACY_ONLY): bool,
    vol.Optional(CONF_SEED): vol.Coerce(int),
}

SERVICE_OPTIMIZE_SCHEDULE_SCHEMA = vol.Schema(
    {
        vol.Required("config_entry_id"): str,
        **_OVERRIDE_FIELDS,
    }
)

SERVICE_FIND_BEST_INJECTION_COUNT_SCHEMA = vol.Schema(
    {
        vol.Required("config_entry_id"): str,
        vol.Required("max_count"): vol.All(vol.Coerce(int), vol.Range(min=1, max=30)),
        **_OVERRIDE_FIELDS,
    }
)

SERVICE_CANCEL_OPTIMIZATION_SCHEMA = vol.Schema(
    {
        vol.Required("config_entry_id"): str,
    }
)

DOSE_SCHEMA = vol.Schema(
    {
        vol.Required("day"): vol.All(vol.Coerce(float), vol.Range(min=0)),
        vol.Required("amount"): vol.All(vol.Coerce(float), vol.Range(min=0.001)),
        vol.Required("medication"): vol.In(MEDICATION_NAMES),
    }
)

SERVICE_SIMULATE_CONCENTRATION_SCHEMA = vol.Schema(
    {
        vol.Exclusive("preset", "schedule"): vol.In(PRESETS),
        vol.Exclusive("doses", "schedule"): [DOSE_SCHEMA],
        vol.Optional(CONF_SCHEDULE_LENGTH): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=365)
        ),
        vol.Optional("days"): vol.All(vol.Coerce(float), vol.Range(min=0, max=730)),
        vol.Optional("step", default=TIME_POINT_STEP): vol.All(
            vol.Coerce(float), vol.Range(min=0.05, max=7)
        ),
        vol.Optional("repeat", default=True): bool,
        vol.Optional(CONF_STEADY_STATE, default=False): bool,
    }
)


def _get_coordinator(
    hass: HomeAssistant, config_entry_id: str
) -> HormoneSchedulerCoordinator:
    """Resolve coordinator from config_entry_id."""
    coordinator = hass.data.get(DOMAIN, {}).get(config_entry_id)
    if coordinator is None or not isinstance(coordinator, HormoneSchedulerCoordinator):
        raise ValueError(f"No coordinator for config entry: {config_entry_id}")
    return coordinator


def _overrides(data: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in data.items()
        if key not in ("config_entry_id", "max_count")
    }


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Hormone Scheduler from a config entry."""
    hass.data.setdefault(DOMAIN, {})

    coordinator = HormoneSchedulerCoordinator(hass, entry)
    hass.data[DOMAIN][entry.entry_id] = coordinator
    await coordinator.async_config_entry_first_refresh()

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    # Register services (once)
    if "services_registered" not in hass.data[DOMAIN]:
        _register_services(hass)
        hass.data[DOMAIN]["services_registered"] = True

    return True


def _register_services(hass: HomeAssistant) -> None:
    """Register hormone scheduler services."""

    async def handle_optimize_schedule(call: ServiceCall) -> ServiceResponse:
        coord = _get_coordinator(hass, call.data["config_entry_id"])
        try:
            result = await coord.async_optimize(_overrides(dict(call.data)))
        except InvalidOptimizationParams as err:
            raise ServiceValidationError(str(err)) from err
        except OptimizationCancelled as err:
            raise HomeAssistantError(str(err)) from err
        return result.as_dict()

    async def handle_find_best_injection_count(call: ServiceCall) -> ServiceResponse:
        coord = _get_coordinator(hass, call.data["config_entry_id"])
        try:
            count, result = await coord.async_find_best_injection_count(
                call.data["max_count"], _overrides(dict(call.data))
            )
        except InvalidOptimizationParams as err:
            raise ServiceValidationError(str(err)) from err
        except OptimizationCancelled as err:
            raise HomeAssistantError(str(err)) from err
        return {"count": count, **result.as_dict()}

    async def handle_cancel_optimization(call: ServiceCall) -> None:
        coord = _get_coordinator(hass, call.data["config_entry_id"])
        if not coord.async_cancel():
            _LOGGER.debug("No optimization running for %s", coord.config_entry.title)

    async def handle_simulate_concentration(call: ServiceCall) -> ServiceResponse:
        if "preset" in call.data:
            doses, schedule_length = preset_schedule(call.data["preset"])
            schedule_length = call.data.get(CONF_SCHEDULE_LENGTH, schedule_length)
        elif "doses" in call.data and CONF_SCHEDULE_LENGTH in call.data:
            doses = doses_from_dicts(call.data["doses"])
            schedule_length = call.data[CONF_SCHEDULE_LENGTH]
        else:
            raise ServiceValidationError(
                "Provide either a preset or doses together with schedule_length"
            )
        points = simulate_schedule(
            doses,
            schedule_length,
            call.data.get("days", schedule_length),
            step=call.data["step"],
            repeat=call.data["repeat"],
            steady_state=call.data[CONF_STEADY_STATE],
        )
        return {"points": [point.as_dict() for point in points]}

    hass.services.async_register(
        DOMAIN,
        SERVICE_OPTIMIZE_SCHEDULE,
        handle_optimize_schedule,
        schema=SERVICE_OPTIMIZE_SCHEDULE_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_FIND_BEST_INJECTION_COUNT,
        handle_find_best_injection_count,
        schema=SERVICE_FIND_BEST_INJECTION_COUNT_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_CANCEL_OPTIMIZATION,
        handle_cancel_optimization,
        schema=SERVICE_CANCEL_OPTIMIZATION_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SIMULATE_CONCENTRATION,
        handle_simulate_concentration,
        schema=SERVICE_SIMULATE_CONCENTRATION_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    coordinator = hass.data[DOMAIN].get(entry.entry_id)
    if coordinator is not None:
        coordinator.async_cancel()

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id, None)
    return unload_ok


async def _async_update_listener(
    hass: HomeAssistant, entry: ConfigEntry
) -> None:
    """Handle options update."""
    await hass.config_entries.async_reload(entry.entry_id)
