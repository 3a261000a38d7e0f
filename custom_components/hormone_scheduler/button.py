"""Button platform for Hormone Scheduler."""

from __future__ import annotations

import logging

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN
from .coordinator import HormoneSchedulerCoordinator
from .optimizer import OptimizationCancelled
from .params import InvalidOptimizationParams

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Hormone Scheduler button entities."""
    coordinator: HormoneSchedulerCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            OptimizeScheduleButton(coordinator, entry),
            CancelOptimizationButton(coordinator, entry),
        ]
    )


class OptimizeScheduleButton(ButtonEntity):
    """Button to start an optimization with the configured settings."""

    _attr_has_entity_name = True
    _attr_name = "Optimize schedule"
    _attr_icon = "mdi:auto-fix"

    def __init__(
        self,
        coordinator: HormoneSchedulerCoordinator,
        entry: ConfigEntry,
    ) -> None:
        """Initialize the button."""
        self._coordinator = coordinator
        self._entry = entry
        self._attr_unique_id = f"{entry.entry_id}_optimize"

    async def async_press(self) -> None:
        """Start the run in the background; progress shows on the sensors."""
        if self._coordinator.is_running:
            raise HomeAssistantError("An optimization is already running")
        self._entry.async_create_background_task(
            self.hass, self._async_optimize(), f"{self._entry.entry_id}_optimize"
        )

    async def _async_optimize(self) -> None:
        try:
            result = await self._coordinator.async_optimize()
        except (InvalidOptimizationParams, OptimizationCancelled) as err:
            _LOGGER.warning("Hormone Scheduler: optimization not completed: %s", err)
            return
        _LOGGER.info(
            "Hormone Scheduler: schedule optimized (%d doses, score %.5f)",
            len(result.doses),
            result.score,
        )


class CancelOptimizationButton(ButtonEntity):
    """Button to stop the running optimization."""

    _attr_has_entity_name = True
    _attr_name = "Cancel optimization"
    _attr_icon = "mdi:stop-circle-outline"

    def __init__(
        self,
        coordinator: HormoneSchedulerCoordinator,
        entry: ConfigEntry,
    ) -> None:
        """Initialize the button."""
        self._coordinator = coordinator
        self._attr_unique_id = f"{entry.entry_id}_cancel_optimization"

    async def async_press(self) -> None:
        if not self._coordinator.async_cancel():
            _LOGGER.debug("Hormone Scheduler: nothing to cancel")
