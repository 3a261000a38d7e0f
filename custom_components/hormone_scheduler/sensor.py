"""Sensor platform for Hormone Scheduler."""

from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import (
    APPROXIMATION_DISCLAIMER,
    ATTR_CURVE,
    ATTR_DOSES,
    ATTR_ITERATIONS,
    ATTR_REFERENCE,
    ATTR_REFERENCE_CYCLE,
    ATTR_SCHEDULE_LENGTH,
    ATTR_SCORE,
    ATTR_STATUS,
    CONF_REFERENCE_CYCLE,
    CONF_SCHEDULE_LENGTH,
    DOMAIN,
)
from .coordinator import HormoneSchedulerCoordinator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Hormone Scheduler sensors from a config entry."""
    coordinator: HormoneSchedulerCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            OptimizationProgressSensor(coordinator, entry),
            ScheduleAccuracySensor(coordinator, entry),
        ]
    )


class OptimizationProgressSensor(
    CoordinatorEntity[HormoneSchedulerCoordinator], SensorEntity
):
    """Estimated completion of the running (or last) optimization."""

    _attr_has_entity_name = True
    _attr_name = "Optimization progress"
    _attr_icon = "mdi:progress-clock"
    _attr_native_unit_of_measurement = PERCENTAGE

    def __init__(
        self,
        coordinator: HormoneSchedulerCoordinator,
        entry: ConfigEntry,
    ) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_optimization_progress"

    @property
    def native_value(self) -> int | None:
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get("progress")

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        if not self.coordinator.data:
            return {}
        data = self.coordinator.data
        return {
            ATTR_STATUS: data.get("status"),
            ATTR_ITERATIONS: data.get("iteration"),
            ATTR_SCORE: data.get("search_score"),
        }


class ScheduleAccuracySensor(
    CoordinatorEntity[HormoneSchedulerCoordinator], SensorEntity
):
    """Normalized MSE of the last optimized schedule, with the schedule itself.

    The dose list, simulated curve and reference curve are exposed as
    attributes so a dashboard card can plot them.
    """

    _attr_has_entity_name = True
    _attr_name = "Schedule accuracy"
    _attr_icon = "mdi:chart-bell-curve-cumulative"
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(
        self,
        coordinator: HormoneSchedulerCoordinator,
        entry: ConfigEntry,
    ) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_schedule_accuracy"

    @property
    def native_value(self) -> float | None:
        """Return the MSE of the last result."""
        if not self.coordinator.data or not self.coordinator.data.get("result"):
            return None
        return round(self.coordinator.data["result"]["score"], 5)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        if not self.coordinator.data:
            return {}

        data = self.coordinator.data
        config = data.get("config", {})
        result = data.get("result") or {}
        return {
            ATTR_DOSES: result.get("doses", []),
            ATTR_ITERATIONS: result.get("iterations"),
            ATTR_CURVE: data.get("curve", []),
            ATTR_REFERENCE: data.get("reference", []),
            ATTR_SCHEDULE_LENGTH: config.get(CONF_SCHEDULE_LENGTH),
            ATTR_REFERENCE_CYCLE: config.get(CONF_REFERENCE_CYCLE),
            "best_injection_count": data.get("best_injection_count"),
            "approximation_disclaimer": APPROXIMATION_DISCLAIMER,
        }
