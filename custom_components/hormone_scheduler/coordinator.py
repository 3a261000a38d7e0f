"""DataUpdateCoordinator for the Hormone Scheduler integration."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

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
    STATUS_CANCELLED,
    STATUS_FAILED,
    STATUS_FINISHED,
    STATUS_IDLE,
    STATUS_RUNNING,
)
from .optimizer import (
    OptimizationCancelled,
    OptimizationResult,
    find_best_injection_count,
    optimize_schedule,
)
from .params import OptimizationParams, params_from_config
from .pharmacokinetics import simulate_schedule
from .reference import generate_reference_cycle

_LOGGER = logging.getLogger(__name__)


class HormoneSchedulerCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Owns optimization runs for one config entry and publishes their state.

    Runs execute in an executor thread; progress is handed back to the event
    loop and pushed to entities with ``async_set_updated_data``. Nothing is
    polled.
    """

    config_entry: ConfigEntry

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        """Initialize the coordinator."""
        super().__init__(hass, _LOGGER, name=DOMAIN, update_interval=None)
        self.config_entry = entry
        self._cancel_event: threading.Event | None = None
        self._status = STATUS_IDLE
        self._progress = 0
        self._iteration = 0
        self._search_score: float | None = None
        self._result: OptimizationResult | None = None
        self._result_params: OptimizationParams | None = None
        self._best_count: int | None = None

    def _get_config(self) -> dict[str, Any]:
        """Get merged config from entry data + options."""
        data = self.config_entry.data
        opts = self.config_entry.options
        return {
            CONF_MEDICATIONS: list(
                opts.get(CONF_MEDICATIONS, data.get(CONF_MEDICATIONS, DEFAULT_MEDICATIONS))
            ),
            CONF_SCHEDULE_LENGTH: opts.get(
                CONF_SCHEDULE_LENGTH,
                data.get(CONF_SCHEDULE_LENGTH, DEFAULT_SCHEDULE_LENGTH),
            ),
            CONF_REFERENCE_CYCLE: opts.get(
                CONF_REFERENCE_CYCLE,
                data.get(CONF_REFERENCE_CYCLE, DEFAULT_REFERENCE_CYCLE),
            ),
            CONF_STEADY_STATE: opts.get(
                CONF_STEADY_STATE, data.get(CONF_STEADY_STATE, DEFAULT_STEADY_STATE)
            ),
            CONF_GRANULARITY: opts.get(
                CONF_GRANULARITY, data.get(CONF_GRANULARITY, DEFAULT_GRANULARITY_ML)
            ),
            CONF_MIN_DOSE: opts.get(
                CONF_MIN_DOSE, data.get(CONF_MIN_DOSE, DEFAULT_MIN_DOSE_MG)
            ),
            CONF_MAX_DOSE: opts.get(
                CONF_MAX_DOSE, data.get(CONF_MAX_DOSE, DEFAULT_MAX_DOSE_MG)
            ),
            CONF_MAX_INJECTIONS: opts.get(
                CONF_MAX_INJECTIONS,
                data.get(CONF_MAX_INJECTIONS, DEFAULT_CONFIGURED_MAX_INJECTIONS),
            ),
            CONF_ACCURACY_ONLY: opts.get(
                CONF_ACCURACY_ONLY, data.get(CONF_ACCURACY_ONLY, DEFAULT_ACCURACY_ONLY)
            ),
            CONF_ESTER_CONCENTRATIONS: dict(
                opts.get(
                    CONF_ESTER_CONCENTRATIONS, data.get(CONF_ESTER_CONCENTRATIONS, {})
                )
            ),
        }

    def build_params(
        self, overrides: dict[str, Any] | None = None
    ) -> OptimizationParams:
        """Params from the entry config with per-call overrides applied."""
        return params_from_config({**self._get_config(), **(overrides or {})})

    @property
    def is_running(self) -> bool:
        return self._cancel_event is not None

    def _snapshot(self) -> dict[str, Any]:
        config = self._get_config()
        data: dict[str, Any] = {
            "config": config,
            "status": self._status,
            "progress": self._progress,
            "iteration": self._iteration,
            "search_score": self._search_score,
            "result": None,
            "best_injection_count": self._best_count,
            "curve": [],
            "reference": [
                asdict(point)
                for point in generate_reference_cycle(
                    config[CONF_SCHEDULE_LENGTH], config[CONF_REFERENCE_CYCLE]
                )
            ],
        }
        if self._result is not None and self._result_params is not None:
            params = self._result_params
            data["result"] = self._result.as_dict()
            data["curve"] = [
                point.as_dict()
                for point in simulate_schedule(
                    self._result.doses,
                    params.schedule_length,
                    params.schedule_length,
                    steady_state=params.steady_state,
                )
            ]
        return data

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the current optimization state."""
        return self._snapshot()

    @callback
    def _async_publish(self) -> None:
        self.async_set_updated_data(self._snapshot())

    @callback
    def _async_apply_progress(self, progress: int, score: float, iteration: int) -> None:
        self._progress = progress
        self._search_score = score
        self._iteration = iteration
        self._async_publish()

    def _report_progress(self, progress: int, score: float, iteration: int) -> None:
        """Progress callback; runs in the executor thread."""
        self.hass.loop.call_soon_threadsafe(
            self._async_apply_progress, progress, score, iteration
        )

    async def _async_run(
        self,
        params: OptimizationParams,
        job: Callable[[threading.Event], OptimizationResult],
    ) -> OptimizationResult:
        if self.is_running:
            raise HomeAssistantError(
                f"An optimization is already running for {self.config_entry.title}"
            )
        event = threading.Event()
        self._cancel_event = event
        self._status = STATUS_RUNNING
        self._progress = 0
        self._iteration = 0
        self._search_score = None
        self._async_publish()

        try:
            result = await self.hass.async_add_executor_job(job, event)
        except OptimizationCancelled:
            self._status = STATUS_CANCELLED
            _LOGGER.warning(
                "Optimization for %s cancelled at iteration %d",
                self.config_entry.title,
                self._iteration,
            )
            raise
        except Exception:
            self._status = STATUS_FAILED
            raise
        finally:
            self._cancel_event = None
            self._async_publish()

        self._status = STATUS_FINISHED
        self._progress = 100
        self._result = result
        self._result_params = params
        self._async_publish()
        return result

    async def async_optimize(
        self, overrides: dict[str, Any] | None = None
    ) -> OptimizationResult:
        """Optimize the configured schedule.

        Raises InvalidOptimizationParams for an unusable configuration,
        HomeAssistantError while another run is active and
        OptimizationCancelled when ``async_cancel`` stops the run.
        """
        params = self.build_params(overrides)

        def job(event: threading.Event) -> OptimizationResult:
            return optimize_schedule(
                params,
                on_progress=self._report_progress,
                should_stop=event.is_set,
            )

        self._best_count = None
        return await self._async_run(params, job)

    async def async_find_best_injection_count(
        self, max_count: int, overrides: dict[str, Any] | None = None
    ) -> tuple[int, OptimizationResult]:
        """Search injection caps 1..max_count for the most accurate schedule."""
        params = self.build_params(overrides)
        found: dict[str, int] = {}

        def job(event: threading.Event) -> OptimizationResult:
            count, result = find_best_injection_count(
                params,
                max_count,
                on_progress=self._report_progress,
                should_stop=event.is_set,
            )
            found["count"] = count
            return result

        result = await self._async_run(params, job)
        self._best_count = found["count"]
        self._async_publish()
        return found["count"], result

    @callback
    def async_cancel(self) -> bool:
        """Ask the running optimization to stop; False if none is running."""
        if self._cancel_event is None:
            return False
        _LOGGER.debug("Cancelling optimization for %s", self.config_entry.title)
        self._cancel_event.set()
        return True
