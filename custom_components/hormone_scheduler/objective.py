"""Scoring of candidate schedules against a reference curve."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from .const import (
    DOSE_COMPLEXITY_WEIGHT,
    SAMPLES_PER_DAY,
    SIMPLICITY_WEIGHT,
    TIME_POINT_STEP,
    TIME_POINT_TOLERANCE,
)
from .medication import Dose, is_ester
from .pharmacokinetics import (
    concentration_arrays,
    generate_time_grid,
    prior_cycle_doses,
)
from .reference import ReferencePoint

_LOGGER = logging.getLogger(__name__)

DoseKey = tuple[tuple[float, str, float], ...]


def dose_key(doses: Sequence[Dose]) -> DoseKey:
    """Order-independent key for a dose multiset."""
    return tuple(
        sorted((d.day, d.medication.name, round(d.amount, 3)) for d in doses)
    )


def multi_objective_score(
    doses: Sequence[Dose], mse: float, accuracy_only: bool = False
) -> float:
    """Combine accuracy with penalties for injection count and dose variety.

    Lower is better. With ``accuracy_only`` the MSE is returned unchanged.
    """
    if accuracy_only:
        return mse
    estradiol_count = sum(1 for d in doses if is_ester(d.medication))
    unique_amounts = len({round(d.amount, 2) for d in doses})
    return (
        mse
        + estradiol_count * SIMPLICITY_WEIGHT
        + unique_amounts * DOSE_COMPLEXITY_WEIGHT
    )


class ScheduleObjective:
    """Normalized MSE of a schedule against its reference, for one run.

    Results are memoized per dose multiset; call ``clear`` before reusing
    the instance for a new run.
    """

    def __init__(
        self,
        reference: Sequence[ReferencePoint],
        schedule_length: int,
        steady_state: bool = False,
        accuracy_only: bool = False,
        time_step: float = TIME_POINT_STEP,
    ) -> None:
        self.schedule_length = schedule_length
        self.steady_state = steady_state
        self.accuracy_only = accuracy_only
        self._cache: dict[DoseKey, float] = {}

        self._grid = np.asarray(
            [t for t in generate_time_grid(schedule_length, time_step) if t >= 0]
        )
        self._build_samples(
            [p for p in reference if 0 <= p.day < schedule_length]
        )

    def _build_samples(self, reference: list[ReferencePoint]) -> None:
        """Map every sub-day sample of the reference onto a grid index.

        Samples without a grid point within TIME_POINT_TOLERANCE are skipped.
        """
        lookup = {round(t, 2): i for i, t in enumerate(self._grid)}
        indices: list[int] = []
        e2_targets: list[float] = []
        p4_targets: list[float] = []
        for point in reference:
            for sample in range(SAMPLES_PER_DAY):
                time = point.day + sample / SAMPLES_PER_DAY
                index = lookup.get(round(time, 2))
                if index is None:
                    close = np.flatnonzero(
                        np.abs(self._grid - time) < TIME_POINT_TOLERANCE
                    )
                    if not close.size:
                        continue
                    index = int(close[0])
                indices.append(index)
                e2_targets.append(point.estradiol)
                p4_targets.append(point.progesterone or 0.0)

        self._indices = np.asarray(indices, dtype=int)
        self._e2_targets = np.asarray(e2_targets, dtype=float)
        self._e2_scale = np.where(self._e2_targets != 0, self._e2_targets, 1.0)
        p4 = np.asarray(p4_targets, dtype=float)
        mask = p4 > 0
        self._p4_indices = self._indices[mask]
        self._p4_targets = p4[mask]
        _LOGGER.debug(
            "Objective over %d days: %d estradiol and %d progesterone samples",
            self.schedule_length,
            self._indices.size,
            self._p4_indices.size,
        )

    def clear(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def mse(self, doses: Sequence[Dose]) -> float:
        """Relative mean squared error, averaged across hormones."""
        key = dose_key(doses)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        simulated = list(doses)
        if self.steady_state:
            simulated = prior_cycle_doses(doses, self.schedule_length) + simulated
        estradiol, progesterone = concentration_arrays(simulated, self._grid)

        e2_mse = 0.0
        if self._indices.size:
            error = (estradiol[self._indices] - self._e2_targets) / self._e2_scale
            e2_mse = float(np.mean(error * error))

        if self._p4_indices.size:
            error = (progesterone[self._p4_indices] - self._p4_targets) / self._p4_targets
            result = (e2_mse + float(np.mean(error * error))) / 2
        else:
            result = e2_mse

        self._cache[key] = result
        return result

    def score(self, doses: Sequence[Dose]) -> float:
        """Penalized score used to rank candidates."""
        return multi_objective_score(doses, self.mse(doses), self.accuracy_only)


def normalized_mse(
    doses: Sequence[Dose],
    reference: Sequence[ReferencePoint],
    schedule_length: int,
    steady_state: bool = False,
) -> float:
    """One-off normalized MSE without keeping a cache around."""
    return ScheduleObjective(reference, schedule_length, steady_state).mse(doses)
