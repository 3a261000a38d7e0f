"""Greedy multi-start local search for injection schedules.

The search runs as a generator so a driver (the coordinator, a test, a
script) decides when to resume it: `iter_optimize` yields an
`OptimizationProgress` every few iterations and returns the
`OptimizationResult` once converged. `optimize_schedule` is the plain
blocking driver.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Generator, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from .consolidation import finalize_doses, round_half_up
from .const import (
    BEAM_WIDTH,
    DEFAULT_STARTING_VOLUME_ML,
    GAP_HALF_LIFE_RATIO,
    GRANULARITY_REFINEMENT_TRIGGER,
    INITIAL_GRANULARITY_MULTIPLIER,
    LOCAL_MOVE_RADIUS,
    MAX_DISPLAYED_PROGRESS,
    MAX_DOSE_ADJUSTMENT_STEPS,
    MAX_ORAL_VAGINAL_PROGESTERONE_PER_DAY,
    MIN_GRANULARITY_MULTIPLIER,
    MIN_IMPROVEMENT_THRESHOLD,
    MIN_VOLUME_ML,
    NO_IMPROVEMENT_ITERATIONS_LIMIT,
    PROGESTERONE_IMPORTANCE_WEIGHT,
    PROGRESS_CONVERGENCE_RATE,
    PROGRESS_YIELD_INTERVAL,
    SWITCH_CANDIDATE_COUNT,
)
from .medication import Dose, Ester, Medication, ProgesteroneRoute, ester_strength
from .objective import ScheduleObjective
from .params import OptimizationParams
from .reference import ReferencePoint, generate_reference_cycle

_LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, float, int], None]


class OptimizationCancelled(Exception):
    """Raised when the driver stops a run at one of its yield points."""


class InitStrategy(StrEnum):
    """Day placement used to build a starting schedule."""

    PEAK_DAYS = "peak_days"
    EVEN = "even"
    FRONT_LOADED = "front_loaded"
    BACK_LOADED = "back_loaded"
    RANDOM = "random"


DEFAULT_STRATEGIES = (
    InitStrategy.PEAK_DAYS,
    InitStrategy.EVEN,
    InitStrategy.FRONT_LOADED,
)


@dataclass(frozen=True)
class OptimizerTuning:
    """Search constants; override to trade runtime for schedule quality."""

    strategies: tuple[InitStrategy, ...] = DEFAULT_STRATEGIES
    beam_width: int = BEAM_WIDTH
    starting_volume_ml: float = DEFAULT_STARTING_VOLUME_ML
    max_adjustment_steps: int = MAX_DOSE_ADJUSTMENT_STEPS
    max_oral_vaginal_per_day: int = MAX_ORAL_VAGINAL_PROGESTERONE_PER_DAY
    min_improvement: float = MIN_IMPROVEMENT_THRESHOLD
    no_improvement_limit: int = NO_IMPROVEMENT_ITERATIONS_LIMIT
    initial_granularity_multiplier: float = INITIAL_GRANULARITY_MULTIPLIER
    min_granularity_multiplier: float = MIN_GRANULARITY_MULTIPLIER
    refinement_trigger: int = GRANULARITY_REFINEMENT_TRIGGER
    gap_half_life_ratio: float = GAP_HALF_LIFE_RATIO
    switch_candidates: int = SWITCH_CANDIDATE_COUNT
    local_move_radius: int = LOCAL_MOVE_RADIUS
    progesterone_importance: float = PROGESTERONE_IMPORTANCE_WEIGHT
    yield_interval: int = PROGRESS_YIELD_INTERVAL


@dataclass
class OptimizationState:
    """Working state of a single run."""

    doses: list[Dose]
    score: float
    iterations: int = 0
    no_improvement_count: int = 0
    granularity_multiplier: float = INITIAL_GRANULARITY_MULTIPLIER
    iterations_since_refinement: int = 0
    best_score: float = math.inf
    best_doses: list[Dose] = field(default_factory=list)

    def remember_best(self) -> None:
        if self.score < self.best_score:
            self.best_score = self.score
            self.best_doses = list(self.doses)


@dataclass(frozen=True)
class OptimizationProgress:
    progress: int
    score: float
    iteration: int


@dataclass(frozen=True)
class OptimizationResult:
    """Final schedule with its pure (unpenalized) MSE."""

    doses: tuple[Dose, ...]
    score: float
    iterations: int

    @property
    def estradiol_injections(self) -> int:
        return sum(1 for d in self.doses if isinstance(d.medication, Ester))

    def as_dict(self) -> dict[str, Any]:
        return {
            "doses": [dose.as_dict() for dose in self.doses],
            "score": self.score,
            "iterations": self.iterations,
        }


@dataclass(frozen=True)
class PhaseResult:
    doses: list[Dose]
    score: float
    improved: bool


def estimated_progress(iteration: int) -> int:
    """Exponential-saturation guess at completion, capped below 100."""
    return min(
        MAX_DISPLAYED_PROGRESS,
        int(round_half_up((1 - math.exp(-iteration / PROGRESS_CONVERGENCE_RATE)) * 100)),
    )


# Initial placement


def generate_candidate_days(schedule_length: int, count: int) -> list[int]:
    """Up to ``count`` distinct days spread evenly over the schedule."""
    if count == 1:
        return [0]
    step = schedule_length / count
    days: list[int] = []
    for i in range(count):
        day = min(int(round_half_up(i * step)), schedule_length - 1)
        if day not in days:
            days.append(day)
    return days


def _weighted_days(
    start: int, end: int, count: int
) -> list[int]:
    return [start + math.floor(i / count * (end - start)) for i in range(count)]


def initial_days(
    strategy: InitStrategy,
    schedule_length: int,
    max_injections: int,
    reference: Sequence[ReferencePoint],
    rng: random.Random | None = None,
) -> list[int]:
    """Starting injection days for one multi-start candidate."""
    if strategy == InitStrategy.PEAK_DAYS:
        in_cycle = [p for p in reference if 0 <= p.day < schedule_length]
        peaks = sorted(in_cycle, key=lambda p: -p.estradiol)[:max_injections]
        if len(peaks) < max_injections:
            return generate_candidate_days(schedule_length, max_injections)
        return sorted(int(p.day) for p in peaks)

    if strategy == InitStrategy.EVEN:
        return generate_candidate_days(schedule_length, max_injections)

    if strategy in (InitStrategy.FRONT_LOADED, InitStrategy.BACK_LOADED):
        # 70% of the injections go into the first (or last) third.
        loaded = math.ceil(max_injections * 0.7)
        rest = max_injections - loaded
        if strategy == InitStrategy.FRONT_LOADED:
            boundary = schedule_length // 3
            days = _weighted_days(0, boundary, loaded)
            days += _weighted_days(boundary, schedule_length, rest)
        else:
            boundary = schedule_length * 2 // 3
            days = _weighted_days(0, boundary, rest)
            days += _weighted_days(boundary, schedule_length, loaded)
        return sorted(set(days))[:max_injections]

    if strategy == InitStrategy.RANDOM:
        rng = rng or random.Random()
        count = min(max_injections, schedule_length)
        return sorted(rng.sample(range(schedule_length), count))

    raise ValueError(f"Unknown initialization strategy: {strategy}")


def default_amount(
    medication: Medication,
    params: OptimizationParams,
    tuning: OptimizerTuning,
) -> float:
    """Starting amount: a fixed volume for esters, the first pill otherwise."""
    if isinstance(medication, ProgesteroneRoute):
        return params.progesterone_doses[0]
    strength = ester_strength(medication, params.ester_concentrations)
    return min(tuning.starting_volume_ml * strength, params.max_dose_per_injection)


# Constraints


def can_place(
    medication: Medication,
    day: float,
    doses: Sequence[Dose],
    max_injections: int,
    tuning: OptimizerTuning,
) -> bool:
    """Whether ``medication`` may be given on ``day`` alongside ``doses``."""
    if isinstance(medication, Ester):
        if any(d.day == day and d.medication.name == medication.name for d in doses):
            return False
        esters = sum(1 for d in doses if isinstance(d.medication, Ester))
        return esters < max_injections

    same_day = [
        d.medication for d in doses
        if d.day == day and isinstance(d.medication, ProgesteroneRoute)
    ]
    if medication.is_rectal:
        return not any(route.is_rectal for route in same_day)
    oral_vaginal = sum(1 for route in same_day if not route.is_rectal)
    return oral_vaginal < tuning.max_oral_vaginal_per_day


def _without(doses: Sequence[Dose], index: int) -> list[Dose]:
    return [d for i, d in enumerate(doses) if i != index]


def _with(doses: Sequence[Dose], index: int, dose: Dose) -> list[Dose]:
    candidate = list(doses)
    candidate[index] = dose
    return candidate


class ScheduleOptimizer:
    """One optimization run: reference, objective and the five search phases."""

    def __init__(
        self,
        params: OptimizationParams,
        tuning: OptimizerTuning | None = None,
    ) -> None:
        params.validate()
        self.params = params
        self.tuning = tuning or OptimizerTuning()
        self.reference = generate_reference_cycle(
            params.schedule_length, params.reference_cycle_type
        )
        self.objective = ScheduleObjective(
            self.reference,
            params.schedule_length,
            steady_state=params.steady_state,
            accuracy_only=params.optimize_for_accuracy_only,
        )
        self._in_cycle = [
            p for p in self.reference if 0 <= p.day < params.schedule_length
        ]
        self._high_value_estradiol = self._high_value_days(
            [p.estradiol for p in self._in_cycle]
        )
        self._high_value_progesterone = self._high_value_days(
            [p.progesterone or 0.0 for p in self._in_cycle]
        )

    def _high_value_days(self, values: list[float]) -> list[int]:
        """Days whose reference value is at least the median."""
        if not values:
            return []
        median = sorted(values)[len(values) // 2]
        return [
            int(p.day) for p, value in zip(self._in_cycle, values) if value >= median
        ]

    def _fits(self, medication: Medication, day: float, doses: Sequence[Dose]) -> bool:
        return can_place(
            medication, day, doses, self.params.max_injections_per_cycle, self.tuning
        )

    # Multi-start

    def initial_state(self) -> OptimizationState:
        params = self.params
        esters = [m for m in params.available_medications if isinstance(m, Ester)]
        primary = esters or list(params.available_medications)
        rng = random.Random(params.seed)

        beam: list[tuple[float, list[Dose]]] = []
        for index, strategy in enumerate(self.tuning.strategies):
            medication = primary[index % len(primary)]
            amount = default_amount(medication, params, self.tuning)
            days = initial_days(
                strategy,
                params.schedule_length,
                params.max_injections_per_cycle,
                self.reference,
                rng,
            )
            doses = [Dose(day, amount, medication) for day in days]
            score = self.objective.score(doses)
            _LOGGER.debug(
                "Start %s with %s on %d days: score %.5f",
                strategy, medication.name, len(doses), score,
            )
            beam.append((score, doses))

        beam.sort(key=lambda item: item[0])
        beam = beam[: self.tuning.beam_width]
        score, doses = beam[0]
        return OptimizationState(
            doses=doses,
            score=score,
            granularity_multiplier=self.tuning.initial_granularity_multiplier,
            best_score=score,
            best_doses=list(doses),
        )

    # Phases

    def remove_phase(self, doses: list[Dose], score: float) -> PhaseResult:
        """Drop the ester dose whose removal scores best, if over the cap."""
        ester_count = sum(1 for d in doses if isinstance(d.medication, Ester))
        if ester_count <= self.params.max_injections_per_cycle:
            return PhaseResult(doses, score, False)

        best: tuple[float, list[Dose]] | None = None
        for index in reversed(range(len(doses))):
            if not isinstance(doses[index].medication, Ester):
                continue
            candidate = _without(doses, index)
            if not candidate:
                continue
            candidate_score = self.objective.score(candidate)
            if best is None or candidate_score < best[0]:
                best = (candidate_score, candidate)

        if best is None:
            return PhaseResult(doses, score, False)
        return PhaseResult(best[1], best[0], True)

    def _amount_steps(self, dose: Dose, multiplier: float) -> list[float]:
        """Amounts to try for one dose, in trial order."""
        params = self.params
        medication = dose.medication
        if isinstance(medication, ProgesteroneRoute):
            return [a for a in params.progesterone_doses if a != dose.amount]

        strength = ester_strength(medication, params.ester_concentrations)
        volume = dose.amount / strength
        step = params.granularity * multiplier
        amounts = []
        for n in range(1, self.tuning.max_adjustment_steps + 1):
            amount = (volume + step * n) * strength
            if amount > params.max_dose_per_injection:
                break
            amounts.append(amount)
        for n in range(1, self.tuning.max_adjustment_steps + 1):
            amount = max(MIN_VOLUME_ML, volume - step * n) * strength
            if amount < params.min_dose_per_injection:
                break
            amounts.append(amount)
        return amounts

    def adjust_phase(
        self, doses: list[Dose], score: float, multiplier: float
    ) -> PhaseResult:
        """Step every dose amount up and down, keeping the best per dose."""
        improved = False
        for index, dose in enumerate(doses):
            best_amount = dose.amount
            for amount in self._amount_steps(dose, multiplier):
                candidate_score = self.objective.score(
                    _with(doses, index, replace(dose, amount=amount))
                )
                if candidate_score < score:
                    score = candidate_score
                    best_amount = amount
                    improved = True
            if best_amount != dose.amount:
                doses = _with(doses, index, replace(dose, amount=best_amount))
        return PhaseResult(doses, score, improved)

    def relocate_phase(self, doses: list[Dose], score: float) -> PhaseResult:
        """Move each dose to a high-value day or a nearby one."""
        last_day = self.params.schedule_length - 1
        radius = self.tuning.local_move_radius
        improved = False
        for index in range(len(doses)):
            dose = doses[index]
            high_value = (
                self._high_value_progesterone
                if isinstance(dose.medication, ProgesteroneRoute)
                else self._high_value_estradiol
            )
            neighbours = [max(0, dose.day - n) for n in range(radius, 0, -1)]
            neighbours += [min(last_day, dose.day + n) for n in range(1, radius + 1)]
            others = _without(doses, index)

            best_day = dose.day
            for day in dict.fromkeys([*high_value, *neighbours]):
                if day == dose.day or not self._fits(dose.medication, day, others):
                    continue
                candidate_score = self.objective.score(
                    _with(doses, index, replace(dose, day=day))
                )
                if candidate_score < score:
                    score = candidate_score
                    best_day = day
                    improved = True
            if best_day != dose.day:
                doses = _with(doses, index, replace(dose, day=best_day))
        return PhaseResult(doses, score, improved)

    def _switch_candidates(
        self, doses: Sequence[Dose], dose: Dose
    ) -> list[Medication]:
        available = self.params.available_medications
        if isinstance(dose.medication, ProgesteroneRoute):
            return list(available)

        later = [
            d.day for d in doses
            if d.day > dose.day and isinstance(d.medication, Ester)
        ]
        gap = (min(later) if later else self.params.schedule_length) - dose.day
        target = gap * self.tuning.gap_half_life_ratio
        esters = sorted(
            (m for m in available if isinstance(m, Ester)),
            key=lambda ester: abs(ester.half_life_days - target),
        )
        routes = [m for m in available if isinstance(m, ProgesteroneRoute)]
        return esters[: self.tuning.switch_candidates] + routes

    def _switched_amount(self, dose: Dose, medication: Medication) -> float:
        if isinstance(medication, ProgesteroneRoute):
            return min(
                self.params.progesterone_doses,
                key=lambda amount: abs(amount - dose.amount),
            )
        if isinstance(dose.medication, ProgesteroneRoute):
            return default_amount(medication, self.params, self.tuning)
        return dose.amount

    def switch_phase(self, doses: list[Dose], score: float) -> PhaseResult:
        """Try other medications for each dose, favouring well-matched esters."""
        if len(self.params.available_medications) <= 1:
            return PhaseResult(doses, score, False)

        improved = False
        for index in range(len(doses)):
            dose = doses[index]
            others = _without(doses, index)
            best = dose
            for medication in self._switch_candidates(doses, dose):
                if medication.name == dose.medication.name:
                    continue
                if not self._fits(medication, dose.day, others):
                    continue
                switched = Dose(
                    dose.day, self._switched_amount(dose, medication), medication
                )
                candidate_score = self.objective.score(_with(doses, index, switched))
                if candidate_score < score:
                    score = candidate_score
                    best = switched
                    improved = True
            if best is not dose:
                doses = _with(doses, index, best)
        return PhaseResult(doses, score, improved)

    def add_phase(self, doses: list[Dose], score: float) -> PhaseResult:
        """Add default-sized doses on important days while they help."""
        available = self.params.available_medications
        if len(available) <= 1:
            return PhaseResult(doses, score, False)

        weight = self.tuning.progesterone_importance
        by_importance = sorted(
            self._in_cycle,
            key=lambda p: -(p.estradiol + (p.progesterone or 0.0) * weight),
        )
        improved = False
        for point in by_importance:
            day = int(point.day)
            for medication in available:
                if not self._fits(medication, day, doses):
                    continue
                amount = default_amount(medication, self.params, self.tuning)
                candidate = [*doses, Dose(day, amount, medication)]
                candidate_score = self.objective.score(candidate)
                if candidate_score < score:
                    doses, score = candidate, candidate_score
                    improved = True
        return PhaseResult(doses, score, improved)

    # Main loop

    def iterate(self, state: OptimizationState) -> None:
        """One pass through all phases, committing each improvement."""
        for phase in (
            self.remove_phase,
            lambda d, s: self.adjust_phase(d, s, state.granularity_multiplier),
            self.relocate_phase,
            self.switch_phase,
            self.add_phase,
        ):
            result = phase(state.doses, state.score)
            if result.improved:
                state.doses = result.doses
                state.score = result.score
        state.remember_best()

    def converged(self, state: OptimizationState, previous_score: float) -> bool:
        """Update the convergence counters; True once the search should stop."""
        tuning = self.tuning
        if previous_score - state.score > tuning.min_improvement:
            state.no_improvement_count = 0
            state.iterations_since_refinement = 0
            return False

        state.no_improvement_count += 1
        state.iterations_since_refinement += 1
        if (
            state.iterations_since_refinement >= tuning.refinement_trigger
            and state.granularity_multiplier > tuning.min_granularity_multiplier
        ):
            state.granularity_multiplier = max(
                tuning.min_granularity_multiplier, state.granularity_multiplier / 2
            )
            state.iterations_since_refinement = 0
            state.no_improvement_count = 0
            _LOGGER.debug(
                "Refined granularity multiplier to %s at iteration %d",
                state.granularity_multiplier,
                state.iterations,
            )
            return False
        return state.no_improvement_count >= tuning.no_improvement_limit

    def run(self) -> Generator[OptimizationProgress, None, OptimizationResult]:
        self.objective.clear()
        state = self.initial_state()

        while True:
            state.iterations += 1
            previous_score = state.score
            if state.iterations % self.tuning.yield_interval == 0:
                yield OptimizationProgress(
                    estimated_progress(state.iterations), state.score, state.iterations
                )
            self.iterate(state)
            if self.converged(state, previous_score):
                break

        doses = finalize_doses(state.best_doses, self.params)
        result = OptimizationResult(
            doses=tuple(doses),
            score=self.objective.mse(doses),
            iterations=state.iterations,
        )
        _LOGGER.debug(
            "Converged after %d iterations (%d cached evaluations)",
            state.iterations,
            self.objective.cache_size,
        )
        return result


def iter_optimize(
    params: OptimizationParams, tuning: OptimizerTuning | None = None
) -> Generator[OptimizationProgress, None, OptimizationResult]:
    """Cooperative optimization run.

    Validates ``params`` immediately, before the first ``next()``.
    """
    return ScheduleOptimizer(params, tuning).run()


def optimize_schedule(
    params: OptimizationParams,
    on_progress: ProgressCallback | None = None,
    should_stop: Callable[[], bool] | None = None,
    tuning: OptimizerTuning | None = None,
) -> OptimizationResult:
    """Run an optimization to completion.

    ``should_stop`` is polled at every yield point; when it returns True the
    run is abandoned with OptimizationCancelled.
    """
    run = iter_optimize(params, tuning)
    while True:
        try:
            progress = next(run)
        except StopIteration as stop:
            result = stop.value
            break
        if on_progress is not None:
            on_progress(progress.progress, progress.score, progress.iteration)
        if should_stop is not None and should_stop():
            run.close()
            raise OptimizationCancelled(
                f"Optimization stopped at iteration {progress.iteration}"
            )

    if on_progress is not None:
        on_progress(100, result.score, result.iterations)
    _LOGGER.info(
        "Optimized %d-day schedule: %d doses, score %.5f after %d iterations",
        params.schedule_length,
        len(result.doses),
        result.score,
        result.iterations,
    )
    return result


def find_best_injection_count(
    params: OptimizationParams,
    max_count: int,
    on_progress: ProgressCallback | None = None,
    should_stop: Callable[[], bool] | None = None,
    tuning: OptimizerTuning | None = None,
) -> tuple[int, OptimizationResult]:
    """Compare accuracy-only runs for injection caps 1..max_count.

    Returns the cap with the lowest MSE and its result; ties keep the
    smaller cap.
    """
    if max_count < 1:
        raise ValueError("max_count must be >= 1")

    best: tuple[int, OptimizationResult] | None = None
    for count in range(1, max_count + 1):
        done = count - 1

        def forward(progress: int, score: float, iteration: int) -> None:
            if on_progress is not None:
                overall = int(round_half_up((done + progress / 100) / max_count * 100))
                on_progress(min(overall, 100), score, iteration)

        result = optimize_schedule(
            params.with_overrides(
                max_injections_per_cycle=count, optimize_for_accuracy_only=True
            ),
            on_progress=forward,
            should_stop=should_stop,
            tuning=tuning,
        )
        _LOGGER.debug("Cap %d: score %.5f", count, result.score)
        if best is None or result.score < best[1].score:
            best = (count, result)
    return best
