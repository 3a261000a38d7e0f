"""Constants for the Hormone Scheduler integration."""

from __future__ import annotations

DOMAIN = "hormone_scheduler"

PLATFORMS = ["sensor", "button"]

# ── Config keys ──────────────────────────────────────────────────────────────

CONF_MEDICATIONS = "medications"
CONF_SCHEDULE_LENGTH = "schedule_length"
CONF_REFERENCE_CYCLE = "reference_cycle"
CONF_STEADY_STATE = "steady_state"
CONF_GRANULARITY = "granularity"
CONF_MIN_DOSE = "min_dose_per_injection"
CONF_MAX_DOSE = "max_dose_per_injection"
CONF_MAX_INJECTIONS = "max_injections_per_cycle"
CONF_ACCURACY_ONLY = "optimize_for_accuracy_only"
CONF_PROGESTERONE_DOSES = "progesterone_doses"
CONF_ESTER_CONCENTRATIONS = "ester_concentrations"
CONF_SEED = "seed"

# ── Defaults ─────────────────────────────────────────────────────────────────

DEFAULT_MEDICATIONS = ["Estradiol valerate"]
DEFAULT_SCHEDULE_LENGTH = 29
DEFAULT_REFERENCE_CYCLE = "typical"
DEFAULT_STEADY_STATE = True
DEFAULT_GRANULARITY_ML = 0.05
DEFAULT_MIN_DOSE_MG = 0.1
DEFAULT_MAX_DOSE_MG = 10.0
DEFAULT_MAX_INJECTIONS = 10
DEFAULT_CONFIGURED_MAX_INJECTIONS = 7
DEFAULT_ACCURACY_ONLY = False
DEFAULT_PROGESTERONE_DOSES = (100.0, 200.0)
DEFAULT_SEED = 0
DEFAULT_ESTER_CONCENTRATION = 40.0  # mg/mL, used for esters missing a strength

# ── Attribute names ──────────────────────────────────────────────────────────

ATTR_DOSES = "doses"
ATTR_SCORE = "score"
ATTR_ITERATIONS = "iterations"
ATTR_STATUS = "status"
ATTR_CURVE = "curve"
ATTR_REFERENCE = "reference"
ATTR_SCHEDULE_LENGTH = "schedule_length"
ATTR_REFERENCE_CYCLE = "reference_cycle"

STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_FINISHED = "finished"
STATUS_CANCELLED = "cancelled"
STATUS_FAILED = "failed"

# ── Pharmacokinetic model ────────────────────────────────────────────────────

# Past this horizon an ester's contribution is treated as negligible.
EFFECT_DURATION_DAYS = 100.0
# Rate constants closer than this are treated as coincident.
RATE_EQUALITY_EPSILON = 1e-9
# Time step (days) of the grid the objective samples from.
TIME_POINT_STEP = 0.5
# Virtual cycles prepended when simulating steady state.
STEADY_STATE_CYCLES = 3

SAMPLES_PER_DAY = 4
TIME_POINT_TOLERANCE = 0.1

# ── Objective weights ────────────────────────────────────────────────────────

SIMPLICITY_WEIGHT = 0.02
DOSE_COMPLEXITY_WEIGHT = 0.001

# ── Optimizer tuning ─────────────────────────────────────────────────────────

DEFAULT_STARTING_VOLUME_ML = 0.15
MAX_DOSE_ADJUSTMENT_STEPS = 10
MAX_ORAL_VAGINAL_PROGESTERONE_PER_DAY = 4
MIN_IMPROVEMENT_THRESHOLD = 0.0001
NO_IMPROVEMENT_ITERATIONS_LIMIT = 3
INITIAL_GRANULARITY_MULTIPLIER = 4.0
MIN_GRANULARITY_MULTIPLIER = 1.0
GRANULARITY_REFINEMENT_TRIGGER = 2
BEAM_WIDTH = 3
GAP_HALF_LIFE_RATIO = 0.4
SWITCH_CANDIDATE_COUNT = 2
LOCAL_MOVE_RADIUS = 3
PROGESTERONE_IMPORTANCE_WEIGHT = 10.0
MIN_VOLUME_ML = 0.01

PROGRESS_YIELD_INTERVAL = 5
PROGRESS_CONVERGENCE_RATE = 10.0
MAX_DISPLAYED_PROGRESS = 95

# ── Estradiol esters [D, k1, k2, k3] ─────────────────────────────────────────
# Three-exponential depot model fitted per ester (k in 1/day).

ESTER_PARAMETERS: dict[str, list[float]] = {
    "Estradiol benzoate": [1.7050e08, 3.22397192, 0.58870148, 70721.4018],
    "Estradiol valerate": [2596.05956, 2.38229125, 0.23345814, 1.37642769],
    "Estradiol cypionate": [1920.89671, 0.10321089, 0.89854779, 0.89359759],
    "Estradiol cypionate suspension": [
        1.5669e08, 0.13586726, 2.51772731, 74768.1493,
    ],
    "Estradiol enanthate": [333.874181, 0.42412968, 0.43452980, 0.15291485],
    "Estradiol undecylate": [65.9493374, 0.29634323, 4799337.57, 0.03141554],
    "Polyestradiol phosphate": [34.46836875, 0.02456035, 135643.711, 0.10582368],
}

# Common vial strengths (mg/mL), used to convert between mg and mL.
DEFAULT_ESTER_CONCENTRATIONS: dict[str, float] = {
    "Estradiol benzoate": 40.0,
    "Estradiol valerate": 40.0,
    "Estradiol cypionate": 40.0,
    "Estradiol cypionate suspension": 5.0,
    "Estradiol enanthate": 40.0,
    "Estradiol undecylate": 80.0,
    "Polyestradiol phosphate": 40.0,
}

# ── Progesterone routes [F, ka (1/h), ke (1/h), Vd] ──────────────────────────
# Vd is an apparent volume calibrated so mg doses give ng/mL levels.

PROGESTERONE_PARAMETERS: dict[str, tuple[str, list[float]]] = {
    "Oral progesterone": ("oral", [0.1, 0.6, 0.1, 1.0]),
    "Vaginal progesterone": ("vaginal", [0.2, 0.2, 0.05, 2.0]),
    "Rectal progesterone": ("rectal", [0.15, 0.3, 0.07, 1.5]),
}

# ── Reference cycles (30-day, estradiol pg/mL, progesterone ng/mL) ───────────
# Estradiol mean and 5th/95th percentiles across the menstrual cycle.

MENSTRUAL_CYCLE_DATA: dict[str, list[float]] = {
    "t": [
        0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14,
        15, 16, 17, 18, 19, 20, 21, 22, 23, 24, 25, 26, 27, 28, 29,
    ],
    "E2": [
        37.99, 40.59, 37.49, 34.99, 35.49, 39.54, 41.99, 44.34, 53.43,
        58.58, 71.43, 98.92, 132.31, 177.35, 255.88, 182.80, 85.23,
        70.98, 87.97, 109.92, 122.77, 132.56, 150.30, 133.81, 137.16,
        134.96, 92.73, 85.68, 46.34, 41.19,
    ],
    "E2p5": [
        15.68, 17.99, 20.48, 21.63, 22.60, 23.86, 25.44, 30.64, 33.96,
        42.95, 51.88, 50.79, 65.79, 91.89, 137.25, 131.30, 43.55,
        42.12, 56.83, 73.49, 79.70, 72.75, 79.46, 76.79, 76.05,
        80.22, 57.26, 47.62, 27.77, 25.60,
    ],
    "E2p95": [
        52.97, 51.12, 51.58, 54.74, 53.59, 57.08, 61.20, 60.16, 72.79,
        85.36, 94.46, 133.70, 218.89, 314.28, 413.41, 388.28, 140.11,
        108.52, 135.06, 181.42, 191.73, 196.05, 189.45, 195.64, 208.23,
        219.75, 174.38, 148.77, 135.58, 188.92,
    ],
    "P4": [
        0.4, 0.4, 0.4, 0.4, 0.4, 0.4, 0.5, 0.5, 0.5, 0.5, 0.6, 0.7, 0.9,
        1.2, 1.8, 3.0, 5.1, 7.4, 9.2, 10.8, 11.9, 12.4, 12.1, 11.0, 9.4,
        7.3, 5.0, 2.9, 1.3, 0.6,
    ],
}

# Target range midpoint (pg/mL) for the flat HRT profile.
HRT_TARGET_E2 = 150.0

REFERENCE_CYCLES: dict[str, str] = {
    "typical": "Typical menstrual cycle (mean)",
    "conservative": "Conservative (5th percentile)",
    "high": "High (95th percentile)",
    "hrt_target": "Flat HRT target range",
}

# ── Preset schedules (for the concentration service) ────────────────────────

PRESETS: dict[str, dict] = {
    "ev_5day": {
        "name": "EV every 5 days",
        "schedule_length": 5,
        "doses": [{"day": 0, "amount": 3.0, "medication": "Estradiol valerate"}],
    },
    "ev_weekly": {
        "name": "EV weekly",
        "schedule_length": 7,
        "doses": [{"day": 0, "amount": 5.0, "medication": "Estradiol valerate"}],
    },
    "ec_weekly": {
        "name": "EC weekly",
        "schedule_length": 7,
        "doses": [{"day": 0, "amount": 4.0, "medication": "Estradiol cypionate"}],
    },
    "ec_biweekly": {
        "name": "EC every 2 weeks",
        "schedule_length": 14,
        "doses": [{"day": 0, "amount": 7.0, "medication": "Estradiol cypionate"}],
    },
    "een_weekly": {
        "name": "EEn weekly",
        "schedule_length": 7,
        "doses": [{"day": 0, "amount": 4.0, "medication": "Estradiol enanthate"}],
    },
}

APPROXIMATION_DISCLAIMER = (
    "Simulated levels are pharmacokinetic APPROXIMATIONS based on population"
    " models, not measurements. Never change a regimen without a clinician."
)
