"""
Value types shared by the observation builder, the regression engine and
the monthly-analysis callers.

Everything here is immutable: a RegressionInput / RegressionOutput pair is
produced fresh for every analysis request and never mutated in place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np

from constants import DIRECTION_DEADBAND


# ─── Raw source records ──────────────────────────────────────


@dataclass(frozen=True)
class SentimentRecord:
    """One sentiment-bearing entry (journal entry, check-in, ...)."""

    timestamp: Union[date, datetime]
    score: float

    @property
    def day(self) -> date:
        if isinstance(self.timestamp, datetime):
            return self.timestamp.date()
        return self.timestamp


@dataclass(frozen=True)
class HabitLog:
    """Completion history of one habit: the days it was completed."""

    name: str
    label: str
    completed_days: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        days = frozenset(
            d.date() if isinstance(d, datetime) else d for d in self.completed_days
        )
        object.__setattr__(self, "completed_days", days)


@dataclass(frozen=True)
class BiometricSeries:
    """Daily readings of one biometric signal; missing days are None/NaN."""

    name: str
    label: str
    readings: Mapping[date, Optional[float]] = field(default_factory=dict)

    def reading_on(self, day: date) -> Optional[float]:
        value = self.readings.get(day)
        if value is None:
            return None
        value = float(value)
        if math.isnan(value):
            return None
        return value


# ─── Regression input ───────────────────────────────────────


class PredictorKind(str, Enum):
    HABIT = "habit"
    BIOMETRIC = "biometric"


@dataclass(frozen=True)
class Observation:
    """One admitted calendar day."""

    date: date
    target: float
    values: Tuple[float, ...]


@dataclass(frozen=True)
class PredictorColumn:
    """One habit or biometric signal across all observations.

    ``present`` is the presence mask: True where the value is a real
    reading, False where it was mean-imputed (always all-True for habits).
    ``baseline`` is the completion fraction (habits) or the mean of the
    real readings (biometrics).
    """

    name: str
    label: str
    kind: PredictorKind
    values: Tuple[float, ...]
    present: Tuple[bool, ...]
    baseline: float

    @property
    def coverage(self) -> float:
        if not self.present:
            return 0.0
        return sum(self.present) / len(self.present)


@dataclass(frozen=True)
class RegressionInput:
    observations: Tuple[Observation, ...]
    columns: Tuple[PredictorColumn, ...]
    # (name, reason) for every source column left out of the fit
    excluded: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self):
        n = len(self.observations)
        for col in self.columns:
            if len(col.values) != n or len(col.present) != n:
                raise ValueError(
                    f"Column {col.name!r} has {len(col.values)} values, expected {n}"
                )
        for obs in self.observations:
            if len(obs.values) != len(self.columns):
                raise ValueError(
                    f"Observation {obs.date} has {len(obs.values)} predictor values, "
                    f"expected {len(self.columns)}"
                )

    @property
    def n_observations(self) -> int:
        return len(self.observations)

    @property
    def n_predictors(self) -> int:
        return len(self.columns)

    @property
    def baselines(self) -> Dict[str, float]:
        return {c.name: c.baseline for c in self.columns}

    def target_vector(self) -> np.ndarray:
        return np.array([o.target for o in self.observations], dtype=np.float64)

    def predictor_matrix(self) -> np.ndarray:
        """Observations × predictors, no intercept column."""
        n = self.n_observations
        if not self.columns:
            return np.zeros((n, 0), dtype=np.float64)
        return np.column_stack(
            [np.asarray(c.values, dtype=np.float64) for c in self.columns]
        )

    @classmethod
    def from_columns(
        cls,
        days: Iterable[date],
        targets: Iterable[float],
        columns: Iterable[PredictorColumn],
        excluded: Iterable[Tuple[str, str]] = (),
    ) -> "RegressionInput":
        """Assemble observations row-wise from already-built columns."""
        days = list(days)
        targets = [float(t) for t in targets]
        columns = tuple(columns)
        excluded = tuple(excluded)
        if len(days) != len(targets):
            raise ValueError(f"{len(days)} days but {len(targets)} target values")
        for c in columns:
            if len(c.values) != len(days):
                raise ValueError(
                    f"Column {c.name!r} has {len(c.values)} values, expected {len(days)}"
                )
        observations = tuple(
            Observation(
                date=d,
                target=targets[i],
                values=tuple(float(c.values[i]) for c in columns),
            )
            for i, d in enumerate(days)
        )
        return cls(observations=observations, columns=columns, excluded=excluded)


# ─── Regression output ──────────────────────────────────────


class Direction(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def classify(cls, coefficient: float) -> "Direction":
        if coefficient > DIRECTION_DEADBAND:
            return cls.POSITIVE
        if coefficient < -DIRECTION_DEADBAND:
            return cls.NEGATIVE
        return cls.NEUTRAL


@dataclass(frozen=True)
class Coefficient:
    name: str
    label: str
    kind: PredictorKind
    coefficient: float
    p_value: float
    baseline: float
    direction: Direction
    standard_error: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "label": self.label,
            "kind": self.kind.value,
            "coefficient": self.coefficient,
            "p_value": self.p_value,
            "baseline": self.baseline,
            "direction": self.direction.value,
            "standard_error": self.standard_error,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, object]) -> "Coefficient":
        se = d.get("standard_error")
        return cls(
            name=str(d["name"]),
            label=str(d.get("label", d["name"])),
            kind=PredictorKind(d.get("kind", PredictorKind.HABIT.value)),
            coefficient=float(d["coefficient"]),
            p_value=float(d["p_value"]),
            baseline=float(d["baseline"]),
            direction=Direction(d["direction"]),
            standard_error=None if se is None else float(se),
        )


@dataclass(frozen=True)
class RegressionOutput:
    intercept: float
    r_squared: float
    coefficients: Tuple[Coefficient, ...]
    n_observations: int = 0
    degrees_of_freedom: int = 0

    def coefficient_for(self, name: str) -> Optional[Coefficient]:
        for c in self.coefficients:
            if c.name == name:
                return c
        return None


# ─── Failures ───────────────────────────────────────────────


class FailureReason(str, Enum):
    INSUFFICIENT_OBSERVATIONS = "insufficient_observations"
    INSUFFICIENT_VARIANCE = "insufficient_variance"
    SINGULAR_SYSTEM = "singular_system"


@dataclass(frozen=True)
class FitFailure:
    """Structured, caller-inspectable reason why no model was produced."""

    reason: FailureReason
    detail: str = ""


# ─── Monthly analysis (caller-level record) ─────────────────


@dataclass(frozen=True)
class MonthlyAnalysis:
    year: int
    month: int
    start_date: date
    end_date: date
    coefficients: Tuple[Coefficient, ...]
    force_multiplier: str
    r_squared: float
    intercept: float
    average_sentiment: float
    entry_count: int
    admitted_days: int
    summary: str
    generated_at: datetime
