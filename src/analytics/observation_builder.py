"""
Observation Builder
===================
Turns sparse per-day records into a numerically safe RegressionInput.

Rules:
  • A day is admitted only if it has at least one sentiment record.  A day
    with no entry is dropped, never imputed as neutral: "no entry" and "a
    neutral entry" are different things, and filling absences with 0 would
    flatten the fit.
  • Target = mean of the admitted day's sentiment scores.
  • Habit columns are 0/1 over admitted days.  A habit with completion
    mean ≤ 1e-6 or ≥ 1 − 1e-6 (never / always done) is collinear with the
    intercept and is excluded.
  • Biometric columns need real readings on ≥ 50% of admitted days.
    Missing days take the column's own present-day mean, which leaves the
    column mean unchanged and adds no trend.
  • Fewer than 14 admitted days → InsufficientObservations.
    Fewer than 2 surviving habits → InsufficientVariance.

Pure function of its inputs: failures come back as FitFailure values.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from constants import (
    BIOMETRIC_MIN_COVERAGE,
    MIN_HABITS_WITH_VARIANCE,
    MIN_OBSERVATIONS,
    SENTIMENT_MAX,
    SENTIMENT_MIN,
    VARIANCE_EPSILON,
)
from models import (
    BiometricSeries,
    FailureReason,
    FitFailure,
    HabitLog,
    PredictorColumn,
    PredictorKind,
    RegressionInput,
    SentimentRecord,
)

log = logging.getLogger("observation_builder")

BuildResult = Union[RegressionInput, FitFailure]


def _to_date(val) -> date:
    if isinstance(val, datetime):
        return val.date()
    return val


def sentiment_frame(
    records: Iterable[SentimentRecord], start: date, end: date
) -> pd.DataFrame:
    """Usable sentiment records within ``[start, end]`` as ``day`` / ``score`` rows.

    NaN scores are dropped; scores outside [-1, 1] are clipped.
    """
    rows = [(r.day, float(r.score)) for r in records]
    df = pd.DataFrame(rows, columns=["day", "score"])
    if df.empty:
        return df

    df = df[(df["day"] >= start) & (df["day"] <= end)]
    df = df[df["score"].notna()]

    out_of_range = int(((df["score"] < SENTIMENT_MIN) | (df["score"] > SENTIMENT_MAX)).sum())
    if out_of_range:
        log.warning("   Clipped %d sentiment scores outside [%.0f, %.0f]",
                    out_of_range, SENTIMENT_MIN, SENTIMENT_MAX)
        df = df.assign(score=df["score"].clip(SENTIMENT_MIN, SENTIMENT_MAX))
    return df


def daily_sentiment(
    records: Iterable[SentimentRecord], start: date, end: date
) -> pd.Series:
    """Mean sentiment per calendar day within ``[start, end]``.

    Days without records are absent from the index (not NaN, not 0).
    """
    df = sentiment_frame(records, start, end)
    if df.empty:
        return pd.Series(dtype=np.float64)
    return df.groupby("day")["score"].mean().sort_index()


def habit_column(habit: HabitLog, days: Sequence[date]) -> Tuple[PredictorColumn, float]:
    """0/1 completion column over ``days`` plus its completion rate."""
    values = tuple(1.0 if d in habit.completed_days else 0.0 for d in days)
    rate = sum(values) / len(values) if values else 0.0
    column = PredictorColumn(
        name=habit.name,
        label=habit.label,
        kind=PredictorKind.HABIT,
        values=values,
        present=tuple(True for _ in values),
        baseline=rate,
    )
    return column, rate


def has_habit_variance(rate: float) -> bool:
    return VARIANCE_EPSILON < rate < 1.0 - VARIANCE_EPSILON


def biometric_column(series: BiometricSeries, days: Sequence[date]) -> Tuple[PredictorColumn, float]:
    """Mean-imputed biometric column plus its real-reading coverage.

    Returns a column with all-NaN values when no day has a reading; the
    caller drops it on coverage before that matters.
    """
    readings = [series.reading_on(d) for d in days]
    present = tuple(r is not None for r in readings)
    coverage = sum(present) / len(present) if present else 0.0

    real = np.array([r for r in readings if r is not None], dtype=np.float64)
    mean = float(real.mean()) if real.size else float("nan")
    values = tuple(float(r) if r is not None else mean for r in readings)

    column = PredictorColumn(
        name=series.name,
        label=series.label,
        kind=PredictorKind.BIOMETRIC,
        values=values,
        present=present,
        baseline=mean,
    )
    return column, coverage


def build_regression_input(
    start: date,
    end: date,
    sentiment: Iterable[SentimentRecord],
    habits: Iterable[HabitLog],
    biometrics: Iterable[BiometricSeries] = (),
) -> BuildResult:
    """Build the regression input for the inclusive day range ``[start, end]``."""
    start, end = _to_date(start), _to_date(end)
    if end < start:
        raise ValueError(f"end {end} is before start {start}")

    habits = list(habits)
    biometrics = list(biometrics)
    names = [h.name for h in habits] + [b.name for b in biometrics]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate predictor names: {', '.join(duplicates)}")

    log.info("   Building observations %s -> %s", start, end)

    # Step 1-2: admitted days and their targets
    daily = daily_sentiment(sentiment, start, end)
    calendar = [d.date() for d in pd.date_range(start, end, freq="D")]
    admitted: List[date] = [d for d in calendar if d in daily.index]
    targets = [float(daily[d]) for d in admitted]
    n = len(admitted)
    log.info("   %d/%d days admitted (at least one sentiment record)", n, len(calendar))

    if n < MIN_OBSERVATIONS:
        return FitFailure(
            FailureReason.INSUFFICIENT_OBSERVATIONS,
            f"{n} days with entries, need at least {MIN_OBSERVATIONS}",
        )

    excluded: List[Tuple[str, str]] = []

    # Step 3-4: habit columns with variance
    habit_cols: List[PredictorColumn] = []
    for habit in habits:
        column, rate = habit_column(habit, admitted)
        if not has_habit_variance(rate):
            reason = "never_completed" if rate <= VARIANCE_EPSILON else "always_completed"
            log.info("   Excluded habit %s (%s)", habit.name, reason)
            excluded.append((habit.name, reason))
            continue
        habit_cols.append(column)

    if len(habit_cols) < MIN_HABITS_WITH_VARIANCE:
        return FitFailure(
            FailureReason.INSUFFICIENT_VARIANCE,
            f"{len(habit_cols)} habits vary across admitted days, "
            f"need at least {MIN_HABITS_WITH_VARIANCE}",
        )

    # Step 5: biometric columns with coverage
    bio_cols: List[PredictorColumn] = []
    for series in biometrics:
        column, coverage = biometric_column(series, admitted)
        if coverage < BIOMETRIC_MIN_COVERAGE:
            log.info("   Excluded biometric %s (coverage %.0f%%)", series.name, coverage * 100)
            excluded.append((series.name, "low_coverage"))
            continue
        if np.ptp(np.asarray(column.values)) <= 0.0:
            log.info("   Excluded biometric %s (constant)", series.name)
            excluded.append((series.name, "constant"))
            continue
        n_imputed = len(column.present) - sum(column.present)
        if n_imputed:
            log.info("   Biometric %s: imputed %d days with mean %.3f",
                     series.name, n_imputed, column.baseline)
        bio_cols.append(column)

    log.info("   %d habit + %d biometric predictors", len(habit_cols), len(bio_cols))
    return RegressionInput.from_columns(admitted, targets, habit_cols + bio_cols, excluded)
