"""
Deterministic synthetic month of sentiment, habit and biometric records.

Five habits with designed associations to mood:
  - Meditation: strong positive (95% on good days, 10% on bad days)
  - Exercise:   moderate positive (60% / 35%)
  - Alcohol:    strong negative (10% / 85%)
  - Reading:    noise (50% regardless)
  - Water:      done every day → excluded by the variance filter

Biometrics:
  - sleep_quality: tracks mood, ~85% coverage → included (mean-imputed)
  - hrv:           ~30% coverage → excluded by the coverage filter

Day mix is ~50% good, ~33% bad, ~17% neutral; a fraction of days has no
journal entry at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

import numpy as np

from models import BiometricSeries, HabitLog, SentimentRecord

# name -> (label, p(good), p(bad), p(neutral))
HABIT_DEFINITIONS: Dict[str, Tuple[str, float, float, float]] = {
    "meditation": ("Meditation", 0.95, 0.10, 0.50),
    "exercise":   ("Exercise",   0.60, 0.35, 0.45),
    "alcohol":    ("Alcohol",    0.10, 0.85, 0.40),
    "reading":    ("Reading",    0.50, 0.50, 0.50),
    "water":      ("Water",      1.00, 1.00, 1.00),
}

MOOD_WEIGHTS = (0.50, 0.33, 0.17)   # good, bad, neutral
SCORE_RANGES = {
    "good": (0.3, 0.9),
    "bad": (-0.9, -0.3),
    "neutral": (-0.1, 0.1),
}


@dataclass(frozen=True)
class SyntheticMonth:
    start: date
    end: date
    sentiment: Tuple[SentimentRecord, ...]
    habits: Tuple[HabitLog, ...]
    biometrics: Tuple[BiometricSeries, ...]


def generate_days(
    start: date,
    n_days: int,
    seed: int = 42,
    skip_rate: float = 0.1,
    second_entry_rate: float = 0.2,
) -> SyntheticMonth:
    rng = np.random.default_rng(seed)
    moods = ("good", "bad", "neutral")

    sentiment: List[SentimentRecord] = []
    completed: Dict[str, List[date]] = {name: [] for name in HABIT_DEFINITIONS}
    sleep: Dict[date, Optional[float]] = {}
    hrv: Dict[date, Optional[float]] = {}

    for offset in range(n_days):
        day = start + timedelta(days=offset)
        mood = moods[int(rng.choice(3, p=MOOD_WEIGHTS))]

        # Habits and biometrics are recorded even on days without a journal entry.
        for name, (_, p_good, p_bad, p_neutral) in HABIT_DEFINITIONS.items():
            rate = {"good": p_good, "bad": p_bad, "neutral": p_neutral}[mood]
            if rng.random() < rate:
                completed[name].append(day)

        base = {"good": 80.0, "bad": 60.0, "neutral": 70.0}[mood]
        sleep[day] = round(base + rng.normal(0, 5), 1) if rng.random() < 0.85 else None
        hrv[day] = round(55 + rng.normal(0, 8), 1) if rng.random() < 0.30 else None

        if rng.random() < skip_rate:
            continue
        lo, hi = SCORE_RANGES[mood]
        n_entries = 2 if rng.random() < second_entry_rate else 1
        for i in range(n_entries):
            stamp = datetime.combine(day, time(hour=9 + 8 * i))
            sentiment.append(SentimentRecord(stamp, round(float(rng.uniform(lo, hi)), 3)))

    habits = tuple(
        HabitLog(name=name, label=label, completed_days=frozenset(completed[name]))
        for name, (label, *_rates) in HABIT_DEFINITIONS.items()
    )
    biometrics = (
        BiometricSeries("sleep_quality", "Sleep quality", sleep),
        BiometricSeries("hrv", "Heart-rate variability", hrv),
    )
    return SyntheticMonth(
        start=start,
        end=start + timedelta(days=n_days - 1),
        sentiment=tuple(sentiment),
        habits=habits,
        biometrics=biometrics,
    )


def generate_month(year: int, month: int, seed: int = 42, skip_rate: float = 0.1) -> SyntheticMonth:
    """Synthetic records covering every day of ``year-month``."""
    first = date(year, month, 1)
    nxt = date(year + (month == 12), month % 12 + 1, 1)
    return generate_days(first, (nxt - first).days, seed=seed, skip_rate=skip_rate)
