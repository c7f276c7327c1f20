"""Monthly habit/mood analysis with explicit status signaling.

Caller of the pure builder + engine: resolves the month, consults the
analysis store, fits, picks the force multiplier, hands the output to the
narrative step and persists the result.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from analytics.observation_builder import build_regression_input, sentiment_frame
from analytics.regression_engine import RegressionEngine
from models import (
    BiometricSeries,
    Coefficient,
    Direction,
    FailureReason,
    FitFailure,
    HabitLog,
    MonthlyAnalysis,
    RegressionOutput,
    SentimentRecord,
)
from pipeline.analysis_store import AnalysisStore
from pipeline.narrative import NarrativeGenerator, generate_narrative, strongest

log = logging.getLogger("pipeline.monthly_analysis")

FAILURE_MESSAGES = {
    FailureReason.INSUFFICIENT_OBSERVATIONS:
        "Not enough journal days this month (need at least 14). Keep logging daily.",
    FailureReason.INSUFFICIENT_VARIANCE:
        "Fewer than two habits varied this month. Habits done every day (or never) can't be compared.",
    FailureReason.SINGULAR_SYSTEM:
        "Some habits always happened together, so their effects can't be separated.",
}


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of ``year-month``."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def force_multiplier(output: RegressionOutput) -> Optional[Coefficient]:
    """Predictor with the largest positive, non-neutral coefficient."""
    return strongest(output, Direction.POSITIVE)


def detractor(output: RegressionOutput) -> Optional[Coefficient]:
    """Predictor with the most negative, non-neutral coefficient."""
    return strongest(output, Direction.NEGATIVE)


class MonthlyAnalyzer:
    """Analyze one calendar month of sentiment, habit and biometric records."""

    def __init__(
        self,
        engine: Optional[RegressionEngine] = None,
        store: Optional[AnalysisStore] = None,
        narrator: Optional[NarrativeGenerator] = None,
    ):
        self.engine = engine or RegressionEngine()
        self.store = store
        self.narrator = narrator

    def analyze(
        self,
        year: int,
        month: int,
        sentiment: Iterable[SentimentRecord],
        habits: Iterable[HabitLog],
        biometrics: Iterable[BiometricSeries] = (),
        force: bool = False,
    ) -> Dict[str, Any]:
        """Run build → fit → narrative and return analysis plus status metadata."""
        result: Dict[str, Any] = {
            "analysis": None,
            "output": None,
            "failure": None,
            "message": "",
            "analysis_status": "success",
            "degraded_reasons": [],
            "cached": False,
        }
        start, end = month_bounds(year, month)
        label = start.strftime("%B %Y")

        if self.store is not None and not force:
            try:
                cached = self.store.get(year, month)
            except Exception as e:
                log.warning("Analysis store lookup failed; recomputing: %s", e)
                result["degraded_reasons"].append("store_read_failed")
                cached = None
            if cached is not None:
                log.info("   %s: using stored analysis from %s", label, cached.generated_at)
                result["analysis"] = cached
                result["cached"] = True
                return result

        # Same cleaning as the builder: in-month, non-NaN, clipped to [-1, 1]
        entries = sentiment_frame(sentiment, start, end)
        sentiment = [SentimentRecord(d, float(s)) for d, s in zip(entries["day"], entries["score"])]
        log.info("\nMonthly analysis - %s (%d entries)", label, len(sentiment))

        built = build_regression_input(start, end, sentiment, habits, biometrics)
        fitted = built if isinstance(built, FitFailure) else self.engine.fit(built)
        if isinstance(fitted, FitFailure):
            log.info("   %s: no model (%s: %s)", label, fitted.reason.value, fitted.detail)
            result["failure"] = fitted
            result["message"] = FAILURE_MESSAGES[fitted.reason]
            result["analysis_status"] = "failed"
            result["degraded_reasons"].append(fitted.reason.value)
            return result

        output: RegressionOutput = fitted
        result["output"] = output
        average = sum(r.score for r in sentiment) / len(sentiment)
        fm = force_multiplier(output)

        summary, source = generate_narrative(
            output, average, label, len(sentiment), narrator=self.narrator
        )
        if source == "template_fallback":
            result["degraded_reasons"].append("narrative_fallback")

        analysis = MonthlyAnalysis(
            year=year,
            month=month,
            start_date=start,
            end_date=end,
            coefficients=output.coefficients,
            force_multiplier=fm.name if fm is not None else "",
            r_squared=output.r_squared,
            intercept=output.intercept,
            average_sentiment=average,
            entry_count=len(sentiment),
            admitted_days=output.n_observations,
            summary=summary,
            generated_at=datetime.now(),
        )
        result["analysis"] = analysis

        if self.store is not None:
            try:
                self.store.put(analysis)
            except Exception as e:
                log.warning("Analysis store write failed (non-fatal): %s", e)
                result["degraded_reasons"].append("store_write_failed")

        if result["degraded_reasons"]:
            result["analysis_status"] = "degraded"

        log.info(
            "   %s: R²=%.3f, %d predictors, force multiplier=%s, status=%s",
            label,
            output.r_squared,
            len(output.coefficients),
            analysis.force_multiplier or "none",
            result["analysis_status"],
        )
        return result


def coefficient_rows(output_or_analysis) -> List[Dict[str, Any]]:
    """Coefficients sorted by effect size, as plain dicts for charts / JSON."""
    rows = [c.to_dict() for c in output_or_analysis.coefficients]
    rows.sort(key=lambda r: r["coefficient"], reverse=True)
    return rows
