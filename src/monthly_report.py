"""
Monthly Habit/Mood Report
=========================
Analyze one calendar month: which habits move with daily mood?

  1. Build observations (admitted days, habit / biometric columns)
  2. Fit OLS via the normal equations
  3. Pick the force multiplier, write the narrative
  4. Optionally store the analysis (PostgreSQL)

Usage:
    python monthly_report.py --year 2026 --month 1             # synthetic data
    python monthly_report.py --year 2026 --month 1 --json      # JSON output
    python monthly_report.py --year 2026 --month 1 --llm       # LLM narrative
    python monthly_report.py --year 2026 --month 1 --store     # persist to Postgres
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from config import get_conn_str, get_log_level, get_narrative_settings

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("monthly_report")

from pipeline.analysis_store import PostgresAnalysisStore, analysis_to_dict
from pipeline.monthly_analysis import MonthlyAnalyzer, coefficient_rows
from pipeline.narrative import LLMNarrator
from synthetic_data import generate_month


def format_report(result) -> str:
    """Plain-text report for the terminal."""
    analysis = result["analysis"]
    if analysis is None:
        return f"No model: {result['message']}"

    lines = [
        "=" * 60,
        f"  HABIT / MOOD ANALYSIS  {analysis.start_date:%B %Y}",
        "=" * 60,
        f"  Days analysed   : {analysis.admitted_days}",
        f"  Journal entries : {analysis.entry_count}",
        f"  Avg sentiment   : {analysis.average_sentiment:+.3f}",
        f"  R²              : {analysis.r_squared:.3f}",
        f"  Force multiplier: {analysis.force_multiplier or 'none identified'}",
        "",
        f"  {'predictor':<24}{'coef':>8}{'p':>8}{'base':>8}  direction",
    ]
    for row in coefficient_rows(analysis):
        lines.append(
            f"  {row['label']:<24}{row['coefficient']:>+8.3f}{row['p_value']:>8.3f}"
            f"{row['baseline']:>8.2f}  {row['direction']}"
        )
    lines += ["", analysis.summary]
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(
        description="Monthly habit/mood regression report"
    )
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--month", type=int, required=True)
    parser.add_argument("--seed", type=int, default=42,
                        help="Seed for the synthetic month (default: 42)")
    parser.add_argument("--skip-rate", type=float, default=0.1,
                        help="Fraction of days without a journal entry (default: 0.1)")
    parser.add_argument("--json", action="store_true",
                        help="Print the analysis as JSON")
    parser.add_argument("--llm", action="store_true",
                        help="Write the narrative with the configured LLM")
    parser.add_argument("--store", action="store_true",
                        help="Persist the analysis to PostgreSQL")
    parser.add_argument("--force", action="store_true",
                        help="Recompute even if a stored analysis exists")
    args = parser.parse_args()

    store = None
    if args.store:
        store = PostgresAnalysisStore(get_conn_str())
        store.bootstrap_schema()

    narrator = LLMNarrator(**get_narrative_settings()) if args.llm else None

    data = generate_month(args.year, args.month, seed=args.seed, skip_rate=args.skip_rate)
    analyzer = MonthlyAnalyzer(store=store, narrator=narrator)
    result = analyzer.analyze(
        args.year, args.month,
        sentiment=data.sentiment,
        habits=data.habits,
        biometrics=data.biometrics,
        force=args.force,
    )

    if args.json:
        payload = {
            "analysis_status": result["analysis_status"],
            "degraded_reasons": result["degraded_reasons"],
            "message": result["message"],
            "analysis": analysis_to_dict(result["analysis"]) if result["analysis"] else None,
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(format_report(result))

    sys.exit(0 if result["analysis_status"] != "failed" else 1)


if __name__ == "__main__":
    main()
