"""Caller-side cache of monthly analyses, keyed by (year, month).

The regression engine never touches storage; the monthly analyzer looks
analyses up here before fitting and saves them afterwards.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Protocol, Tuple

import psycopg2

from models import Coefficient, MonthlyAnalysis

log = logging.getLogger("pipeline.analysis_store")

ANALYSIS_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS monthly_analyses (
    id                  SERIAL PRIMARY KEY,
    year                INTEGER NOT NULL,
    month               INTEGER NOT NULL,
    start_date          DATE NOT NULL,
    end_date            DATE NOT NULL,
    coefficients        JSONB NOT NULL,
    force_multiplier    TEXT NOT NULL DEFAULT '',
    r_squared           DOUBLE PRECISION NOT NULL,
    intercept           DOUBLE PRECISION NOT NULL,
    average_sentiment   DOUBLE PRECISION NOT NULL,
    entry_count         INTEGER NOT NULL,
    admitted_days       INTEGER NOT NULL,
    summary             TEXT NOT NULL DEFAULT '',
    generated_at        TIMESTAMP NOT NULL,
    UNIQUE (year, month)
);
"""


def analysis_to_dict(analysis: MonthlyAnalysis) -> Dict[str, Any]:
    """JSON-safe dict for a MonthlyAnalysis."""
    return {
        "year": analysis.year,
        "month": analysis.month,
        "start_date": analysis.start_date.isoformat(),
        "end_date": analysis.end_date.isoformat(),
        "coefficients": [c.to_dict() for c in analysis.coefficients],
        "force_multiplier": analysis.force_multiplier,
        "r_squared": analysis.r_squared,
        "intercept": analysis.intercept,
        "average_sentiment": analysis.average_sentiment,
        "entry_count": analysis.entry_count,
        "admitted_days": analysis.admitted_days,
        "summary": analysis.summary,
        "generated_at": analysis.generated_at.isoformat(),
    }


def analysis_from_dict(d: Dict[str, Any]) -> MonthlyAnalysis:
    def _day(val) -> date:
        if isinstance(val, datetime):
            return val.date()
        if isinstance(val, date):
            return val
        return date.fromisoformat(str(val))

    def _ts(val) -> datetime:
        if isinstance(val, datetime):
            return val
        return datetime.fromisoformat(str(val))

    coefficients = d.get("coefficients") or []
    if isinstance(coefficients, str):
        coefficients = json.loads(coefficients)

    return MonthlyAnalysis(
        year=int(d["year"]),
        month=int(d["month"]),
        start_date=_day(d["start_date"]),
        end_date=_day(d["end_date"]),
        coefficients=tuple(Coefficient.from_dict(c) for c in coefficients),
        force_multiplier=str(d.get("force_multiplier") or ""),
        r_squared=float(d["r_squared"]),
        intercept=float(d["intercept"]),
        average_sentiment=float(d["average_sentiment"]),
        entry_count=int(d["entry_count"]),
        admitted_days=int(d["admitted_days"]),
        summary=str(d.get("summary") or ""),
        generated_at=_ts(d["generated_at"]),
    )


class AnalysisStore(Protocol):
    def get(self, year: int, month: int) -> Optional[MonthlyAnalysis]:
        ...

    def put(self, analysis: MonthlyAnalysis) -> None:
        ...


class InMemoryAnalysisStore:
    """Process-local index of analyses by period."""

    def __init__(self):
        self._items: Dict[Tuple[int, int], MonthlyAnalysis] = {}

    def get(self, year: int, month: int) -> Optional[MonthlyAnalysis]:
        return self._items.get((year, month))

    def put(self, analysis: MonthlyAnalysis) -> None:
        self._items[(analysis.year, analysis.month)] = analysis

    def __len__(self) -> int:
        return len(self._items)


class PostgresAnalysisStore:
    """Analyses persisted to the monthly_analyses table (one row per month)."""

    def __init__(self, conn_str: str):
        if not conn_str:
            raise RuntimeError("POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not configured")
        self.conn_str = conn_str

    def bootstrap_schema(self) -> None:
        """Create the table if it doesn't exist."""
        conn = psycopg2.connect(self.conn_str)
        conn.autocommit = True
        try:
            with conn.cursor() as cur:
                for stmt in ANALYSIS_SCHEMA_SQL.split(";"):
                    stmt = stmt.strip()
                    if stmt:
                        cur.execute(stmt)
        finally:
            conn.close()

    def get(self, year: int, month: int) -> Optional[MonthlyAnalysis]:
        conn = psycopg2.connect(self.conn_str)
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """SELECT year, month, start_date, end_date, coefficients,
                              force_multiplier, r_squared, intercept,
                              average_sentiment, entry_count, admitted_days,
                              summary, generated_at
                       FROM monthly_analyses
                       WHERE year = %s AND month = %s""",
                    (year, month),
                )
                row = cur.fetchone()
                if row is None:
                    return None
                cols = [desc[0] for desc in cur.description]
        finally:
            conn.close()
        return analysis_from_dict(dict(zip(cols, row)))

    def put(self, analysis: MonthlyAnalysis) -> None:
        payload = analysis_to_dict(analysis)
        conn = psycopg2.connect(self.conn_str)
        conn.autocommit = True
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """INSERT INTO monthly_analyses
                       (year, month, start_date, end_date, coefficients,
                        force_multiplier, r_squared, intercept,
                        average_sentiment, entry_count, admitted_days,
                        summary, generated_at)
                       VALUES (%s, %s, %s, %s, %s::jsonb, %s, %s, %s, %s, %s, %s, %s, %s)
                       ON CONFLICT (year, month) DO UPDATE SET
                           start_date        = EXCLUDED.start_date,
                           end_date          = EXCLUDED.end_date,
                           coefficients      = EXCLUDED.coefficients,
                           force_multiplier  = EXCLUDED.force_multiplier,
                           r_squared         = EXCLUDED.r_squared,
                           intercept         = EXCLUDED.intercept,
                           average_sentiment = EXCLUDED.average_sentiment,
                           entry_count       = EXCLUDED.entry_count,
                           admitted_days     = EXCLUDED.admitted_days,
                           summary           = EXCLUDED.summary,
                           generated_at      = EXCLUDED.generated_at""",
                    (
                        analysis.year,
                        analysis.month,
                        analysis.start_date,
                        analysis.end_date,
                        json.dumps(payload["coefficients"], ensure_ascii=False),
                        analysis.force_multiplier,
                        analysis.r_squared,
                        analysis.intercept,
                        analysis.average_sentiment,
                        analysis.entry_count,
                        analysis.admitted_days,
                        analysis.summary,
                        analysis.generated_at,
                    ),
                )
        finally:
            conn.close()
        log.info("   Stored analysis %04d-%02d -> monthly_analyses", analysis.year, analysis.month)
