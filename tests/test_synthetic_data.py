"""
Tests for the synthetic month generator, the report CLI formatter and
environment configuration.
"""
import os
from datetime import date
from unittest.mock import patch

from config import get_conn_str, get_log_level, get_narrative_settings
from monthly_report import format_report
from pipeline.monthly_analysis import MonthlyAnalyzer
from synthetic_data import HABIT_DEFINITIONS, generate_days, generate_month


class TestGenerator:

    def test_same_seed_same_data(self):
        assert generate_month(2026, 1, seed=7) == generate_month(2026, 1, seed=7)

    def test_different_seed_differs(self):
        assert generate_month(2026, 1, seed=7).sentiment != generate_month(2026, 1, seed=8).sentiment

    def test_covers_month(self):
        data = generate_month(2026, 2)
        assert data.start == date(2026, 2, 1)
        assert data.end == date(2026, 2, 28)
        assert all(data.start <= r.day <= data.end for r in data.sentiment)

    def test_december_rolls_over(self):
        data = generate_month(2025, 12)
        assert data.end == date(2025, 12, 31)

    def test_scores_in_range(self):
        data = generate_days(date(2026, 1, 1), 60, seed=3)
        assert all(-1.0 <= r.score <= 1.0 for r in data.sentiment)

    def test_water_done_every_day(self):
        data = generate_days(date(2026, 1, 1), 30)
        water = next(h for h in data.habits if h.name == "water")
        assert len(water.completed_days) == 30
        assert [h.name for h in data.habits] == list(HABIT_DEFINITIONS)

    def test_skip_rate_one_means_no_entries(self):
        data = generate_days(date(2026, 1, 1), 30, skip_rate=1.0)
        assert data.sentiment == ()

    def test_biometric_coverage(self):
        data = generate_days(date(2026, 1, 1), 200, seed=1)
        sleep, hrv = data.biometrics
        sleep_cov = sum(sleep.reading_on(d) is not None for d in sleep.readings) / 200
        hrv_cov = sum(hrv.reading_on(d) is not None for d in hrv.readings) / 200
        assert sleep_cov > 0.7
        assert hrv_cov < 0.45


class TestFormatReport:

    def test_success_report(self):
        data = generate_month(2026, 1, seed=42)
        result = MonthlyAnalyzer().analyze(2026, 1, data.sentiment, data.habits, data.biometrics)
        text = format_report(result)
        assert "January 2026" in text
        assert "Meditation" in text
        assert result["analysis"].summary in text

    def test_failed_report(self):
        data = generate_month(2026, 1, seed=42, skip_rate=1.0)
        result = MonthlyAnalyzer().analyze(2026, 1, data.sentiment, data.habits)
        assert result["analysis_status"] == "failed"
        assert format_report(result).startswith("No model:")


class TestConfig:

    @patch.dict(os.environ, {"POSTGRES_CONNECTION_STRING": "", "DATABASE_URL": "postgres://u:p@h/db"})
    def test_database_url_normalised(self):
        assert get_conn_str() == "postgresql://u:p@h/db"

    @patch.dict(os.environ, {"POSTGRES_CONNECTION_STRING": "postgresql://primary", "DATABASE_URL": "postgres://x"})
    def test_primary_wins(self):
        assert get_conn_str() == "postgresql://primary"

    @patch.dict(os.environ, {"LOG_LEVEL": "debug"})
    def test_log_level(self):
        assert get_log_level() == "DEBUG"

    @patch.dict(os.environ, {"NARRATIVE_TEMPERATURE": "warm", "NARRATIVE_MODEL": "gpt-4o-mini"})
    def test_narrative_settings(self):
        settings = get_narrative_settings()
        assert settings["temperature"] == 0.3
        assert settings["model"] == "gpt-4o-mini"
