"""Configuration loaded from .env"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_NARRATIVE_MODEL = "gemini/gemini-2.5-flash"


def get_conn_str() -> str:
    """Return PostgreSQL connection string for the analysis store.

    Checks POSTGRES_CONNECTION_STRING first, falls back to DATABASE_URL
    (Heroku standard).  Normalises postgres:// to postgresql:// for psycopg2.
    """
    url = (os.getenv("POSTGRES_CONNECTION_STRING") or os.getenv("DATABASE_URL") or "").strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def get_narrative_settings() -> dict:
    """Model, key and temperature for the LLM narrator."""
    try:
        temperature = float(os.getenv("NARRATIVE_TEMPERATURE", "0.3"))
    except ValueError:
        temperature = 0.3
    return {
        "model": os.getenv("NARRATIVE_MODEL", DEFAULT_NARRATIVE_MODEL),
        "api_key": os.getenv("GOOGLE_API_KEY") or None,
        "temperature": temperature,
    }
