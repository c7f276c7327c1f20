"""
Shared test configuration.

Adds src/ to sys.path so flat modules (models, constants, ...) and the
analytics / pipeline packages import the same way they do at runtime:
  - `from analytics.regression_engine import RegressionEngine`
  - `from models import RegressionInput`
"""

import os
import sys
from datetime import date, timedelta

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


@pytest.fixture
def jan_days():
    """The 31 days of January 2026."""
    start = date(2026, 1, 1)
    return [start + timedelta(days=i) for i in range(31)]
