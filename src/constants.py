"""
Shared constants used across multiple modules.
Single source of truth for the regression thresholds.
"""

# Observation Builder
MIN_OBSERVATIONS = 14            # admitted days required for a fit
MIN_HABITS_WITH_VARIANCE = 2     # surviving habit columns required
VARIANCE_EPSILON = 1e-6          # habit mean <= eps or >= 1 - eps is degenerate
BIOMETRIC_MIN_COVERAGE = 0.5     # fraction of admitted days with a real reading

# Regression Engine
PIVOT_TOLERANCE = 1e-12          # |pivot| below this => singular system
SS_TOTAL_TOLERANCE = 1e-12       # SStot below this => R² = 0
SE_VARIANCE_TOLERANCE = 1e-12    # σ²·(XᵗX)⁻¹ᵢᵢ below this => p = 1.0
DIRECTION_DEADBAND = 0.01        # |coefficient| <= deadband => neutral

# Sentiment scale
SENTIMENT_MIN = -1.0
SENTIMENT_MAX = 1.0
