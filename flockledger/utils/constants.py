"""
Constants for the flock ledger.

This module defines all system-wide constants including:
- Application metadata
- Feed bag and pricing policy values
- The cumulative per-bird feed consumption schedule
- Input limits and error message templates
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Flock Ledger"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "flockledger.db"
DATABASE_VERSION = "1.0"

# ============================================================================
# Feed and Pricing Policy
# ============================================================================

GRAMS_PER_BAG = 50000  # one feed bag holds 50 kg
BAG_WEIGHT_KG = 50

FEED_PRICE_PER_BAG = 3220
DOC_PRICE_PER_BIRD = 41.5
BASE_SELLING_PRICE = 141

# Intake changes smaller than this (in bags) do not produce a FEED log
INTAKE_LOG_THRESHOLD = 0.005

# Feed types every stock/consumption list starts with
DEFAULT_FEED_TYPES: List[str] = ["B1", "B2"]

# Cumulative feed eaten per bird (grams) by the end of day N
CUMULATIVE_FEED_SCHEDULE: Dict[int, int] = {
    0: 0,
    1: 16,
    2: 36,
    3: 60,
    4: 88,
    5: 120,
    6: 156,
    7: 196,
    8: 240,
    9: 288,
    10: 340,
    11: 396,
    12: 456,
    13: 520,
    14: 588,
    15: 660,
    16: 736,
    17: 816,
    18: 900,
    19: 988,
    20: 1080,
    21: 1176,
    22: 1276,
    23: 1380,
    24: 1488,
    25: 1600,
    26: 1716,
    27: 1836,
    28: 1960,
    29: 2088,
    30: 2220,
    31: 2356,
    32: 2496,
    33: 2640,
    34: 2788,
    35: 2864,
    36: 2944,
    37: 3028,
    38: 3116,
    39: 3208,
    40: 3304,
}

# ============================================================================
# Input Limits
# ============================================================================

MAX_DOC = 200000
MAX_NEW_CYCLE_AGE = 40
MAX_NAME_LENGTH = 100
MAX_NOTE_LENGTH = 500
MIN_REASON_LENGTH = 3

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Please enter a valid number"
ERROR_INVALID_INTEGER = "Please enter a whole number"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
