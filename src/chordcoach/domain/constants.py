"""Centralized constants for the chordcoach progress engine.

All tuning numbers and defaults live here so every layer
imports from a single source of truth. Most of them can be
overridden through ``AppConfig``.
"""

# ---------- Rolling window ----------
RECENT_ATTEMPTS_CAPACITY = 20
MASTERY_WINDOW_SIZE = 5
RESPONSE_TIME_WINDOW_SIZE = 3

# ---------- Mastery thresholds ----------
FAMILIAR_ACCURACY_THRESHOLD = 0.70
MASTERED_ACCURACY_THRESHOLD = 0.90
MASTERED_RESPONSE_TIME_THRESHOLD = 800  # ms

# Single attempts slower than this are capped (AFK guard) and score the
# lowest passing quality.
MAX_RESPONSE_TIME_PENALTY_MS = 17_500

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
SUCCESS_QUALITY = 3
FAILED_QUALITY = 2
PERFECT_QUALITY = 5
FIRST_INTERVAL_DAYS = 1.0
SECOND_INTERVAL_DAYS = 6.0
LAPSE_INTERVAL_DAYS = 1.0
# Hard ceiling so review dates stay representable
MAX_INTERVAL_DAYS = 36_500

# ---------- Confidence levels ----------
STRONG_MIN_ATTEMPTS = 10
STRONG_MIN_ACCURACY = 0.9
STRONG_MAX_RESPONSE_TIME_MS = 800
MODERATE_MIN_ATTEMPTS = 5
MODERATE_MIN_ACCURACY = 0.7
MODERATE_MAX_RESPONSE_TIME_MS = 1500

# ---------- Session selection ----------
HEAVILY_OVERDUE_SECONDS = 86_400
SELECTION_MIN_BASE_WEIGHT = 0.1
SELECTION_FAILED_MULTIPLIER = 4.0
SELECTION_OVERDUE_BOOST_PER_DAY = 1.0
SELECTION_LOW_ATTEMPT_BONUS = 0.5
SELECTION_LOW_ATTEMPT_THRESHOLD = 3

# ---------- Queries ----------
DEFAULT_WEAK_THRESHOLD = 0.7
DEFAULT_REVIEW_BATCH = 20

# ---------- Persistence ----------
STORE_FORMAT_VERSION = 1
