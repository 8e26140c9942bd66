"""
Constants used across the booking and ranking engine.

Timing values can be overridden through environment variables.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Timezone that weekly schedules (HH:MM open/close) are expressed in
COURTSIDE_TIMEZONE = os.getenv("COURTSIDE_TIMEZONE", "UTC")

# Booking holds
BOOKING_HOLD_MINUTES = int(os.getenv("BOOKING_HOLD_MINUTES", "10"))
MATCH_PAYMENT_HOLD_MINUTES = int(os.getenv("MATCH_PAYMENT_HOLD_MINUTES", "5"))
DEFAULT_MATCH_MAX_PLAYERS = 4

# Weekly schedule limits
DEFAULT_SLOT_DURATION_MINUTES = 60
MIN_SLOT_DURATION_MINUTES = 30
MAX_SLOT_DURATION_MINUTES = 180

# Expiry sweeper cadences (seconds)
EXPIRY_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "60"))
ESCALATION_SWEEP_INTERVAL_SECONDS = int(os.getenv("ESCALATION_SWEEP_INTERVAL_SECONDS", "3600"))
CORRECTION_SLA_HOURS = int(os.getenv("CORRECTION_SLA_HOURS", "72"))

# Ranking
BEST_N_RESULTS = 8
ROLLING_WINDOW_MONTHS = 12

# Category promotion thresholds, keyed by the current category's sort_order.
# Seeded onto Category.promotion_threshold; 1 (top tier) has no promotion.
DEFAULT_PROMOTION_THRESHOLDS = {
    8: 300,
    7: 600,
    6: 1200,
    5: 2000,
    4: 3500,
    3: 5500,
    2: 8000,
}

DEFAULT_CATEGORIES = [
    ("1ra", 1),
    ("2da", 2),
    ("3ra", 3),
    ("4ta", 4),
    ("5ta", 5),
    ("6ta", 6),
    ("7ma", 7),
    ("8va", 8),
]
