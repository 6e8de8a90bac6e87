from datetime import timedelta
from decimal import Decimal

# Rate applied while a creator's tier protection window is open
PROTECTED_RATE = Decimal("0.12")

# Two-step fallback used when commission_tiers is empty
CREATOR_BASE_RATE = Decimal("0.08")
FALLBACK_HIGH_RATE = Decimal("0.12")
FALLBACK_HIGH_THRESHOLD = 100
FALLBACK_LOW_LEVEL = 1
FALLBACK_HIGH_LEVEL = 2

CMO_COMMISSION_RATE = Decimal("0.08")

ROLLING_WINDOW = timedelta(days=30)
PROTECTION_WINDOW = timedelta(days=30)

# Stored tier level assumed for creators that were never evaluated
DEFAULT_TIER_LEVEL = 2

WITHDRAWAL_FEE_PERCENT = Decimal("3")
MIN_WITHDRAWAL_AMOUNT = Decimal("10000")

CENTS = Decimal("0.01")
