"""
helpers.py - Constants and small helpers shared by the test modules.
"""

from datetime import datetime, timedelta

from reward_ledger import TOKEN_UNIT


START = datetime(2025, 1, 1)

# Power of ten large enough that the documented scenarios divide exactly
EXACT_SCALE = 10 ** 40


def tokens(amount: int) -> int:
    """Whole tokens in minor units."""
    return amount * TOKEN_UNIT


def advance(target, seconds: int) -> None:
    """Move a tracker's or token's clock forward by `seconds`."""
    target.advance_time(target.current_time + timedelta(seconds=seconds))
