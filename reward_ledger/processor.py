"""
processor.py - Bounded Batch Processor

Drives automatic payouts by walking the holder registry a few entries at a
time. Each call:
    1. starts at the persisted cursor
    2. visits accounts in registry order, one budget unit per visit
    3. pays every visited account that is eligible
    4. stops when the budget is spent or every account was visited once
    5. returns the new cursor for the caller to persist

Cost per call is O(unit_budget) no matter how large the registry grows.
Repeated calls cover every account because the cursor wraps to 0.
"""

from __future__ import annotations
from typing import Callable

from .core import BatchResult, NOT_TRACKED, require_non_negative_int
from .registry import HolderRegistry


# Returns True if the account was paid.
PayoutFunction = Callable[[str], bool]


def iterations_until_processed(index: int, cursor: int, size: int) -> int:
    """
    Number of visits before the cursor reaches `index`.

    0 means the account is visited first in the next batch. Returns -1 for
    untracked accounts.
    """
    if index == NOT_TRACKED or size == 0:
        return NOT_TRACKED
    return (index - cursor) % size


def process_batch(
    registry: HolderRegistry,
    cursor: int,
    unit_budget: int,
    pay: PayoutFunction,
) -> BatchResult:
    """
    Visit up to `unit_budget` accounts starting at `cursor`.

    Args:
        registry: Accounts to walk
        cursor: Index to resume from (clamped to 0 if beyond the registry)
        unit_budget: Maximum number of visits in this call
        pay: Callback that pays an eligible account and reports success

    Returns:
        BatchResult with counts and the cursor to persist
    """
    require_non_negative_int(unit_budget, "unit_budget")
    size = len(registry)
    if size == 0:
        return BatchResult(processed=0, paid=0, cursor=0, last_iteration_in_batch=False)

    if cursor < 0 or cursor >= size:
        cursor = 0

    # Never visit an account twice in one call, however large the budget
    limit = min(unit_budget, size)
    processed = 0
    paid = 0
    wrapped = False

    while processed < limit:
        # A payout hook may have shrunk the registry under us
        if not len(registry):
            cursor = 0
            break
        if cursor >= len(registry):
            cursor = 0
            wrapped = True
        account = registry.at(cursor)
        if pay(account):
            paid += 1
        processed += 1

        cursor += 1
        if cursor >= len(registry):
            cursor = 0
            wrapped = True

    return BatchResult(
        processed=processed,
        paid=paid,
        cursor=cursor,
        last_iteration_in_batch=wrapped,
    )
