"""
Core types and pure functions for the reward ledger.

This module provides the foundational data structures and protocols:
1. Protocols: TrackerView for read-only access to distribution state
2. Immutable data structures: Notification, AccountInfo, BatchResult
3. Exceptions: LedgerError and domain-specific error types
4. Constants: scale factor, cooldown defaults and configuration bounds
5. Pure functions: cooldown checks and canonical notification ids

All amounts are integers in minor units. No function in this module
performs floating-point arithmetic.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import hashlib
from typing import (
    Dict, Optional, Any, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Magnitude of the per-share accumulator. Wide enough that truncation in
# amount * SCALE // supply loses less than one minor unit per holder.
DEFAULT_SCALE = 2 ** 128
MIN_SCALE = 2 ** 64

# Cooldown between payouts to the same account, in seconds.
DEFAULT_CLAIM_WAIT = 3600
MIN_CLAIM_WAIT = 3600
MAX_CLAIM_WAIT = 86400

# Smallest balance that earns rewards. Token layers usually raise this.
DEFAULT_MINIMUM_TRACKED_BALANCE = 1

# Minor units per whole token (18 decimals).
TOKEN_DECIMALS = 18
TOKEN_UNIT = 10 ** TOKEN_DECIMALS

# Index reported for accounts that are not in the registry.
NOT_TRACKED = -1

# Largest withdrawable deficit attributed to integer truncation.
ROUNDING_TOLERANCE = 1


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class TrackerView(Protocol):
    """
    Read-only interface to distribution state.

    Pure functions that report on accounts take a TrackerView so they can be
    exercised against a RewardTracker or a lightweight fake in tests.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time."""
        ...

    @property
    def claim_wait(self) -> int:
        """Return the payout cooldown in seconds."""
        ...

    @property
    def cursor(self) -> int:
        """Return the registry index the next batch starts from."""
        ...

    def registry_size(self) -> int:
        """Return the number of tracked accounts."""
        ...

    def index_of(self, account: str) -> int:
        """Return the registry index of an account, or -1 if untracked."""
        ...

    def withdrawable_of(self, account: str) -> int:
        """Return the amount the account could withdraw right now."""
        ...

    def withdrawn_of(self, account: str) -> int:
        """Return the amount already paid to the account."""
        ...

    def last_claim_time(self, account: str) -> Optional[datetime]:
        """Return the time of the last payout, or None if never paid."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class PayoutKind(Enum):
    """
    How a payout was triggered.

    MANUAL: The account holder claimed explicitly.
    AUTOMATIC: The batch processor paid the account while walking the registry.
    """
    MANUAL = "manual"
    AUTOMATIC = "automatic"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all reward ledger errors."""
    pass


class InvariantViolation(LedgerError):
    """Raised when internal accounting is inconsistent. Indicates a logic defect."""
    pass


class InsufficientFunds(InvariantViolation):
    """Raised when the reward reserve cannot cover an amount already owed to a holder."""
    pass


class PreconditionRejected(LedgerError):
    """Base class for recoverable rejections visible to the caller."""
    pass


class CooldownActive(PreconditionRejected):
    """Raised when a payout is requested before the claim wait has elapsed."""
    pass


class NothingToClaim(PreconditionRejected):
    """Raised when a payout is requested for an account with nothing withdrawable."""
    pass


class NoTrackedSupply(PreconditionRejected):
    """Raised when rewards are injected while no balance is tracked."""
    pass


class ConfigurationOutOfBounds(PreconditionRejected):
    """Raised when a configuration value is outside its permitted range."""
    pass


class ReentrancyError(PreconditionRejected):
    """Raised when the swap path is entered while it is already running."""
    pass


class NotOwner(PreconditionRejected):
    """Raised when a non-owner calls an owner-only operation."""
    pass


class TradingNotEnabled(PreconditionRejected):
    """Raised when a transfer is attempted before trading opens."""
    pass


class TransferLimitExceeded(PreconditionRejected):
    """Raised when a sell exceeds the maximum sell amount."""
    pass


class InsufficientBalance(PreconditionRejected):
    """Raised when a sender does not hold enough tokens for a transfer."""
    pass


# ============================================================================
# NOTIFICATIONS
# ============================================================================

def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Dict ordering does not affect the output.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"I:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


@dataclass(frozen=True, slots=True)
class Notification:
    """
    Immutable record of an applied state change.

    Notifications are appended to the owning object's audit log in the order
    they happen. Configuration changes carry both the new and the old value.

    Attributes:
        name: Event name (e.g., "ClaimWaitUpdated", "RewardWithdrawn")
        params: Event parameters as a frozen tuple of (key, value) pairs
        sequence: Monotonic position within the owning log
        timestamp: Logical time when the change was applied
        notification_id: Content hash of name and params (auto-computed)
    """
    name: str
    params: Tuple[Tuple[str, Any], ...]
    sequence: int
    timestamp: datetime
    notification_id: str = field(default="")

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Notification name cannot be empty")
        if not self.notification_id:
            content = f"{self.name}|{_canonicalize(dict(self.params))}"
            digest = hashlib.sha256(content.encode()).hexdigest()[:16]
            object.__setattr__(self, 'notification_id', digest)

    @property
    def params_dict(self) -> Dict[str, Any]:
        """Get params as a dictionary for convenience."""
        return dict(self.params)

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v!r}" for k, v in self.params)
        return f"{self.name}({params})"


def make_notification(
    name: str,
    sequence: int,
    timestamp: datetime,
    **params: Any,
) -> Notification:
    """Build a Notification with params in keyword order."""
    return Notification(
        name=name,
        params=tuple(params.items()),
        sequence=sequence,
        timestamp=timestamp,
    )


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass(frozen=True, slots=True)
class BatchResult:
    """
    Outcome of one bounded batch-processing call.

    Attributes:
        processed: Number of registry entries visited
        paid: Number of visited accounts that received a payout
        cursor: Registry index the next call will start from
        last_iteration_in_batch: True if the cursor wrapped past the end during this call
    """
    processed: int
    paid: int
    cursor: int
    last_iteration_in_batch: bool

    def __post_init__(self):
        if self.paid > self.processed:
            raise ValueError("paid cannot exceed processed")


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """
    Snapshot of an account's distribution state.

    Attributes:
        account: Account identifier
        index: Registry index, or -1 if the account is not tracked
        iterations_until_processed: Batch visits before the cursor reaches this
            account, or -1 if the account is not tracked
        withdrawable: Amount that can be paid out now
        total_earned: Withdrawable plus everything already paid
        last_claim_time: Time of the last payout (None if never paid)
        next_claim_time: Earliest time of the next payout (None if never paid)
        seconds_until_auto_claim: Seconds left on the cooldown (0 if eligible)
    """
    account: str
    index: int
    iterations_until_processed: int
    withdrawable: int
    total_earned: int
    last_claim_time: Optional[datetime]
    next_claim_time: Optional[datetime]
    seconds_until_auto_claim: int


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def can_claim(last_claim: Optional[datetime], now: datetime, claim_wait: int) -> bool:
    """
    Return True if the cooldown has elapsed.

    Accounts that were never paid are always eligible. A clock that reads
    earlier than the last payout is never eligible.
    """
    if last_claim is None:
        return True
    if now < last_claim:
        return False
    return now - last_claim >= timedelta(seconds=claim_wait)


def next_claim_time(last_claim: Optional[datetime], claim_wait: int) -> Optional[datetime]:
    """Return the earliest time of the next payout, or None if never paid."""
    if last_claim is None:
        return None
    return last_claim + timedelta(seconds=claim_wait)


def seconds_until_claim(last_claim: Optional[datetime], now: datetime, claim_wait: int) -> int:
    """Return whole seconds left on the cooldown (0 when eligible)."""
    next_time = next_claim_time(last_claim, claim_wait)
    if next_time is None or next_time <= now:
        return 0
    remaining = next_time - now
    # Round partial seconds up so 0 always means eligible
    return -((-remaining) // timedelta(seconds=1))


def require_non_negative_int(value: Any, label: str) -> int:
    """Validate that a value is a non-negative int (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{label} must be int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{label} cannot be negative, got {value}")
    return value
