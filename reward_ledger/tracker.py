"""
tracker.py - Reward Tracker

The RewardTracker bundles the holder registry, the distribution ledger and
the batch cursor into one owned aggregate. It is the only object that
mutates reward state, so every change is controlled and logged.

Key responsibilities:
    - Implements the TrackerView protocol for read-only reporting functions
    - Keeps registry membership and ledger balances in step on every change
    - Holds the reward reserve and pays holders out of it
    - Enforces the payout cooldown for manual and automatic payouts
    - Persists the batch cursor between process_batch() calls
    - Always logs: every applied change is appended to the notification log
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from .core import (
    # Types
    AccountInfo, BatchResult, Notification, PayoutKind, TrackerView,
    # Constants
    DEFAULT_CLAIM_WAIT, DEFAULT_MINIMUM_TRACKED_BALANCE, DEFAULT_SCALE,
    MIN_CLAIM_WAIT, MAX_CLAIM_WAIT, MIN_SCALE, NOT_TRACKED,
    # Exceptions
    ConfigurationOutOfBounds, CooldownActive, InsufficientFunds,
    InvariantViolation, NothingToClaim, NoTrackedSupply,
    # Helper functions
    can_claim, make_notification, next_claim_time, seconds_until_claim,
    require_non_negative_int,
)
from .distribution import DistributionLedger
from .processor import iterations_until_processed, process_batch
from .registry import HolderRegistry


# Outbound transfer of the reward asset. Returns False if the transfer failed.
PayoutHook = Callable[[str, int], bool]


class RewardTracker:
    """
    Proportional reward distribution over a changing set of holders.

    Balance changes and reward injections are O(1); automatic payouts are
    driven in bounded batches through process_batch().

    Thread Safety:
        Not thread-safe. Callers sharing one tracker across threads must
        serialize every call behind a single lock.

    Example:
        tracker = RewardTracker("rewards", verbose=False)
        tracker.set_balance("alice", 100)
        tracker.set_balance("bob", 300)
        tracker.deposit_and_inject(40)
        tracker.process_batch(10)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        claim_wait: int = DEFAULT_CLAIM_WAIT,
        minimum_tracked_balance: int = DEFAULT_MINIMUM_TRACKED_BALANCE,
        scale: int = DEFAULT_SCALE,
        payout: Optional[PayoutHook] = None,
        verbose: bool = True,
    ):
        """
        Create a tracker.

        Args:
            name: Tracker identifier used in log output
            initial_time: Starting time (default: 1970-01-01)
            claim_wait: Cooldown between payouts to one account, in seconds
            minimum_tracked_balance: Smallest balance that earns rewards
            scale: Magnification of the per-share accumulator
            payout: Outbound transfer hook; when omitted payouts are credited
                to reward_balances
            verbose: Print each applied change (default: True)
        """
        require_non_negative_int(claim_wait, "claim_wait")
        if not MIN_CLAIM_WAIT <= claim_wait <= MAX_CLAIM_WAIT:
            raise ConfigurationOutOfBounds(
                f"claim_wait must be between {MIN_CLAIM_WAIT} and {MAX_CLAIM_WAIT}, got {claim_wait}"
            )
        self.name = name
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._claim_wait = claim_wait
        self.verbose = verbose
        self._payout = payout

        self.excluded: Set[str] = set()
        self.registry = HolderRegistry(minimum_tracked_balance, self.is_excluded)
        self.ledger = DistributionLedger(scale)
        self._cursor: int = 0
        self._last_claim: Dict[str, datetime] = {}

        # Reward asset held for holders, and what has been paid to each of them
        self.reward_reserve: int = 0
        self.reward_balances: Dict[str, int] = {}

        self.notifications: List[Notification] = []
        self._next_sequence: int = 0

    # ========================================================================
    # TrackerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the tracker."""
        return self._current_time

    @property
    def claim_wait(self) -> int:
        return self._claim_wait

    @property
    def cursor(self) -> int:
        return self._cursor

    def registry_size(self) -> int:
        return len(self.registry)

    def index_of(self, account: str) -> int:
        return self.registry.index_of(account)

    def withdrawable_of(self, account: str) -> int:
        return self.ledger.withdrawable_of(account)

    def withdrawn_of(self, account: str) -> int:
        return self.ledger.withdrawn_of(account)

    def last_claim_time(self, account: str) -> Optional[datetime]:
        return self._last_claim.get(account)

    # ========================================================================
    # OTHER READS
    # ========================================================================

    @property
    def minimum_tracked_balance(self) -> int:
        return self.registry.minimum_balance

    @property
    def scale(self) -> int:
        return self.ledger.scale

    @property
    def total_tracked_supply(self) -> int:
        return self.ledger.total_supply

    @property
    def total_distributed(self) -> int:
        return self.ledger.total_distributed

    @property
    def total_injected(self) -> int:
        return self.ledger.total_injected

    def balance_of(self, account: str) -> int:
        """Tracked balance of an account (0 if untracked or excluded)."""
        return self.ledger.balance_of(account)

    def accumulative_of(self, account: str) -> int:
        """Total reward ever earned by the account."""
        return self.ledger.accumulative_of(account)

    def is_excluded(self, account: str) -> bool:
        return account in self.excluded

    def can_claim(self, account: str) -> bool:
        """True if the cooldown for this account has elapsed."""
        return can_claim(self._last_claim.get(account), self._current_time, self._claim_wait)

    def get_account(self, account: str) -> AccountInfo:
        """Return a snapshot of an account's distribution state."""
        return describe_account(self, account)

    def get_account_at_index(self, index: int) -> AccountInfo:
        """
        Return a snapshot of the account stored at a registry index.

        Raises:
            IndexError: If index is outside the registry
        """
        return describe_account(self, self.registry.at(index))

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # BALANCE TRACKING (Mutating)
    # ========================================================================

    def set_balance(self, account: str, balance: int) -> bool:
        """
        Synchronize an account's tracked balance with its token balance.

        Must be called on every balance change, before any later injection.
        Accounts below the minimum or excluded from rewards are tracked at 0.

        Args:
            account: Account identifier
            balance: The account's current token balance

        Returns:
            True if the account is in the registry after the call
        """
        require_non_negative_int(balance, "balance")
        tracked = self.registry.upsert(account, balance)
        new_balance = balance if tracked else 0
        self.ledger.on_balance_change(account, self.ledger.balance_of(account), new_balance)
        self._clamp_cursor()
        return tracked

    def exclude_from_rewards(self, account: str) -> None:
        """
        Stop an account from earning rewards.

        Its tracked balance drops to 0; rewards earned so far stay withdrawable.
        """
        if account in self.excluded:
            raise ValueError(f"{account} is already excluded from rewards")
        self.excluded.add(account)
        self.set_balance(account, 0)
        self._notify("ExcludedFromRewards", account=account)

    def include_in_rewards(self, account: str, balance: int) -> None:
        """Let a previously excluded account earn rewards again from its current balance."""
        if account not in self.excluded:
            raise ValueError(f"{account} is not excluded from rewards")
        self.excluded.discard(account)
        self.set_balance(account, balance)
        self._notify("IncludedInRewards", account=account, balance=balance)

    def _clamp_cursor(self) -> None:
        if self._cursor >= len(self.registry):
            self._cursor = 0

    # ========================================================================
    # REWARD INJECTION (Mutating)
    # ========================================================================

    def deposit(self, amount: int) -> None:
        """Receive reward asset into the reserve without distributing it."""
        require_non_negative_int(amount, "amount")
        self.reward_reserve += amount

    def inject(self, amount: int) -> int:
        """
        Distribute `amount` of already-deposited reward to current holders.

        Args:
            amount: Reward amount in minor units

        Returns:
            The accumulator increment applied

        Raises:
            NoTrackedSupply: If no balance is tracked
            InsufficientFunds: If the reserve does not cover what would be owed
        """
        require_non_negative_int(amount, "amount")
        liability = self.ledger.total_injected - self.ledger.total_distributed + amount
        if self.reward_reserve < liability:
            raise InsufficientFunds(
                f"Reserve {self.reward_reserve} cannot back {liability} of owed rewards"
            )
        increment = self.ledger.inject(amount)
        if amount:
            self._notify("RewardsDistributed", amount=amount, increment=increment)
        return increment

    def deposit_and_inject(self, amount: int) -> int:
        """
        Receive reward asset and distribute it in one step.

        The deposit is returned to the caller's side (not kept) if
        distribution is rejected.
        """
        self.deposit(amount)
        try:
            return self.inject(amount)
        except NoTrackedSupply:
            self.reward_reserve -= amount
            raise

    # ========================================================================
    # PAYOUTS (Mutating)
    # ========================================================================

    def withdraw(self, account: str) -> int:
        """
        Pay out an account's withdrawable reward on its request.

        Returns:
            The amount paid (0 if the outbound transfer reported failure)

        Raises:
            CooldownActive: If the claim wait has not elapsed
            NothingToClaim: If nothing is withdrawable
        """
        if not self.can_claim(account):
            raise CooldownActive(
                f"{account} must wait {seconds_until_claim(self._last_claim.get(account), self._current_time, self._claim_wait)}s"
            )
        if self.ledger.withdrawable_of(account) == 0:
            raise NothingToClaim(f"{account} has nothing to withdraw")
        return self._pay(account, PayoutKind.MANUAL)

    def process_account(self, account: str, kind: PayoutKind = PayoutKind.AUTOMATIC) -> bool:
        """
        Pay the account if it is eligible, without raising on ineligibility.

        Returns:
            True if a payout was made
        """
        if not self.can_claim(account) or self.ledger.withdrawable_of(account) == 0:
            return False
        return self._pay(account, kind) > 0

    def _pay(self, account: str, kind: PayoutKind) -> int:
        # Book first, transfer second, so a failing transfer cannot pay twice
        amount = self.ledger.record_withdrawal(account)
        if amount == 0:
            return 0
        if self.reward_reserve < amount:
            self.ledger.revert_withdrawal(account, amount)
            raise InsufficientFunds(
                f"Reserve {self.reward_reserve} cannot pay {amount} owed to {account}"
            )
        previous_claim = self._last_claim.get(account)
        self.reward_reserve -= amount
        self._last_claim[account] = self._current_time

        try:
            delivered = self._deliver(account, amount)
        except Exception as e:
            self._undo_payment(account, amount, previous_claim)
            if kind is PayoutKind.MANUAL:
                raise
            # Automatic payouts count a raising transfer as unpaid so the batch moves on
            self._notify("ClaimFailed", account=account, amount=amount, error=f"{type(e).__name__}: {e}")
            return 0
        if not delivered:
            self._undo_payment(account, amount, previous_claim)
            return 0

        self._notify("RewardWithdrawn", account=account, amount=amount)
        self._notify("Claim", account=account, amount=amount, automatic=kind is PayoutKind.AUTOMATIC)
        return amount

    def _deliver(self, account: str, amount: int) -> bool:
        if self._payout is None:
            self.reward_balances[account] = self.reward_balances.get(account, 0) + amount
            return True
        return bool(self._payout(account, amount))

    def _undo_payment(self, account: str, amount: int, previous_claim: Optional[datetime]) -> None:
        self.ledger.revert_withdrawal(account, amount)
        self.reward_reserve += amount
        if previous_claim is None:
            self._last_claim.pop(account, None)
        else:
            self._last_claim[account] = previous_claim

    # ========================================================================
    # BATCH PROCESSING (Mutating)
    # ========================================================================

    def process_batch(self, unit_budget: int) -> BatchResult:
        """
        Walk up to `unit_budget` registry entries from the cursor and pay
        every eligible account. Callable by anyone.

        Returns:
            BatchResult(processed, paid, cursor, last_iteration_in_batch)
        """
        result = process_batch(
            self.registry,
            self._cursor,
            unit_budget,
            lambda account: self.process_account(account, PayoutKind.AUTOMATIC),
        )
        self._cursor = result.cursor
        if result.processed:
            self._notify(
                "ProcessedBatch",
                processed=result.processed,
                paid=result.paid,
                cursor=result.cursor,
                last_iteration_in_batch=result.last_iteration_in_batch,
                unit_budget=unit_budget,
            )
        return result

    # ========================================================================
    # CONFIGURATION (Mutating)
    # ========================================================================

    def set_claim_wait(self, seconds: int) -> None:
        """
        Change the payout cooldown.

        Raises:
            ConfigurationOutOfBounds: Outside [3600, 86400] or unchanged
        """
        require_non_negative_int(seconds, "claim_wait")
        if not MIN_CLAIM_WAIT <= seconds <= MAX_CLAIM_WAIT:
            raise ConfigurationOutOfBounds(
                f"claim_wait must be between {MIN_CLAIM_WAIT} and {MAX_CLAIM_WAIT}, got {seconds}"
            )
        if seconds == self._claim_wait:
            raise ConfigurationOutOfBounds(f"claim_wait is already {seconds}")
        old = self._claim_wait
        self._claim_wait = seconds
        self._notify("ClaimWaitUpdated", new_value=seconds, old_value=old)

    def set_minimum_tracked_balance(self, minimum: int) -> None:
        """
        Change the smallest balance that earns rewards.

        Applies to each account at its next balance change.

        Raises:
            ConfigurationOutOfBounds: If minimum < 1 or unchanged
        """
        require_non_negative_int(minimum, "minimum_tracked_balance")
        if minimum < 1:
            raise ConfigurationOutOfBounds("minimum_tracked_balance must be at least 1")
        if minimum == self.registry.minimum_balance:
            raise ConfigurationOutOfBounds(f"minimum_tracked_balance is already {minimum}")
        old = self.registry.minimum_balance
        self.registry.minimum_balance = minimum
        self._notify("MinimumTrackedBalanceUpdated", new_value=minimum, old_value=old)

    def set_scale(self, scale: int) -> None:
        """
        Change the accumulator magnification. Only before the first injection.

        Raises:
            ConfigurationOutOfBounds: If scale < 2**64 or rewards were already injected
        """
        require_non_negative_int(scale, "scale")
        if scale < MIN_SCALE:
            raise ConfigurationOutOfBounds(f"scale must be at least 2**64, got {scale}")
        if self.ledger.magnified_per_share != 0:
            raise ConfigurationOutOfBounds("scale cannot change after rewards were injected")
        new, old = self.ledger.set_scale(scale)
        self._notify("ScaleUpdated", new_value=new, old_value=old)

    def reset_cursor(self) -> None:
        """Restart batch processing from the first registry entry."""
        old = self._cursor
        self._cursor = 0
        self._notify("CursorReset", new_value=0, old_value=old)

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check that every injected unit is paid, owed, or truncation dust.

        Truncation dust is kept in the reserve permanently; it is never swept.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the accounting balances
            - 'injected': int - Total reward injected
            - 'distributed': int - Total reward paid out
            - 'outstanding': int - Total reward still withdrawable
            - 'dust': int - Injected reward no holder can withdraw
            - 'discrepancies': List[str] - Description of each violation
        """
        injected = self.ledger.total_injected
        distributed = self.ledger.total_distributed
        outstanding = self.ledger.outstanding()
        dust = injected - distributed - outstanding
        discrepancies: List[str] = []

        if dust < 0:
            discrepancies.append(f"holders are owed {-dust} more than was injected")
        if self.reward_reserve < outstanding:
            discrepancies.append(
                f"reserve {self.reward_reserve} below outstanding {outstanding}"
            )

        return {
            'valid': not discrepancies,
            'injected': injected,
            'distributed': distributed,
            'outstanding': outstanding,
            'dust': dust,
            'discrepancies': discrepancies,
        }

    def check_invariants(self) -> None:
        """
        Verify registry, ledger and cursor agree.

        Raises:
            InvariantViolation: On any inconsistency
        """
        self.registry.check_invariants()
        tracked_total = 0
        for account in self.registry:
            balance = self.registry.balance_of(account)
            if self.ledger.balance_of(account) != balance:
                raise InvariantViolation(
                    f"{account} tracked at {balance} but ledger holds {self.ledger.balance_of(account)}"
                )
            tracked_total += balance
        if tracked_total != self.ledger.total_supply:
            raise InvariantViolation(
                f"Registry total {tracked_total} != ledger supply {self.ledger.total_supply}"
            )
        if len(self.registry) and not 0 <= self._cursor < len(self.registry):
            raise InvariantViolation(f"Cursor {self._cursor} outside registry of {len(self.registry)}")
        if not len(self.registry) and self._cursor != 0:
            raise InvariantViolation(f"Cursor {self._cursor} on empty registry")

    # ========================================================================
    # LOGGING
    # ========================================================================

    def _notify(self, name: str, **params: Any) -> Notification:
        notification = make_notification(
            name, self._next_sequence, self._current_time, **params
        )
        self._next_sequence += 1
        self.notifications.append(notification)
        if self.verbose:
            print(f"[{self.name}] {notification!r}")
        return notification

    # ========================================================================
    # CLONING
    # ========================================================================

    def clone(self) -> RewardTracker:
        """
        Create a fully independent copy of this tracker.

        The payout hook is shared; everything else is copied.
        """
        cloned = RewardTracker.__new__(RewardTracker)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned._claim_wait = self._claim_wait
        cloned.verbose = self.verbose
        cloned._payout = self._payout
        cloned.excluded = set(self.excluded)
        cloned.registry = self.registry.copy()
        cloned.registry.is_exempt = cloned.is_excluded
        cloned.ledger = self.ledger.copy()
        cloned._cursor = self._cursor
        cloned._last_claim = dict(self._last_claim)
        cloned.reward_reserve = self.reward_reserve
        cloned.reward_balances = dict(self.reward_balances)
        cloned.notifications = list(self.notifications)
        cloned._next_sequence = self._next_sequence
        return cloned


# ============================================================================
# REPORTING (pure, read-only)
# ============================================================================

def describe_account(view: TrackerView, account: str) -> AccountInfo:
    """
    Build an AccountInfo snapshot from any TrackerView.

    Untracked accounts report index and iterations of -1 but still show
    rewards they earned while they were tracked.
    """
    index = view.index_of(account)
    if index == NOT_TRACKED:
        iterations = NOT_TRACKED
    else:
        iterations = iterations_until_processed(index, view.cursor, view.registry_size())

    withdrawable = view.withdrawable_of(account)
    last_claim = view.last_claim_time(account)
    return AccountInfo(
        account=account,
        index=index,
        iterations_until_processed=iterations,
        withdrawable=withdrawable,
        total_earned=withdrawable + view.withdrawn_of(account),
        last_claim_time=last_claim,
        next_claim_time=next_claim_time(last_claim, view.claim_wait),
        seconds_until_auto_claim=seconds_until_claim(last_claim, view.current_time, view.claim_wait),
    )
