"""
distribution.py - Proportional Distribution Ledger

=== MAGNIFIED PER-SHARE MODEL ===

Rewards are never pushed to holders one by one. Instead a single
accumulator records how much reward each unit of balance has earned so far:

    magnified_per_share += amount * scale // total_supply     (on inject)

A holder's lifetime earnings would then be magnified_per_share * balance,
which is wrong for anyone whose balance changed after earlier injections.
The per-account correction cancels that retroactive effect:

    correction[account] -= magnified_per_share * (new - old)  (on balance change)

so that

    accumulative(account) = (magnified_per_share * balance + correction) // scale
    withdrawable(account) = accumulative(account) - withdrawn(account)

Both updates are O(1). Everything is integer arithmetic; Python ints are
unbounded so the products never overflow.

=== PURE FUNCTIONS ===

    magnified_increment(amount, scale, total_supply)      -> accumulator step
    correction_delta(per_share, old_balance, new_balance) -> correction step
    accumulative_reward(per_share, balance, correction, scale) -> earnings

The DistributionLedger class applies them and keeps the per-account maps.
"""

from __future__ import annotations
from typing import Dict, Iterator, Tuple

from .core import (
    InvariantViolation, NoTrackedSupply,
    DEFAULT_SCALE, MIN_SCALE, ROUNDING_TOLERANCE,
    require_non_negative_int,
)


# =============================================================================
# PURE FUNCTIONS - The core arithmetic, trivially testable
# =============================================================================

def magnified_increment(amount: int, scale: int, total_supply: int) -> int:
    """
    Accumulator step for injecting `amount` across `total_supply`. Pure function.

    Truncates toward zero; the remainder stays in the pool and never
    becomes withdrawable.

    Raises:
        NoTrackedSupply: If total_supply is 0
    """
    if total_supply <= 0:
        raise NoTrackedSupply("Cannot distribute rewards while tracked supply is 0")
    return amount * scale // total_supply


def correction_delta(per_share: int, old_balance: int, new_balance: int) -> int:
    """Correction step for a balance change at the current accumulator. Pure function."""
    return -per_share * (new_balance - old_balance)


def accumulative_reward(per_share: int, balance: int, correction: int, scale: int) -> int:
    """
    Lifetime earnings of an account. Pure function.

    The numerator is never negative: the correction only removes earnings
    for balance the account did not hold while injections happened.
    """
    magnified = per_share * balance + correction
    if magnified < 0:
        raise InvariantViolation(
            f"Negative magnified earnings {magnified} (per_share={per_share}, balance={balance})"
        )
    return magnified // scale


# =============================================================================
# LEDGER
# =============================================================================

class DistributionLedger:
    """
    Per-share reward accounting for a set of balances.

    The ledger does not decide who is tracked; it receives every balance
    change through on_balance_change() and every reward through inject().

    Example:
        ledger = DistributionLedger(scale=10 ** 40)
        ledger.on_balance_change("a", 0, 100)
        ledger.on_balance_change("b", 0, 300)
        ledger.inject(40)
        ledger.withdrawable_of("a")   # 10
        ledger.withdrawable_of("b")   # 30
    """

    def __init__(self, scale: int = DEFAULT_SCALE):
        require_non_negative_int(scale, "scale")
        if scale < MIN_SCALE:
            raise ValueError(f"scale must be at least 2**64, got {scale}")
        self.scale = scale
        self.magnified_per_share: int = 0
        self.total_supply: int = 0
        self.total_injected: int = 0
        self.total_distributed: int = 0
        self._balances: Dict[str, int] = {}
        self._corrections: Dict[str, int] = {}
        self._withdrawn: Dict[str, int] = {}

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def correction_of(self, account: str) -> int:
        return self._corrections.get(account, 0)

    def withdrawn_of(self, account: str) -> int:
        return self._withdrawn.get(account, 0)

    def accumulative_of(self, account: str) -> int:
        """Total reward ever earned by the account (withdrawn or not)."""
        return accumulative_reward(
            self.magnified_per_share,
            self.balance_of(account),
            self.correction_of(account),
            self.scale,
        )

    def withdrawable_of(self, account: str) -> int:
        """
        Reward the account can withdraw now.

        A deficit of up to ROUNDING_TOLERANCE is reported as 0. Anything
        larger means withdrawals were booked that were never earned.

        Raises:
            InvariantViolation: If withdrawn exceeds earnings beyond rounding
        """
        owed = self.accumulative_of(account) - self.withdrawn_of(account)
        if owed < 0:
            if -owed > ROUNDING_TOLERANCE:
                raise InvariantViolation(
                    f"{account} withdrew {-owed} more than it earned"
                )
            return 0
        return owed

    def accounts(self) -> Iterator[str]:
        """Every account the ledger has ever seen, in sorted order."""
        seen = set(self._balances) | set(self._corrections) | set(self._withdrawn)
        return iter(sorted(seen))

    def outstanding(self) -> int:
        """Sum of withdrawable over every account ever seen."""
        return sum(self.withdrawable_of(a) for a in self.accounts())

    def dust(self) -> int:
        """Injected reward that truncation left unassignable to any holder."""
        return self.total_injected - self.total_distributed - self.outstanding()

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def set_scale(self, scale: int) -> Tuple[int, int]:
        """
        Replace the scale factor. Only allowed before the first injection.

        Returns:
            (new_scale, old_scale)
        """
        require_non_negative_int(scale, "scale")
        if scale < MIN_SCALE:
            raise ValueError(f"scale must be at least 2**64, got {scale}")
        if self.magnified_per_share != 0:
            raise InvariantViolation("Cannot change scale after rewards were injected")
        old = self.scale
        self.scale = scale
        return scale, old

    def inject(self, amount: int) -> int:
        """
        Distribute `amount` proportionally to current balances.

        Args:
            amount: Reward amount in minor units

        Returns:
            The accumulator increment applied (0 for a zero amount)

        Raises:
            NoTrackedSupply: If no balance is tracked (state untouched)
        """
        require_non_negative_int(amount, "amount")
        if self.total_supply == 0:
            raise NoTrackedSupply("Cannot distribute rewards while tracked supply is 0")
        if amount == 0:
            return 0
        increment = magnified_increment(amount, self.scale, self.total_supply)
        self.magnified_per_share += increment
        self.total_injected += amount
        return increment

    def on_balance_change(self, account: str, old_balance: int, new_balance: int) -> None:
        """
        Record a balance change and cancel its retroactive effect.

        Must run before any later inject() so that past injections are
        attributed to the balance held at the time.

        Raises:
            InvariantViolation: If old_balance is not the recorded balance
        """
        require_non_negative_int(old_balance, "old_balance")
        require_non_negative_int(new_balance, "new_balance")
        recorded = self.balance_of(account)
        if recorded != old_balance:
            raise InvariantViolation(
                f"{account} recorded balance {recorded} but change reported from {old_balance}"
            )
        if new_balance == old_balance:
            return

        self._corrections[account] = self.correction_of(account) + correction_delta(
            self.magnified_per_share, old_balance, new_balance
        )
        self.total_supply += new_balance - old_balance
        if new_balance:
            self._balances[account] = new_balance
        else:
            self._balances.pop(account, None)

    def record_withdrawal(self, account: str) -> int:
        """
        Book the account's withdrawable amount as paid.

        Called before value leaves the system so a failing transfer can never
        be replayed into a second payout.

        Returns:
            The booked amount (0 if nothing was withdrawable)
        """
        amount = self.withdrawable_of(account)
        if amount > 0:
            self._withdrawn[account] = self.withdrawn_of(account) + amount
            self.total_distributed += amount
        return amount

    def revert_withdrawal(self, account: str, amount: int) -> None:
        """Undo a booking whose outbound transfer failed."""
        require_non_negative_int(amount, "amount")
        if amount > self.withdrawn_of(account):
            raise InvariantViolation(
                f"Cannot revert {amount} for {account}: only {self.withdrawn_of(account)} booked"
            )
        self._withdrawn[account] = self.withdrawn_of(account) - amount
        self.total_distributed -= amount

    def copy(self) -> DistributionLedger:
        """Return a fully independent copy."""
        cloned = DistributionLedger(self.scale)
        cloned.magnified_per_share = self.magnified_per_share
        cloned.total_supply = self.total_supply
        cloned.total_injected = self.total_injected
        cloned.total_distributed = self.total_distributed
        cloned._balances = dict(self._balances)
        cloned._corrections = dict(self._corrections)
        cloned._withdrawn = dict(self._withdrawn)
        return cloned
