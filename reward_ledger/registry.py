"""
registry.py - Ordered Holder Registry

An index-stable collection of reward-eligible accounts.

Accounts are kept in a list with a parallel account -> index map, so:
    - insertion is O(1) (append)
    - removal is O(1) (swap the last account into the hole, then pop)
    - position lookups are O(1) in both directions

Iteration order is insertion order until a removal moves the last account
into the removed slot. The batch processor relies only on every account
having a resolvable index, never on a particular order.
"""

from __future__ import annotations
from typing import Callable, Dict, Iterator, List, Optional

from .core import (
    InvariantViolation, NOT_TRACKED, DEFAULT_MINIMUM_TRACKED_BALANCE,
    require_non_negative_int,
)


ExemptionPolicy = Callable[[str], bool]


def _never_exempt(account: str) -> bool:
    return False


class HolderRegistry:
    """
    Ordered mapping of tracked account -> tracked balance.

    Membership is decided by upsert(): an account is tracked while its
    balance is at least minimum_balance and the exemption policy does not
    exempt it.

    Example:
        registry = HolderRegistry(minimum_balance=10)
        registry.upsert("alice", 100)   # True, tracked at index 0
        registry.upsert("bob", 5)       # False, below minimum
        registry.remove("alice")        # True
        registry.remove("alice")        # False, already absent
    """

    def __init__(
        self,
        minimum_balance: int = DEFAULT_MINIMUM_TRACKED_BALANCE,
        is_exempt: Optional[ExemptionPolicy] = None,
    ):
        if require_non_negative_int(minimum_balance, "minimum_balance") < 1:
            raise ValueError("minimum_balance must be at least 1")
        self.minimum_balance = minimum_balance
        self.is_exempt: ExemptionPolicy = is_exempt or _never_exempt
        self._keys: List[str] = []
        self._indexes: Dict[str, int] = {}
        self._balances: Dict[str, int] = {}

    # ========================================================================
    # READS
    # ========================================================================

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, account: str) -> bool:
        return account in self._indexes

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    def size(self) -> int:
        return len(self._keys)

    def contains(self, account: str) -> bool:
        return account in self._indexes

    def at(self, index: int) -> str:
        """
        Return the account stored at a registry index.

        Raises:
            IndexError: If index is outside [0, size)
        """
        if index < 0 or index >= len(self._keys):
            raise IndexError(f"Registry index {index} out of range (size {len(self._keys)})")
        return self._keys[index]

    def index_of(self, account: str) -> int:
        """Return the account's registry index, or -1 if it is not tracked."""
        return self._indexes.get(account, NOT_TRACKED)

    def balance_of(self, account: str) -> int:
        """Return the tracked balance (0 for untracked accounts)."""
        return self._balances.get(account, 0)

    def is_eligible(self, account: str, balance: int) -> bool:
        """Return True if an account with this balance belongs in the registry."""
        return balance >= self.minimum_balance and not self.is_exempt(account)

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def upsert(self, account: str, balance: int) -> bool:
        """
        Track, update or drop an account according to the membership policy.

        Args:
            account: Account identifier
            balance: The account's current balance

        Returns:
            True if the account is tracked after the call
        """
        if not account or not account.strip():
            raise ValueError("account cannot be empty")
        require_non_negative_int(balance, "balance")

        if not self.is_eligible(account, balance):
            self.remove(account)
            return False

        self._balances[account] = balance
        if account not in self._indexes:
            self._indexes[account] = len(self._keys)
            self._keys.append(account)
        return True

    def remove(self, account: str) -> bool:
        """
        Remove an account in O(1) by swapping the last account into its slot.

        Removing an absent account is a no-op.

        Returns:
            True if the account was present
        """
        index = self._indexes.pop(account, None)
        if index is None:
            return False
        del self._balances[account]

        last_index = len(self._keys) - 1
        last_key = self._keys[last_index]
        if index != last_index:
            self._keys[index] = last_key
            self._indexes[last_key] = index
        self._keys.pop()
        return True

    # ========================================================================
    # INVARIANTS
    # ========================================================================

    def check_invariants(self) -> None:
        """
        Verify that keys, indexes and balances agree.

        Raises:
            InvariantViolation: On duplicates, dangling indexes or orphan balances
        """
        if len(set(self._keys)) != len(self._keys):
            raise InvariantViolation("Registry contains duplicate accounts")
        if len(self._indexes) != len(self._keys):
            raise InvariantViolation(
                f"Registry index map has {len(self._indexes)} entries for {len(self._keys)} accounts"
            )
        for account, index in self._indexes.items():
            if index < 0 or index >= len(self._keys) or self._keys[index] != account:
                raise InvariantViolation(f"Dangling registry index {index} for {account}")
        if set(self._balances) != set(self._indexes):
            raise InvariantViolation("Registry balances out of sync with membership")

    def copy(self) -> HolderRegistry:
        """Return an independent copy sharing the same exemption policy."""
        cloned = HolderRegistry(self.minimum_balance, self.is_exempt)
        cloned._keys = list(self._keys)
        cloned._indexes = dict(self._indexes)
        cloned._balances = dict(self._balances)
        return cloned
