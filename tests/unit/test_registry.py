"""
Tests for the ordered holder registry.

Tests:
- Membership policy (minimum balance, exemption)
- O(1) swap-with-last removal keeps every index resolvable
- Idempotent removal
- Index lookups and bounds
- Invariant checking and copying
"""

import pytest

from reward_ledger import HolderRegistry, InvariantViolation


@pytest.fixture
def registry():
    reg = HolderRegistry(minimum_balance=10)
    for account, balance in [("a", 100), ("b", 200), ("c", 300)]:
        reg.upsert(account, balance)
    return reg


class TestMembership:
    """upsert() decides who is tracked."""

    def test_insert_appends(self, registry):
        assert [registry.at(i) for i in range(3)] == ["a", "b", "c"]
        assert registry.index_of("c") == 2
        assert registry.balance_of("b") == 200

    def test_update_keeps_index(self, registry):
        assert registry.upsert("b", 250)
        assert registry.index_of("b") == 1
        assert registry.balance_of("b") == 250
        assert len(registry) == 3

    def test_below_minimum_not_tracked(self, registry):
        assert not registry.upsert("d", 9)
        assert "d" not in registry
        assert registry.index_of("d") == -1

    def test_exactly_minimum_tracked(self, registry):
        assert registry.upsert("d", 10)
        assert registry.contains("d")

    def test_dropping_below_minimum_removes(self, registry):
        assert not registry.upsert("a", 5)
        assert "a" not in registry
        assert registry.balance_of("a") == 0
        assert registry.size() == 2

    def test_exempt_accounts_never_tracked(self):
        reg = HolderRegistry(minimum_balance=1, is_exempt=lambda account: account == "pair")
        assert not reg.upsert("pair", 10 ** 24)
        assert reg.upsert("alice", 1)
        assert len(reg) == 1

    def test_empty_account_rejected(self, registry):
        with pytest.raises(ValueError, match="account cannot be empty"):
            registry.upsert("", 100)

    def test_negative_balance_rejected(self, registry):
        with pytest.raises(ValueError, match="cannot be negative"):
            registry.upsert("a", -1)

    def test_minimum_must_be_positive(self):
        with pytest.raises(ValueError, match="at least 1"):
            HolderRegistry(minimum_balance=0)


class TestRemoval:
    """remove() swaps the last account into the hole."""

    def test_remove_first_moves_last(self, registry):
        assert registry.remove("a")
        assert registry.at(0) == "c"
        assert registry.index_of("c") == 0
        assert registry.index_of("b") == 1
        assert len(registry) == 2
        registry.check_invariants()

    def test_remove_last(self, registry):
        assert registry.remove("c")
        assert [registry.at(i) for i in range(2)] == ["a", "b"]
        registry.check_invariants()

    def test_remove_only_account(self):
        reg = HolderRegistry()
        reg.upsert("solo", 1)
        assert reg.remove("solo")
        assert len(reg) == 0
        reg.check_invariants()

    def test_remove_is_idempotent(self, registry):
        assert registry.remove("b")
        assert not registry.remove("b")
        assert len(registry) == 2
        registry.check_invariants()

    def test_remove_absent(self, registry):
        assert not registry.remove("nobody")
        assert len(registry) == 3


class TestLookups:
    """Index bounds and iteration."""

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_at_out_of_range(self, registry, index):
        with pytest.raises(IndexError, match="out of range"):
            registry.at(index)

    def test_iteration_survives_mutation(self, registry):
        """Iterating over a snapshot while removing does not skip accounts."""
        seen = []
        for account in registry:
            seen.append(account)
            registry.remove(account)
        assert seen == ["a", "b", "c"]
        assert len(registry) == 0


class TestInvariants:
    """check_invariants() and copy()."""

    def test_consistent_registry_passes(self, registry):
        registry.check_invariants()

    def test_dangling_index_detected(self, registry):
        registry._indexes["a"] = 2
        with pytest.raises(InvariantViolation, match="Dangling"):
            registry.check_invariants()

    def test_orphan_balance_detected(self, registry):
        registry._balances["ghost"] = 5
        with pytest.raises(InvariantViolation, match="out of sync"):
            registry.check_invariants()

    def test_copy_is_independent(self, registry):
        cloned = registry.copy()
        cloned.remove("a")
        cloned.upsert("d", 50)
        assert registry.index_of("a") == 0
        assert "d" not in registry
        assert len(cloned) == 3
