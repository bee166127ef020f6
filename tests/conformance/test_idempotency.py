"""
Idempotency Conformance Tests

INVARIANT: Repeating a registry operation has no further effect.

    - remove(a); remove(a)  ==  remove(a)
    - upsert(a, b); upsert(a, b)  ==  upsert(a, b)

and after any sequence of upserts and removals every tracked account has a
unique, resolvable index.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from reward_ledger import HolderRegistry

from tests.conformance.operations import ACCOUNTS, Harness, operations


registry_ops = st.lists(
    st.one_of(
        st.tuples(st.just("upsert"), st.sampled_from(ACCOUNTS), st.integers(min_value=0, max_value=50)),
        st.tuples(st.just("remove"), st.sampled_from(ACCOUNTS)),
    ),
    max_size=40,
)


class TestIdempotencyProperties:
    """Property-based idempotency tests."""

    @given(registry_ops)
    @settings(max_examples=100, deadline=None)
    def test_registry_matches_model(self, ops):
        """
        PROPERTY: The registry always holds exactly the eligible accounts,
        each at a unique index.
        """
        registry = HolderRegistry(minimum_balance=10)
        model = {}
        for op in ops:
            if op[0] == "upsert":
                _, account, balance = op
                registry.upsert(account, balance)
                if balance >= 10:
                    model[account] = balance
                else:
                    model.pop(account, None)
            else:
                registry.remove(op[1])
                model.pop(op[1], None)
            registry.check_invariants()

        assert len(registry) == len(model)
        assert {registry.at(i) for i in range(len(registry))} == set(model)
        for account, balance in model.items():
            assert registry.balance_of(account) == balance

    @given(registry_ops, st.sampled_from(ACCOUNTS))
    @settings(max_examples=100, deadline=None)
    def test_double_removal(self, ops, account):
        """
        PROPERTY: A second removal returns False and changes nothing.
        """
        registry = HolderRegistry()
        for op in ops:
            if op[0] == "upsert":
                registry.upsert(op[1], op[2])
            else:
                registry.remove(op[1])

        registry.remove(account)
        snapshot = [registry.at(i) for i in range(len(registry))]
        assert registry.remove(account) is False
        assert [registry.at(i) for i in range(len(registry))] == snapshot

    @given(operations(), st.sampled_from(ACCOUNTS))
    @settings(max_examples=60, deadline=None)
    def test_repeated_sync(self, ops, account):
        """
        PROPERTY: Syncing the same balance twice leaves the tracker as the
        first sync did.
        """
        harness = Harness()
        harness.run(ops)
        tracker = harness.tracker
        balance = harness.balances.get(account, 0) + 1
        tracker.set_balance(account, balance)
        state = (
            tracker.index_of(account),
            tracker.total_tracked_supply,
            tracker.ledger.correction_of(account),
            tracker.cursor,
        )
        tracker.set_balance(account, balance)
        assert (
            tracker.index_of(account),
            tracker.total_tracked_supply,
            tracker.ledger.correction_of(account),
            tracker.cursor,
        ) == state
