"""
Determinism Conformance Tests

INVARIANT: Given identical inputs, the tracker produces identical outputs.

    ∀ operation sequences S:
        tracker1.run(S) = tracker2.run(S)

This guarantees:
- Replay produces identical state and audit logs
- A clone evolves exactly like its origin under the same operations
- Operations on a clone never leak into its origin
"""

from hypothesis import given, settings

from tests.conformance.operations import ACCOUNTS, Harness, operations


def snapshot(harness):
    tracker = harness.tracker
    return (
        [n.notification_id for n in tracker.notifications],
        [tracker.index_of(a) for a in ACCOUNTS],
        [tracker.withdrawable_of(a) for a in ACCOUNTS],
        dict(tracker.reward_balances),
        tracker.cursor,
        tracker.total_injected,
        tracker.total_distributed,
        tracker.current_time,
    )


def clone_harness(harness):
    cloned = Harness()
    cloned.tracker = harness.tracker.clone()
    cloned.balances = dict(harness.balances)
    return cloned


class TestDeterminismProperties:
    """Property-based determinism tests."""

    @given(operations())
    @settings(max_examples=50, deadline=None)
    def test_identical_sequences_produce_identical_state(self, ops):
        """
        PROPERTY: Two trackers processing the same operations reach the same state.
        """
        first, second = Harness("one"), Harness("two")
        first.run(ops)
        second.run(ops)
        assert snapshot(first) == snapshot(second)

    @given(operations(max_size=15), operations(max_size=15))
    @settings(max_examples=50, deadline=None)
    def test_clone_evolves_like_origin(self, prefix, suffix):
        """
        PROPERTY: clone() then identical operations gives identical state.
        """
        origin = Harness()
        origin.run(prefix)
        cloned = clone_harness(origin)
        origin.run(suffix)
        cloned.run(suffix)
        assert snapshot(origin) == snapshot(cloned)

    @given(operations(max_size=15), operations(max_size=15))
    @settings(max_examples=50, deadline=None)
    def test_clone_is_isolated(self, prefix, suffix):
        """
        PROPERTY: Operations on a clone never change the origin.
        """
        origin = Harness()
        origin.run(prefix)
        before = snapshot(origin)
        cloned = clone_harness(origin)
        cloned.run(suffix)
        assert snapshot(origin) == before
        origin.tracker.check_invariants()
