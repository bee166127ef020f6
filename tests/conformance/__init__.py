"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the reward tracker.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_conservation.py - Injected rewards are paid, owed or dust
2. test_retroactivity.py - Rewards follow the balance held at injection time
3. test_liveness.py - Bounded batches eventually visit every holder
4. test_cooldown.py - No account is paid twice within the claim wait
5. test_idempotency.py - Registry removal and repeated syncs are idempotent
6. test_determinism.py - Reproducible behavior and independent clones

These tests use hypothesis for property-based testing.
"""
