"""
conftest.py - Shared pytest fixtures for reward ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Trackers (empty, exact-scale, funded with the two-holder scenario)
- Tokens (fresh, and seeded with liquidity and open for trading)

Constants and amount helpers live in tests/helpers.py.
"""

import pytest

from reward_ledger import RewardTracker, RewardToken

from tests.helpers import START, EXACT_SCALE, tokens


# =============================================================================
# TRACKER FIXTURES
# =============================================================================

@pytest.fixture
def tracker():
    """Empty tracker with the default scale."""
    return RewardTracker("test", START, verbose=False)


@pytest.fixture
def exact_tracker():
    """Empty tracker whose scale divides the scenario amounts exactly."""
    return RewardTracker("exact", START, scale=EXACT_SCALE, verbose=False)


@pytest.fixture
def funded_tracker(exact_tracker):
    """alice 100, bob 300, then 40 injected: alice owed 10, bob owed 30."""
    exact_tracker.set_balance("alice", 100)
    exact_tracker.set_balance("bob", 300)
    exact_tracker.deposit_and_inject(40)
    return exact_tracker


# =============================================================================
# TOKEN FIXTURES
# =============================================================================

@pytest.fixture
def fresh_token():
    """Token straight after deployment: no liquidity, trading closed."""
    return RewardToken(owner="owner", initial_time=START, verbose=False)


@pytest.fixture
def token(fresh_token):
    """Token with half the supply paired against 100 reward units, trading open."""
    fresh_token.add_initial_liquidity(tokens(500_000_000), tokens(100), caller="owner")
    fresh_token.enable_trading(caller="owner")
    return fresh_token
