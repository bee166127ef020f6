#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Reward Ledger Step by Step

This is a pedagogical demonstration of how proportional reward distribution
works. Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-4:   Distribution    - Holders, injections, pro-rata shares, no retroactivity
  5-7:   Payouts         - Withdrawals, cooldowns, bounded batch processing
  8-9:   The Token       - Fees, liquidation, automatic payouts on transfer
  10:    Conservation    - Every injected unit is paid, owed, or dust

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from reward_ledger import (
    RewardTracker, RewardToken,
    CooldownActive,
    TOKEN_UNIT,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Scale that divides the tutorial amounts exactly
    scale: int = 10 ** 40

    alice_balance: int = 100
    bob_balance: int = 300
    reward: int = 40

    # Token simulation
    holders: int = 8
    holder_tokens: int = 1_000_000
    rounds: int = 4


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def whole(amount: int) -> str:
    return f"{amount / TOKEN_UNIT:,.4f}"


# ============================================================================
# PHASE 1: DISTRIBUTION (Steps 1-4)
# ============================================================================

def step_01_empty_tracker():
    """Create a tracker and look at its initial state."""
    step_header(1, "The Empty Tracker",
        "A tracker starts with no holders and no rewards.")

    print("""
    A RewardTracker shares rewards among holders in proportion to the
    balance they held when each reward arrived. It owns three things:

    1. REGISTRY - Which accounts currently earn rewards
    2. LEDGER   - One accumulator plus a correction per account
    3. CURSOR   - Where the next payout batch starts
    """)

    wait_for_enter()

    print(">>> tracker = RewardTracker('tutorial', initial_time=..., scale=10**40)")
    tracker = RewardTracker(
        "tutorial",
        initial_time=CONFIG.start_time,
        scale=CONFIG.scale,
        verbose=True,
    )

    section_header("Initial State")
    print(f"Current time:     {tracker.current_time}")
    print(f"Claim wait:       {tracker.claim_wait}s")
    print(f"Tracked holders:  {tracker.registry_size()}")
    print(f"Tracked supply:   {tracker.total_tracked_supply}")
    return tracker


def step_02_first_injection(tracker: RewardTracker):
    """Register holders and inject a reward."""
    step_header(2, "Sharing a Reward",
        "An injection is O(1): it only moves the per-share accumulator.")

    print(f">>> tracker.set_balance('alice', {CONFIG.alice_balance})")
    tracker.set_balance("alice", CONFIG.alice_balance)
    print(f">>> tracker.set_balance('bob', {CONFIG.bob_balance})")
    tracker.set_balance("bob", CONFIG.bob_balance)
    print(f">>> tracker.deposit_and_inject({CONFIG.reward})")
    tracker.deposit_and_inject(CONFIG.reward)

    section_header("Withdrawable")
    print(f"alice: {tracker.withdrawable_of('alice')}   (100 / 400 of 40)")
    print(f"bob:   {tracker.withdrawable_of('bob')}   (300 / 400 of 40)")
    return tracker


def step_03_balance_change(tracker: RewardTracker):
    """Change a balance between injections."""
    step_header(3, "Balance Changes Are Not Retroactive",
        "A holder earns on the balance held when each reward arrived.")

    print(">>> tracker.set_balance('alice', 200)")
    tracker.set_balance("alice", 200)
    print(f"alice after change: {tracker.withdrawable_of('alice')}  (unchanged)")

    print(f"\n>>> tracker.deposit_and_inject({CONFIG.reward})")
    tracker.deposit_and_inject(CONFIG.reward)

    section_header("Withdrawable")
    print(f"alice: {tracker.withdrawable_of('alice')}   (10 + 200 / 500 of 40)")
    print(f"bob:   {tracker.withdrawable_of('bob')}   (30 + 300 / 500 of 40)")

    section_header("Key Insight")
    print("""
    The correction term cancels what the new balance would have earned
    from past rewards:

        correction[a] -= per_share * (new - old)
    """)
    return tracker


def step_04_newcomer(tracker: RewardTracker):
    """A holder that arrives late."""
    step_header(4, "Newcomers Start From Zero",
        "Joining after a reward earns nothing from it.")

    print(">>> tracker.set_balance('carol', 1000)")
    tracker.set_balance("carol", 1000)
    info = tracker.get_account("carol")
    print(f"carol index:        {info.index}")
    print(f"carol withdrawable: {info.withdrawable}")
    return tracker


# ============================================================================
# PHASE 2: PAYOUTS (Steps 5-7)
# ============================================================================

def step_05_withdraw(tracker: RewardTracker):
    """Manual withdrawal."""
    step_header(5, "Withdrawing",
        "Payouts are booked before value leaves, then delivered.")

    print(">>> tracker.withdraw('alice')")
    paid = tracker.withdraw("alice")
    print(f"Paid:               {paid}")
    print(f"alice withdrawable: {tracker.withdrawable_of('alice')}")
    print(f"Reserve left:       {tracker.reward_reserve}")
    return tracker


def step_06_cooldown(tracker: RewardTracker):
    """Cooldown between payouts."""
    step_header(6, "The Claim Wait",
        "An account is paid at most once per claim_wait seconds.")

    tracker.deposit_and_inject(CONFIG.reward)
    print(">>> tracker.withdraw('alice')   # immediately again")
    try:
        tracker.withdraw("alice")
    except CooldownActive as e:
        print(f"Rejected: {e}")

    info = tracker.get_account("alice")
    print(f"\nNext claim at:       {info.next_claim_time}")
    print(f"Seconds remaining:   {info.seconds_until_auto_claim}")
    return tracker


def step_07_batches(tracker: RewardTracker):
    """Bounded automatic payouts."""
    step_header(7, "Batch Processing",
        "Each batch visits at most unit_budget holders, resuming at the cursor.")

    tracker.advance_time(tracker.current_time + timedelta(hours=1))
    for budget in (1, 1, 1):
        print(f">>> tracker.process_batch({budget})")
        result = tracker.process_batch(budget)
        print(f"    processed={result.processed} paid={result.paid} "
              f"cursor={result.cursor} wrapped={result.last_iteration_in_batch}")

    section_header("Key Insight")
    print("""
    Cost per call is bounded by the budget, not by the number of holders.
    The cursor wraps, so repeated calls reach everyone.
    """)
    return tracker


# ============================================================================
# PHASE 3: THE TOKEN (Steps 8-9)
# ============================================================================

def step_08_token():
    """Deploy a fee-taking token."""
    step_header(8, "The Reward Token",
        "Taxed transfers fund liquidity and rewards.")

    token = RewardToken(owner="owner", initial_time=CONFIG.start_time, verbose=False)
    token.add_initial_liquidity(500_000_000 * TOKEN_UNIT, 100 * TOKEN_UNIT, caller="owner")
    token.enable_trading(caller="owner")

    holders = [f"holder_{i}" for i in range(CONFIG.holders)]
    for holder in holders:
        token.transfer("owner", holder, CONFIG.holder_tokens * TOKEN_UNIT)

    print(f"Supply:               {whole(token.total_supply)}")
    print(f"Liquidation at:       {whole(token.liquidate_tokens_at_amount)}")
    print(f"Holders tracked:      {token.tracker.registry_size()}")
    print(f"Pool:                 {token.exchange!r}")
    return token, holders


def step_09_trading(token: RewardToken, holders):
    """Trade and watch rewards flow."""
    step_header(9, "Trading",
        "Fees pile up, get swapped, and are paid out by later transfers.")

    for round_number in range(CONFIG.rounds):
        for sender, recipient in zip(holders, holders[1:] + holders[:1]):
            token.transfer(sender, recipient, 200_000 * TOKEN_UNIT)
        token.advance_time(token.current_time + timedelta(hours=1))
        print(f"Round {round_number + 1}: injected={token.tracker.total_injected} "
              f"distributed={token.total_rewards_distributed}")

    section_header("Recent Token Notifications")
    for notification in token.notifications[-5:]:
        print(f"  {notification!r}")
    return token


# ============================================================================
# PHASE 4: CONSERVATION (Step 10)
# ============================================================================

def step_10_conservation(tracker: RewardTracker, token: RewardToken):
    """Prove the accounting balances."""
    step_header(10, "Conservation",
        "Every injected unit is paid, still owed, or truncation dust.")

    for label, t in (("tutorial tracker", tracker), ("token tracker", token.tracker)):
        report = t.verify_conservation()
        print(f"{label}:")
        print(f"  injected={report['injected']} distributed={report['distributed']} "
              f"outstanding={report['outstanding']} dust={report['dust']}")
        print(f"  valid={report['valid']}")

    print(f"\nToken supply conserved: {sum(token.balances.values()) == token.total_supply}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       REWARD LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)
    print("""
    PHASES:
      1-4:   Distribution    - Holders, injections, no retroactivity
      5-7:   Payouts         - Withdrawals, cooldowns, batches
      8-9:   The Token       - Fees, liquidation, automatic payouts
      10:    Conservation    - The accounting always balances
    """)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    tracker = step_01_empty_tracker()
    wait_for_enter()

    tracker = step_02_first_injection(tracker)
    wait_for_enter()

    tracker = step_03_balance_change(tracker)
    wait_for_enter()

    tracker = step_04_newcomer(tracker)
    wait_for_enter()

    tracker = step_05_withdraw(tracker)
    wait_for_enter()

    tracker = step_06_cooldown(tracker)
    wait_for_enter()

    tracker = step_07_batches(tracker)
    wait_for_enter()

    token, holders = step_08_token()
    wait_for_enter()

    token = step_09_trading(token, holders)
    wait_for_enter()

    step_10_conservation(tracker, token)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See reward_ledger/distribution.py for the accumulator math
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
