"""
reward_ledger - Proportional Reward Distribution for a Fee-Taking Token

Taxed transfers fund liquidity and a reward pool; the pool is shared among
holders in proportion to the balance they held while each reward arrived.

Usage:
    from reward_ledger import RewardTracker

    tracker = RewardTracker("rewards", verbose=False)
    tracker.set_balance("alice", 100)
    tracker.set_balance("bob", 300)

    # Rewards arrive and are shared pro rata
    tracker.deposit_and_inject(40)
    tracker.withdrawable_of("alice")

    # Pay eligible holders a bounded number at a time
    result = tracker.process_batch(unit_budget=10)
"""

# Core types
from .core import (
    TrackerView,
    Notification,
    AccountInfo,
    BatchResult,
    PayoutKind,
    LedgerError,
    InvariantViolation,
    InsufficientFunds,
    PreconditionRejected,
    CooldownActive,
    NothingToClaim,
    NoTrackedSupply,
    ConfigurationOutOfBounds,
    ReentrancyError,
    NotOwner,
    TradingNotEnabled,
    TransferLimitExceeded,
    InsufficientBalance,
    can_claim,
    next_claim_time,
    seconds_until_claim,
    DEFAULT_SCALE,
    MIN_SCALE,
    DEFAULT_CLAIM_WAIT,
    MIN_CLAIM_WAIT,
    MAX_CLAIM_WAIT,
    DEFAULT_MINIMUM_TRACKED_BALANCE,
    TOKEN_UNIT,
    NOT_TRACKED,
)

# Registry
from .registry import HolderRegistry

# Distribution ledger
from .distribution import (
    DistributionLedger,
    magnified_increment,
    correction_delta,
    accumulative_reward,
)

# Batch processing
from .processor import (
    process_batch,
    iterations_until_processed,
)

# Tracker
from .tracker import RewardTracker, describe_account

# Exchange
from .exchange import Exchange, ConstantProductPool, get_amount_out

# Token
from .token import (
    RewardToken,
    REWARDS_FEE,
    LIQUIDITY_FEE,
    TOTAL_FEES,
    MAX_SELL_TRANSACTION_AMOUNT,
    DEFAULT_LIQUIDATION_THRESHOLD,
    MAX_LIQUIDATION_THRESHOLD,
    MIN_BALANCE_FOR_REWARDS,
    DEFAULT_PROCESSING_BUDGET,
)


__all__ = [
    # Core
    'TrackerView', 'Notification', 'AccountInfo', 'BatchResult', 'PayoutKind',
    'LedgerError', 'InvariantViolation', 'InsufficientFunds', 'PreconditionRejected',
    'CooldownActive', 'NothingToClaim', 'NoTrackedSupply', 'ConfigurationOutOfBounds',
    'ReentrancyError', 'NotOwner', 'TradingNotEnabled', 'TransferLimitExceeded',
    'InsufficientBalance',
    'can_claim', 'next_claim_time', 'seconds_until_claim',
    'DEFAULT_SCALE', 'MIN_SCALE', 'DEFAULT_CLAIM_WAIT', 'MIN_CLAIM_WAIT', 'MAX_CLAIM_WAIT',
    'DEFAULT_MINIMUM_TRACKED_BALANCE', 'TOKEN_UNIT', 'NOT_TRACKED',
    # Components
    'HolderRegistry',
    'DistributionLedger', 'magnified_increment', 'correction_delta', 'accumulative_reward',
    'process_batch', 'iterations_until_processed',
    'RewardTracker', 'describe_account',
    # Token layer
    'Exchange', 'ConstantProductPool', 'get_amount_out',
    'RewardToken', 'REWARDS_FEE', 'LIQUIDITY_FEE', 'TOTAL_FEES',
    'MAX_SELL_TRANSACTION_AMOUNT', 'DEFAULT_LIQUIDATION_THRESHOLD',
    'MAX_LIQUIDATION_THRESHOLD', 'MIN_BALANCE_FOR_REWARDS', 'DEFAULT_PROCESSING_BUDGET',
]

__version__ = '1.0.0'
