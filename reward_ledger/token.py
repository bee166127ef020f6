"""
token.py - Fee-Taking Reward Token

The transfer layer around the RewardTracker. Every taxed transfer sends a
fee to the token's own account; once enough fees pile up, a transfer
converts them through the Exchange:

    LIQUIDITY_FEE / TOTAL_FEES of the pile -> swap_and_liquify()
        half swapped for reward asset, paired with the other half as
        liquidity owned by the liquidity wallet
    the rest -> swap_and_send_rewards()
        swapped for reward asset and injected into the tracker

After moving balances the transfer syncs both parties with the tracker and,
unless a swap is running, pokes the batch processor with the configured
processing budget.

The swap path is guarded by a scoped flag. While it is set, nested
transfers skip fees, swaps and batch processing, and entering the swap path
again raises ReentrancyError.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .core import (
    AccountInfo, BatchResult, Notification,
    TOKEN_UNIT,
    ConfigurationOutOfBounds, InsufficientBalance, NotOwner,
    ReentrancyError, TradingNotEnabled, TransferLimitExceeded,
    make_notification, require_non_negative_int,
)
from .exchange import ConstantProductPool, Exchange
from .tracker import RewardTracker


# ============================================================================
# CONSTANTS
# ============================================================================

REWARDS_FEE = 4
LIQUIDITY_FEE = 2
TOTAL_FEES = REWARDS_FEE + LIQUIDITY_FEE

DEFAULT_TOTAL_SUPPLY = 1_000_000_000 * TOKEN_UNIT
MAX_SELL_TRANSACTION_AMOUNT = 1_000_000 * TOKEN_UNIT

DEFAULT_LIQUIDATION_THRESHOLD = 100_000 * TOKEN_UNIT
MAX_LIQUIDATION_THRESHOLD = 200_000 * TOKEN_UNIT

MIN_BALANCE_FOR_REWARDS = 10_000 * TOKEN_UNIT

# Registry visits per transfer
DEFAULT_PROCESSING_BUDGET = 30
MIN_PROCESSING_BUDGET = 1
MAX_PROCESSING_BUDGET = 1000

TOKEN_ACCOUNT = "token"
DEAD_ACCOUNT = "dead"


class RewardToken:
    """
    Token whose transfers fund liquidity and holder rewards.

    Thread Safety:
        Not thread-safe, like the RewardTracker it drives.

    Example:
        token = RewardToken(owner="owner", verbose=False)
        token.add_initial_liquidity(500_000_000 * TOKEN_UNIT, 100 * TOKEN_UNIT, caller="owner")
        token.enable_trading(caller="owner")
        token.transfer("owner", "alice", 50_000 * TOKEN_UNIT)
    """

    def __init__(
        self,
        owner: str,
        exchange: Optional[Exchange] = None,
        name: str = "KINU",
        symbol: str = "KINU",
        total_supply: int = DEFAULT_TOTAL_SUPPLY,
        tracker: Optional[RewardTracker] = None,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create the token and mint the whole supply to the owner.

        Args:
            owner: Account allowed to call owner-only operations
            exchange: AMM used to convert fees (default: empty ConstantProductPool)
            name: Token name
            symbol: Token symbol
            total_supply: Minted supply in minor units
            tracker: Reward tracker to drive (default: a new one)
            initial_time: Starting logical time for a new tracker
            verbose: Print each applied change (default: True)
        """
        if not owner or not owner.strip():
            raise ValueError("owner cannot be empty")
        require_non_negative_int(total_supply, "total_supply")

        self.name = name
        self.symbol = symbol
        self.decimals = 18
        self.owner = owner
        self.address = TOKEN_ACCOUNT
        self.verbose = verbose
        self.exchange: Exchange = exchange or ConstantProductPool()
        self.tracker = tracker or RewardTracker(
            f"{symbol}_rewards",
            initial_time=initial_time,
            minimum_tracked_balance=MIN_BALANCE_FOR_REWARDS,
            verbose=verbose,
        )

        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.total_supply = 0

        self.trading_enabled = False
        self.liquidity_wallet = owner
        self.liquidate_tokens_at_amount = DEFAULT_LIQUIDATION_THRESHOLD
        self.processing_budget = DEFAULT_PROCESSING_BUDGET
        self.reward_reserve = 0
        self._swapping = False

        self.excluded_from_fees: Set[str] = {owner, self.address}
        self.can_transfer_before_trading_is_enabled: Set[str] = {owner}
        self.automated_market_maker_pairs: Set[str] = set()

        self.notifications: List[Notification] = []
        self._next_sequence = 0

        for account in (self.address, owner, DEAD_ACCOUNT):
            if not self.tracker.is_excluded(account):
                self.tracker.exclude_from_rewards(account)
        self._set_automated_market_maker_pair(self.exchange.pair_address, True)

        self._mint(owner, total_supply)

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self.tracker.current_time

    @property
    def swapping(self) -> bool:
        """True while the fee swap path is running."""
        return self._swapping

    @property
    def claim_wait(self) -> int:
        return self.tracker.claim_wait

    @property
    def total_rewards_distributed(self) -> int:
        return self.tracker.total_distributed

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, holder: str, spender: str) -> int:
        return self.allowances.get((holder, spender), 0)

    def is_excluded_from_fees(self, account: str) -> bool:
        return account in self.excluded_from_fees

    def withdrawable_reward_of(self, account: str) -> int:
        return self.tracker.withdrawable_of(account)

    def reward_token_balance_of(self, account: str) -> int:
        """Tracked balance the account earns rewards on."""
        return self.tracker.balance_of(account)

    def get_account_rewards_info(self, account: str) -> AccountInfo:
        return self.tracker.get_account(account)

    def advance_time(self, new_time: datetime) -> None:
        self.tracker.advance_time(new_time)

    # ========================================================================
    # OWNER-ONLY CONFIGURATION
    # ========================================================================

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner")

    def enable_trading(self, caller: str) -> None:
        self._only_owner(caller)
        if self.trading_enabled:
            raise ValueError("Trading is already enabled")
        self.trading_enabled = True
        self._notify("TradingEnabled")

    def allow_transfer_before_trading_is_enabled(self, account: str, caller: str) -> None:
        self._only_owner(caller)
        self.can_transfer_before_trading_is_enabled.add(account)

    def exclude_from_fees(self, account: str, caller: str, excluded: bool = True) -> None:
        self._only_owner(caller)
        if (account in self.excluded_from_fees) == excluded:
            raise ValueError(f"{account} fee exclusion is already {excluded}")
        if excluded:
            self.excluded_from_fees.add(account)
        else:
            self.excluded_from_fees.discard(account)
        self._notify("ExcludeFromFees", account=account, excluded=excluded)

    def exclude_from_rewards(self, account: str, caller: str) -> None:
        self._only_owner(caller)
        self.tracker.exclude_from_rewards(account)

    def update_liquidity_wallet(self, new_wallet: str, caller: str) -> None:
        self._only_owner(caller)
        if new_wallet == self.liquidity_wallet:
            raise ValueError(f"Liquidity wallet is already {new_wallet}")
        old = self.liquidity_wallet
        self.excluded_from_fees.add(new_wallet)
        self.liquidity_wallet = new_wallet
        self._notify("LiquidityWalletUpdated", new_value=new_wallet, old_value=old)

    def update_liquidation_threshold(self, new_threshold: int, caller: str) -> None:
        """
        Change the fee pile size that triggers a swap.

        Raises:
            ConfigurationOutOfBounds: If not in (0, 200,000 tokens] or unchanged
        """
        self._only_owner(caller)
        require_non_negative_int(new_threshold, "new_threshold")
        if new_threshold == 0 or new_threshold > MAX_LIQUIDATION_THRESHOLD:
            raise ConfigurationOutOfBounds(
                f"liquidation threshold must be in (0, {MAX_LIQUIDATION_THRESHOLD}], got {new_threshold}"
            )
        if new_threshold == self.liquidate_tokens_at_amount:
            raise ConfigurationOutOfBounds(f"liquidation threshold is already {new_threshold}")
        old = self.liquidate_tokens_at_amount
        self.liquidate_tokens_at_amount = new_threshold
        self._notify("LiquidationThresholdUpdated", new_value=new_threshold, old_value=old)

    def update_processing_budget(self, new_budget: int, caller: str) -> None:
        """
        Change how many registry entries each transfer processes.

        Raises:
            ConfigurationOutOfBounds: If outside [1, 1000] or unchanged
        """
        self._only_owner(caller)
        require_non_negative_int(new_budget, "new_budget")
        if not MIN_PROCESSING_BUDGET <= new_budget <= MAX_PROCESSING_BUDGET:
            raise ConfigurationOutOfBounds(
                f"processing budget must be between {MIN_PROCESSING_BUDGET} and {MAX_PROCESSING_BUDGET}, got {new_budget}"
            )
        if new_budget == self.processing_budget:
            raise ConfigurationOutOfBounds(f"processing budget is already {new_budget}")
        old = self.processing_budget
        self.processing_budget = new_budget
        self._notify("ProcessingBudgetUpdated", new_value=new_budget, old_value=old)

    def update_claim_wait(self, seconds: int, caller: str) -> None:
        self._only_owner(caller)
        self.tracker.set_claim_wait(seconds)

    def update_minimum_balance_for_rewards(self, minimum: int, caller: str) -> None:
        self._only_owner(caller)
        self.tracker.set_minimum_tracked_balance(minimum)

    def set_automated_market_maker_pair(self, pair: str, value: bool, caller: str) -> None:
        self._only_owner(caller)
        if pair == self.exchange.pair_address:
            raise ValueError("The exchange pair cannot be removed from automated market maker pairs")
        self._set_automated_market_maker_pair(pair, value)

    def _set_automated_market_maker_pair(self, pair: str, value: bool) -> None:
        if (pair in self.automated_market_maker_pairs) == value:
            raise ValueError(f"Automated market maker pair {pair} is already set to {value}")
        if value:
            self.automated_market_maker_pairs.add(pair)
            if not self.tracker.is_excluded(pair):
                self.tracker.exclude_from_rewards(pair)
        else:
            self.automated_market_maker_pairs.discard(pair)
        self._notify("SetAutomatedMarketMakerPair", pair=pair, value=value)

    def add_initial_liquidity(self, token_amount: int, reward_amount: int, caller: str) -> int:
        """
        Seed the exchange with owner tokens and externally supplied reward asset.

        Returns:
            LP shares minted to the liquidity wallet
        """
        self._only_owner(caller)
        self._move(caller, self.exchange.pair_address, token_amount)
        return self.exchange.add_liquidity(token_amount, reward_amount, self.liquidity_wallet)

    # ========================================================================
    # ERC20-STYLE TRANSFERS
    # ========================================================================

    def approve(self, holder: str, spender: str, amount: int) -> None:
        require_non_negative_int(amount, "amount")
        self.allowances[(holder, spender)] = amount

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> None:
        require_non_negative_int(amount, "amount")
        allowed = self.allowance(sender, spender)
        if allowed < amount:
            raise InsufficientBalance(
                f"{spender} may move {allowed} of {sender}'s tokens, requested {amount}"
            )
        self.transfer(sender, recipient, amount)
        self.allowances[(sender, spender)] = allowed - amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move tokens, taking fees and driving reward distribution.

        Raises:
            TradingNotEnabled: If the sender may not trade yet
            TransferLimitExceeded: If a sell exceeds MAX_SELL_TRANSACTION_AMOUNT
            InsufficientBalance: If the sender holds less than amount
        """
        if not sender or not sender.strip():
            raise ValueError("sender cannot be empty")
        if not recipient or not recipient.strip():
            raise ValueError("recipient cannot be empty")
        require_non_negative_int(amount, "amount")
        if amount == 0:
            return

        if not self.trading_enabled and sender not in self.can_transfer_before_trading_is_enabled:
            raise TradingNotEnabled(f"{sender} cannot transfer before trading is enabled")
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(
                f"{sender} holds {self.balance_of(sender)}, cannot send {amount}"
            )

        if (
            self.trading_enabled
            and recipient in self.automated_market_maker_pairs
            and sender not in self.excluded_from_fees
            and amount > MAX_SELL_TRANSACTION_AMOUNT
        ):
            raise TransferLimitExceeded(
                f"Sell of {amount} exceeds maximum {MAX_SELL_TRANSACTION_AMOUNT}"
            )

        if self._should_liquidate(sender, recipient):
            with self._swap_guard():
                contract_balance = self.balance_of(self.address)
                self.swap_and_liquify(contract_balance * LIQUIDITY_FEE // TOTAL_FEES)
                self.swap_and_send_rewards(self.balance_of(self.address))

        take_fee = (
            self.trading_enabled
            and not self._swapping
            and sender not in self.excluded_from_fees
            and recipient not in self.excluded_from_fees
        )
        if take_fee:
            fees = amount * TOTAL_FEES // 100
            amount -= fees
            if fees:
                self._move(sender, self.address, fees)

        self._move(sender, recipient, amount)

        if not self._swapping:
            result = self.tracker.process_batch(self.processing_budget)
            self._notify_processed(result, automatic=True)

    def _should_liquidate(self, sender: str, recipient: str) -> bool:
        return (
            self.trading_enabled
            and self.balance_of(self.address) >= self.liquidate_tokens_at_amount
            and not self._swapping
            and sender not in self.automated_market_maker_pairs
            and sender != self.liquidity_wallet
            and recipient != self.liquidity_wallet
        )

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        """Move balances without fees and sync both parties with the tracker."""
        require_non_negative_int(amount, "amount")
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(
                f"{sender} holds {self.balance_of(sender)}, cannot send {amount}"
            )
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        self.tracker.set_balance(sender, self.balances[sender])
        self.tracker.set_balance(recipient, self.balances[recipient])

    def _mint(self, account: str, amount: int) -> None:
        self.balances[account] = self.balance_of(account) + amount
        self.total_supply += amount
        self.tracker.set_balance(account, self.balances[account])

    # ========================================================================
    # SWAP PATH
    # ========================================================================

    @contextmanager
    def _swap_guard(self) -> Iterator[None]:
        """Hold the swap-in-progress flag for the duration of the block."""
        if self._swapping:
            raise ReentrancyError("Swap already in progress")
        self._swapping = True
        try:
            yield
        finally:
            self._swapping = False

    def _swap_tokens_for_reward(self, token_amount: int) -> int:
        self._move(self.address, self.exchange.pair_address, token_amount)
        received = self.exchange.swap_tokens_for_reward(token_amount)
        self.reward_reserve += received
        return received

    def swap_and_liquify(self, tokens: int) -> None:
        """Swap half of `tokens` for reward asset and pair it with the other half."""
        require_non_negative_int(tokens, "tokens")
        if tokens == 0:
            return
        half = tokens // 2
        other_half = tokens - half

        received = self._swap_tokens_for_reward(half)

        self._move(self.address, self.exchange.pair_address, other_half)
        try:
            self.exchange.add_liquidity(other_half, received, self.liquidity_wallet)
        except ValueError as e:
            # Pool refused the deposit: the tokens come back and the swap
            # proceeds stay in reward_reserve for the rewards leg
            self._move(self.exchange.pair_address, self.address, other_half)
            self._notify(
                "LiquidityDeferred",
                tokens_swapped=half,
                reward_received=received,
                tokens_kept=other_half,
                reason=str(e),
            )
            return
        self.reward_reserve -= received
        self._notify(
            "SwapAndLiquify",
            tokens_swapped=half,
            reward_received=received,
            tokens_into_liquidity=other_half,
        )

    def swap_and_send_rewards(self, tokens: int) -> None:
        """
        Swap `tokens` for reward asset and hand everything held to the tracker.

        With no tracked supply the proceeds stay in reward_reserve and go out
        with the next successful send.
        """
        require_non_negative_int(tokens, "tokens")
        if tokens:
            self._swap_tokens_for_reward(tokens)
        amount = self.reward_reserve
        if amount == 0:
            return
        if self.tracker.total_tracked_supply == 0:
            self._notify("RewardsDeferred", tokens=tokens, amount=amount)
            return
        self.tracker.deposit_and_inject(amount)
        self.reward_reserve = 0
        self._notify("SendRewards", tokens=tokens, amount=amount)

    # ========================================================================
    # REWARDS
    # ========================================================================

    def claim(self, account: str) -> int:
        """Pay out the caller's withdrawable reward (cooldown applies)."""
        return self.tracker.withdraw(account)

    def process_rewards(self, unit_budget: int) -> BatchResult:
        """Public poke: run one reward batch with a caller-chosen budget."""
        result = self.tracker.process_batch(unit_budget)
        self._notify_processed(result, automatic=False)
        return result

    def _notify_processed(self, result: BatchResult, automatic: bool) -> None:
        if not result.processed:
            return
        self._notify(
            "ProcessedRewardTracker",
            iterations=result.processed,
            claims=result.paid,
            cursor=result.cursor,
            automatic=automatic,
        )

    # ========================================================================
    # LOGGING
    # ========================================================================

    def _notify(self, name: str, **params: Any) -> Notification:
        notification = make_notification(
            name, self._next_sequence, self.current_time, **params
        )
        self._next_sequence += 1
        self.notifications.append(notification)
        if self.verbose:
            print(f"[{self.symbol}] {notification!r}")
        return notification
