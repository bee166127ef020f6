"""
exchange.py - Automated Market Maker Integration

The token converts collected fees into the reward asset and into liquidity
through an Exchange. The Exchange protocol is all the token depends on;
ConstantProductPool is an in-memory x*y=k pool with integer math, used for
simulations and tests.

Pool conventions:
    - swap input pays a 0.3% fee (997/1000 of the input counts)
    - amount_out = in_with_fee * reserve_out // (reserve_in * 1000 + in_with_fee)
    - the first liquidity deposit mints isqrt(tokens * reward) LP shares
    - later deposits mint min(tokens * lp_supply // reserve_tokens,
      reward * lp_supply // reserve_reward)
"""

from __future__ import annotations
import math
from typing import Dict, Protocol, runtime_checkable

from .core import require_non_negative_int


FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


@runtime_checkable
class Exchange(Protocol):
    """Swap and liquidity surface the token uses to convert fees."""

    @property
    def pair_address(self) -> str:
        """Account that holds the pool's token reserve on the token ledger."""
        ...

    def quote_reward_out(self, token_amount: int) -> int:
        """Reward asset a swap of `token_amount` tokens would return."""
        ...

    def swap_tokens_for_reward(self, token_amount: int) -> int:
        """
        Swap tokens already sent to the pair for reward asset.

        Returns the reward amount paid out to the caller.
        """
        ...

    def add_liquidity(self, token_amount: int, reward_amount: int, to: str) -> int:
        """
        Deposit tokens already sent to the pair together with reward asset.

        Returns LP shares minted to `to`. Raises ValueError, leaving the
        pool unchanged, when the deposit would mint no shares.
        """
        ...


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Output amount of a constant-product swap after the input fee. Pure function."""
    require_non_negative_int(amount_in, "amount_in")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError("Pool has no liquidity")
    in_with_fee = amount_in * FEE_NUMERATOR
    return in_with_fee * reserve_out // (reserve_in * FEE_DENOMINATOR + in_with_fee)


class ConstantProductPool:
    """
    In-memory token / reward-asset pool.

    Reserves are tracked by the pool itself; the token ledger holds the
    matching token balance under pair_address. Pools start empty and are
    seeded through add_liquidity().
    """

    def __init__(self, pair_address: str = "amm_pair"):
        if not pair_address or not pair_address.strip():
            raise ValueError("pair_address cannot be empty")
        self._pair_address = pair_address
        self.token_reserve = 0
        self.reward_reserve = 0
        self.lp_supply = 0
        self.lp_balances: Dict[str, int] = {}

    @property
    def pair_address(self) -> str:
        return self._pair_address

    def quote_reward_out(self, token_amount: int) -> int:
        return get_amount_out(token_amount, self.token_reserve, self.reward_reserve)

    def swap_tokens_for_reward(self, token_amount: int) -> int:
        reward_out = self.quote_reward_out(token_amount)
        if reward_out >= self.reward_reserve:
            raise ValueError("Swap would drain the reward reserve")
        self.token_reserve += token_amount
        self.reward_reserve -= reward_out
        return reward_out

    def add_liquidity(self, token_amount: int, reward_amount: int, to: str) -> int:
        require_non_negative_int(token_amount, "token_amount")
        require_non_negative_int(reward_amount, "reward_amount")
        if self.lp_supply == 0:
            minted = math.isqrt(token_amount * reward_amount)
        else:
            minted = min(
                token_amount * self.lp_supply // self.token_reserve,
                reward_amount * self.lp_supply // self.reward_reserve,
            )
        if minted == 0:
            raise ValueError("Insufficient liquidity minted")
        self.token_reserve += token_amount
        self.reward_reserve += reward_amount
        self.lp_supply += minted
        self.lp_balances[to] = self.lp_balances.get(to, 0) + minted
        return minted

    def __repr__(self) -> str:
        return (
            f"ConstantProductPool({self._pair_address}: tokens={self.token_reserve}, "
            f"reward={self.reward_reserve}, lp={self.lp_supply})"
        )
