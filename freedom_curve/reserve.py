"""Reserve accounting: what the game owes, what charity received, how many items live."""
from __future__ import annotations

from dataclasses import dataclass

from . import pricing
from .errors import AntiDrainError, InsufficientReserveError
from .rarity import Tier

FIVE_OF_A_KIND_MIN_ITEMS = 3
FIVE_OF_A_KIND_MINT_MULTIPLE = 2


@dataclass
class ReserveState:
    reserve_balance: int = 0
    charity_funds_cumulative: int = 0
    item_count: int = 0
    highest_tier_item_count: int = 0
    epoch: int = 0


@dataclass
class PrizeConfig:
    tier_a_multiplier: int = 2
    tier_b_multiplier: int = 5


def record_mint_payment(state: ReserveState, price: int) -> int:
    """Split ``price`` between charity and reserve; return the charity share."""

    charity = pricing.charity_cut(price)
    state.reserve_balance += price - charity
    state.charity_funds_cumulative += charity
    return charity


def record_item_minted(state: ReserveState, tier: Tier) -> None:
    state.item_count += 1
    if tier is Tier.HIGHEST:
        state.highest_tier_item_count += 1


def compute_reward(state: ReserveState, prizes: PrizeConfig, tier: Tier, controller_balance: int) -> int:
    """Reward owed for burning a current-epoch item of ``tier``.

    Raises :class:`AntiDrainError` or :class:`InsufficientReserveError` when the
    payout would leave the reserve unable to honour the curve.
    """

    count = state.item_count
    if tier is Tier.HIGHEST:
        return controller_balance
    if tier is Tier.FIVE_OF_A_KIND:
        if count < FIVE_OF_A_KIND_MIN_ITEMS:
            raise AntiDrainError(f"Cannot burn five-of-a-kind when only {count} items remain")
        reward = FIVE_OF_A_KIND_MINT_MULTIPLE * pricing.price_to_mint(count)
    elif tier is Tier.FIXED_PATTERN:
        reward = prizes.tier_b_multiplier * pricing.price_to_burn(count)
    elif tier is Tier.FOUR_OF_A_KIND:
        reward = prizes.tier_a_multiplier * pricing.price_to_burn(count)
    else:
        reward = 0

    if reward > state.reserve_balance:
        raise InsufficientReserveError(
            f"Reserve of {state.reserve_balance} wei cannot cover a {tier.value} reward of {reward} wei"
        )
    return reward


def record_burn(state: ReserveState, tier: Tier, reward: int) -> None:
    if tier is Tier.HIGHEST:
        state.reserve_balance = 0
        state.item_count = 0
        state.highest_tier_item_count = 0
        state.epoch += 1
        return
    state.reserve_balance -= reward
    state.item_count -= 1


__all__ = [
    "FIVE_OF_A_KIND_MIN_ITEMS",
    "PrizeConfig",
    "ReserveState",
    "compute_reward",
    "record_burn",
    "record_item_minted",
    "record_mint_payment",
]
