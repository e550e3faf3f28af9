"""Bonding curve that prices mints and burns from the live item count."""
from __future__ import annotations

from web3 import Web3

BASE_PRICE = Web3.to_wei("0.001", "ether")
PRICE_STEP = Web3.to_wei("0.00001", "ether")

CHARITY_PERCENT = 15


def price_to_mint(item_count: int) -> int:
    """Return the wei price of the next mint when ``item_count`` items exist."""

    if item_count < 0:
        raise ValueError("Item count cannot be negative.")
    return BASE_PRICE + item_count * item_count * PRICE_STEP


def charity_cut(price: int) -> int:
    return price * CHARITY_PERCENT // 100


def reserve_cut(price: int) -> int:
    """Portion of a mint payment kept in the reserve once charity is paid."""

    return price - charity_cut(price)


def price_to_burn(item_count: int) -> int:
    """Return the reserve share paid in for the most recent of ``item_count`` items."""

    if item_count <= 0:
        return 0
    return reserve_cut(price_to_mint(item_count - 1))


__all__ = [
    "BASE_PRICE",
    "CHARITY_PERCENT",
    "PRICE_STEP",
    "charity_cut",
    "price_to_burn",
    "price_to_mint",
    "reserve_cut",
]
