"""Helpers for driving a deployed game through mint, fulfilment and burn."""
from __future__ import annotations

from typing import Callable, Optional, Sequence, Union

from web3 import Web3

from freedom_curve.controller import Curve
from freedom_curve.deploy import Game
from freedom_curve.events import RequestedRandomness
from freedom_curve.randomness import encode_reveal
from freedom_curve.rarity import Tier, classify, derive_item_id

FAKE_RANDOMNESS = "0x471403f3a8764edd4d39c7748847c07098c05e5a16ed7b083b655dbab9809fae"
VESTING_AMOUNT_PER_USER = Web3.to_wei(1, "ether")
TOKEN_SUPPLY = Web3.to_wei(250, "ether")
STARTING_BALANCE = Web3.to_wei(10_000, "ether")


def reveal_for(curve: Curve, request_id: int) -> bytes:
    """Rebuild the operator reveal for ``request_id`` from the request event."""

    for event in curve.chain.events(RequestedRandomness, address=curve.address):
        if event.request_id == request_id:
            return encode_reveal(event.round, event.data)
    raise LookupError(f"No request event for {request_id}")


def find_randomness(curve: Curve, request_id: int, predicate: Callable[[int], bool], limit: int = 20_000) -> int:
    """Search for operator randomness whose derived item id satisfies ``predicate``."""

    for candidate in range(1, limit):
        item_id = derive_item_id(candidate, curve.address, curve.chain.chain_id, request_id)
        if predicate(item_id):
            return candidate
    raise LookupError("No randomness found for the requested predicate")


def mint_and_fulfill(
    game: Game,
    minter: str,
    operator: str,
    *,
    tier: Optional[Tier] = Tier.NONE,
    randomness: Optional[Union[int, str]] = None,
) -> int:
    """Mint one item for ``minter`` and fulfil it; returns the new item id.

    Unless explicit ``randomness`` is given, the randomness is chosen so the
    item lands in ``tier``.
    """

    curve = game.curve
    value = curve.price_to_mint() * 110 // 100
    request_id = curve.mint(minter, value)
    if randomness is None:
        randomness = find_randomness(curve, request_id, lambda item_id: classify(item_id) is tier)
    return curve.fulfill_randomness(operator, randomness, reveal_for(curve, request_id))


def mint_many(game: Game, minter: str, operator: str, tiers: Sequence[Tier]) -> list[int]:
    return [mint_and_fulfill(game, minter, operator, tier=tier) for tier in tiers]


def item_id_from_slots(slots: Sequence[int], marker: int = 1) -> int:
    """Build an item id whose trait slots read back as ``slots``."""

    raw = bytes(slots) + bytes([marker]) + b"\x00" * (32 - len(slots) - 1)
    return int.from_bytes(raw, "big")
