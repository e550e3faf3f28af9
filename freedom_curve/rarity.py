"""Trait decoding and reward-tier classification for item identifiers.

An item id is a 256-bit integer. Read as 32 big-endian bytes, bytes ``0..7``
are the eight coloured squares around the grid (``byte % 5`` picks the palette
colour) and byte ``8`` is the middle square, which is white when
``byte % MARKER_MODULUS == 0``. Everything here is a pure function of the id.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from eth_abi import encode
from eth_utils import keccak, to_int

PALETTE = ("#898989", "#555555", "#009A49", "#005BBB", "#BF0A30")
TRAIT_SLOTS = 8
MARKER_INDEX = TRAIT_SLOTS
MARKER_MODULUS = 64

# Blue top row, grey squares either side of the middle, red bottom row.
FLAG_PATTERN: Tuple[int, ...] = (3, 3, 3, 0, 0, 4, 4, 4)

MAX_UINT256 = 2**256 - 1


class Tier(Enum):
    """Reward tiers, declared from strongest to weakest."""

    HIGHEST = "highest"
    FIVE_OF_A_KIND = "five_of_a_kind"
    FIXED_PATTERN = "fixed_pattern"
    FOUR_OF_A_KIND = "four_of_a_kind"
    NONE = "none"


@dataclass(frozen=True)
class Traits:
    slots: Tuple[int, ...]
    marker: int

    @property
    def colours(self) -> Tuple[str, ...]:
        return tuple(PALETTE[slot] for slot in self.slots)

    @property
    def white_marker(self) -> bool:
        return self.marker % MARKER_MODULUS == 0


def _id_bytes(item_id: int) -> bytes:
    if not 0 <= item_id <= MAX_UINT256:
        raise ValueError("Item ids are unsigned 256-bit integers.")
    return item_id.to_bytes(32, "big")


def decode_traits(item_id: int) -> Traits:
    raw = _id_bytes(item_id)
    slots = tuple(raw[index] % len(PALETTE) for index in range(TRAIT_SLOTS))
    return Traits(slots=slots, marker=raw[MARKER_INDEX])


def _largest_group(item_id: int) -> int:
    return max(Counter(decode_traits(item_id).slots).values())


def is_highest_tier(item_id: int) -> bool:
    return decode_traits(item_id).white_marker


def has_four_of_a_kind(item_id: int) -> bool:
    return _largest_group(item_id) >= 4


def has_five_of_a_kind(item_id: int) -> bool:
    return _largest_group(item_id) >= 5


def matches_fixed_pattern(item_id: int) -> bool:
    return decode_traits(item_id).slots == FLAG_PATTERN


def classify(item_id: int) -> Tier:
    """Return the strongest tier ``item_id`` qualifies for."""

    if is_highest_tier(item_id):
        return Tier.HIGHEST
    if has_five_of_a_kind(item_id):
        return Tier.FIVE_OF_A_KIND
    if matches_fixed_pattern(item_id):
        return Tier.FIXED_PATTERN
    if has_four_of_a_kind(item_id):
        return Tier.FOUR_OF_A_KIND
    return Tier.NONE


def as_uint256(value: Union[int, bytes, str]) -> int:
    """Coerce a randomness value given as int, bytes32 or hex string."""

    if isinstance(value, bool):
        raise TypeError("Randomness must be an integer, bytes or hex string.")
    if isinstance(value, int):
        number = value
    elif isinstance(value, (bytes, bytearray)):
        number = to_int(primitive=bytes(value))
    elif isinstance(value, str):
        number = to_int(hexstr=value)
    else:
        raise TypeError("Randomness must be an integer, bytes or hex string.")
    if not 0 <= number <= MAX_UINT256:
        raise ValueError("Randomness does not fit in 256 bits.")
    return number


def derive_item_id(randomness: Union[int, bytes, str], controller: str, chain_id: int, request_id: int) -> int:
    """Bind raw operator randomness to this controller, chain and request."""

    digest = keccak(
        encode(
            ["uint256", "address", "uint256", "uint256"],
            [as_uint256(randomness), controller, chain_id, request_id],
        )
    )
    return int.from_bytes(digest, "big")


__all__ = [
    "FLAG_PATTERN",
    "MARKER_MODULUS",
    "PALETTE",
    "TRAIT_SLOTS",
    "Tier",
    "Traits",
    "as_uint256",
    "classify",
    "decode_traits",
    "derive_item_id",
    "has_five_of_a_kind",
    "has_four_of_a_kind",
    "is_highest_tier",
    "matches_fixed_pattern",
]
