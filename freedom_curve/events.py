"""Signals emitted by the controller so operators and observers can follow the game."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Event:
    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"event": type(self).__name__}
        for key, value in asdict(self).items():
            payload[key] = "0x" + value.hex() if isinstance(value, bytes) else value
        return payload


@dataclass(frozen=True)
class RequestedRandomness(Event):
    """A mint opened a request; ``data`` is the payload the operator must sign for."""

    request_id: int
    round: int
    data: bytes


@dataclass(frozen=True)
class Minted(Event):
    item_id: int
    owner: str
    request_id: int


@dataclass(frozen=True)
class VestingFunded(Event):
    item_id: int
    amount: int


@dataclass(frozen=True)
class Burned(Event):
    item_id: int
    price_received: int


@dataclass(frozen=True)
class Lottery(Event):
    is_winner: bool


@dataclass(frozen=True)
class PrizeMultipliersUpdated(Event):
    tier_a_multiplier: int
    tier_b_multiplier: int


@dataclass(frozen=True)
class VestingDistributionAmountUpdated(Event):
    amount: int


@dataclass(frozen=True)
class VestingTokensRecovered(Event):
    amount: int


@dataclass(frozen=True)
class OwnershipTransferred(Event):
    previous_owner: str
    new_owner: str


@dataclass(frozen=True)
class Transfer(Event):
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class LogEntry:
    """An event together with the address of the contract that emitted it."""

    address: str
    event: Event
