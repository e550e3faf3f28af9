"""Randomness operator that answers open mint requests found in the event log."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Protocol

import requests

from .chain import normalise_address
from .controller import Curve
from .events import RequestedRandomness
from .randomness import encode_reveal

_LOGGER = logging.getLogger(__name__)


class RandomnessSource(Protocol):
    def randomness_for_round(self, round_: int) -> bytes: ...


@dataclass(frozen=True)
class OpenRequest:
    request_id: int
    round: int
    data: bytes

    @property
    def reveal(self) -> bytes:
        return encode_reveal(self.round, self.data)


class RandomnessOperator:
    def __init__(self, curve: Curve, operator_address: str, source: RandomnessSource) -> None:
        self.curve = curve
        self.operator_address = normalise_address(operator_address)
        self.source = source

    def pending_requests(self) -> List[OpenRequest]:
        open_requests: List[OpenRequest] = []
        for event in self.curve.chain.events(RequestedRandomness, address=self.curve.address):
            if self.curve.request_pending(event.request_id):
                open_requests.append(OpenRequest(request_id=event.request_id, round=event.round, data=event.data))
        return open_requests

    def fulfill(self, request: OpenRequest) -> int:
        randomness = self.source.randomness_for_round(request.round)
        return self.curve.fulfill_randomness(self.operator_address, randomness, request.reveal)

    def fulfill_pending(self) -> List[int]:
        """Answer every open request; returns the ids of the items minted."""

        minted: List[int] = []
        for request in self.pending_requests():
            try:
                minted.append(self.fulfill(request))
            except (RuntimeError, requests.RequestException) as exc:
                _LOGGER.warning("Failed to fulfill request %s: %s", request.request_id, exc)
        return minted


__all__ = ["OpenRequest", "RandomnessOperator", "RandomnessSource"]
