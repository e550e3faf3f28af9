"""Randomness sources for the operator: the public drand beacon or a local seed."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests
from eth_abi import encode
from eth_utils import keccak

from .config import DEFAULT_DRAND_URL
from .randomness import DRAND_GENESIS, DRAND_PERIOD

_LOGGER = logging.getLogger(__name__)

QUICKNET_CHAIN_HASH = "52db9ba70e0cc0f6eaf7803dd07447a1f5477735fd3f661792ba94600c84e971"


class DrandError(RuntimeError):
    """Raised when the drand HTTP API responds with an unexpected payload."""


def round_at(timestamp: int) -> int:
    """Latest drand round published at ``timestamp``."""

    if timestamp < DRAND_GENESIS:
        return 0
    return (timestamp - DRAND_GENESIS) // DRAND_PERIOD + 1


@dataclass
class DrandClient:
    """Thin wrapper around ``GET /{chain_hash}/public/{round}``."""

    base_url: str = DEFAULT_DRAND_URL
    chain_hash: str = QUICKNET_CHAIN_HASH
    session: Optional[requests.Session] = None
    timeout: Optional[float] = 10.0

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
        self.base_url = self.base_url.rstrip("/")

    def _get_round(self, round_: int) -> Dict[str, Any]:
        url = f"{self.base_url}/{self.chain_hash}/public/{round_}"
        response = self.session.get(url, timeout=self.timeout)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise DrandError(f"drand API error for round {round_}: {exc}") from exc
        data = response.json()
        if not isinstance(data, Mapping):
            raise DrandError(f"Unexpected payload for round {round_}: {data!r}")
        return dict(data)

    def randomness_for_round(self, round_: int) -> bytes:
        payload = self._get_round(round_)
        if payload.get("round") != round_:
            raise DrandError(f"drand returned round {payload.get('round')!r}, expected {round_}")
        value = payload.get("randomness")
        if not isinstance(value, str):
            raise DrandError(f"Round {round_} payload has no randomness field")
        try:
            randomness = bytes.fromhex(value.removeprefix("0x"))
        except ValueError as exc:
            raise DrandError(f"Round {round_} randomness is not hex: {value!r}") from exc
        if len(randomness) != 32:
            raise DrandError(f"Round {round_} randomness is {len(randomness)} bytes, expected 32")
        _LOGGER.debug("Fetched drand round %s", round_)
        return randomness


@dataclass(frozen=True)
class DeterministicRandomness:
    """Offline source for simulations: ``keccak(abi.encode(seed, round))``."""

    seed: bytes = b"\x00" * 32

    def randomness_for_round(self, round_: int) -> bytes:
        return keccak(encode(["bytes32", "uint256"], [self.seed, round_]))


__all__ = [
    "DeterministicRandomness",
    "DrandClient",
    "DrandError",
    "QUICKNET_CHAIN_HASH",
    "round_at",
]
