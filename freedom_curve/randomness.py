"""Commit/reveal bookkeeping for operator-supplied randomness.

A mint opens a request by committing to ``keccak(abi.encode(round, payload))``
where ``payload = abi.encode(request_id, extra)`` and ``round`` is the drand
round the operator is expected to answer with. The operator later reveals the
exact same bytes; the request id is decoded from them and the hash must match
the commitment before the request can be closed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from .errors import HashMismatchError, MalformedRevealError, RequestNotPendingError

DRAND_GENESIS = 1692803367
DRAND_PERIOD = 3


def round_for(timestamp: int) -> int:
    """Drand round a request opened at ``timestamp`` waits for."""

    elapsed = max(0, timestamp - DRAND_GENESIS)
    return elapsed // DRAND_PERIOD + 2


def encode_payload(request_id: int, extra: bytes = b"") -> bytes:
    return encode(["uint256", "bytes"], [request_id, extra])


def encode_reveal(round_: int, payload: bytes) -> bytes:
    return encode(["uint256", "bytes"], [round_, payload])


def _decode_pair(data: bytes) -> Tuple[int, bytes]:
    try:
        number, blob = decode(["uint256", "bytes"], bytes(data))
    except (DecodingError, TypeError, ValueError) as exc:
        raise MalformedRevealError(f"Reveal cannot be decoded: {exc}") from exc
    return number, blob


def decode_payload(payload: bytes) -> Tuple[int, bytes]:
    """Return ``(request_id, extra)`` out of a request payload."""

    return _decode_pair(payload)


def decode_reveal(data_with_round: bytes) -> Tuple[int, int, bytes]:
    """Return ``(round, request_id, extra)`` out of a reveal."""

    round_, payload = _decode_pair(data_with_round)
    request_id, extra = decode_payload(payload)
    return round_, request_id, extra


@dataclass
class MintRequest:
    request_id: int
    committed_hash: bytes
    pending: bool
    requester: str
    paid_value: int
    round: int
    epoch: int = 0


@dataclass
class RequestLedger:
    """One record per randomness request; ids are sequential and never reused."""

    requests: Dict[int, MintRequest] = field(default_factory=dict)
    next_request_id: int = 0

    def open(
        self,
        requester: str,
        paid_value: int,
        timestamp: int,
        extra: bytes = b"",
        *,
        epoch: int = 0,
    ) -> Tuple[MintRequest, bytes]:
        """Record a pending request; ``epoch`` is the game epoch the payment was booked in."""

        request_id = self.next_request_id
        self.next_request_id += 1
        round_ = round_for(timestamp)
        payload = encode_payload(request_id, extra)
        request = MintRequest(
            request_id=request_id,
            committed_hash=keccak(encode_reveal(round_, payload)),
            pending=True,
            requester=requester,
            paid_value=paid_value,
            round=round_,
            epoch=epoch,
        )
        self.requests[request_id] = request
        return request, payload

    def is_pending(self, request_id: int) -> bool:
        request = self.requests.get(request_id)
        return request is not None and request.pending

    def committed_hash(self, request_id: int) -> bytes:
        request = self.requests.get(request_id)
        return request.committed_hash if request else b"\x00" * 32

    def verify(self, data_with_round: bytes) -> MintRequest:
        """Check a reveal against its open request without closing it."""

        _, request_id, _ = decode_reveal(data_with_round)
        request = self.requests.get(request_id)
        if request is None or not request.pending:
            raise RequestNotPendingError(f"Request {request_id} fulfilled or missing")
        if keccak(bytes(data_with_round)) != request.committed_hash:
            raise HashMismatchError(f"Reveal does not match the hash committed for request {request_id}")
        return request

    def close(self, request: MintRequest) -> None:
        request.pending = False


__all__ = [
    "DRAND_GENESIS",
    "DRAND_PERIOD",
    "MintRequest",
    "RequestLedger",
    "decode_payload",
    "decode_reveal",
    "encode_payload",
    "encode_reveal",
    "round_for",
]
