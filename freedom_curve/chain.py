"""In-process ledger that executes contract calls with transactional semantics.

Every contract keeps its mutable data in a single ``state`` object and touches
it before a change. A :meth:`Chain.transaction` block saves the touched states
together with the native balances and the event log, and restores them if
anything inside the block raises, so a call is either fully applied or fully
reverted.
"""
from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Type

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from .errors import InsufficientBalanceError
from .events import Event, LogEntry

_LOGGER = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 31337

ReceiveHook = Callable[[str, int], None]


def normalise_address(value: str) -> str:
    """Return the EIP-55 checksummed form of ``value``."""

    return to_checksum_address(value)


@dataclass
class ChainState:
    balances: Dict[str, int] = field(default_factory=dict)
    nonces: Dict[str, int] = field(default_factory=dict)


class Contract:
    """Base class for anything deployed on a :class:`Chain`."""

    state: Any

    def __init__(self) -> None:
        self.address: Optional[str] = None
        self.chain: Optional[Chain] = None

    def _emit(self, event: Event) -> None:
        self.chain.emit(self.address, event)

    def _touch(self) -> None:
        """Call before mutating ``state`` so open transactions can restore it."""

        if self.chain is not None:
            self.chain.touch(self)


class Chain:
    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID, timestamp: int = 0) -> None:
        self.chain_id = chain_id
        self.timestamp = int(timestamp)
        self.state = ChainState()
        self._log: List[LogEntry] = []
        self._contracts: Dict[str, Contract] = {}
        self._receive_hooks: Dict[str, ReceiveHook] = {}
        self._frames: List[Dict[str, Any]] = []

    # -- clock -----------------------------------------------------------

    def set_time(self, timestamp: int) -> None:
        if timestamp < self.timestamp:
            raise ValueError("Block timestamps cannot move backwards.")
        self.timestamp = int(timestamp)

    def advance(self, seconds: int) -> int:
        self.set_time(self.timestamp + int(seconds))
        return self.timestamp

    # -- contracts -------------------------------------------------------

    def deploy(self, contract: Contract, deployer: str) -> Contract:
        """Attach ``contract`` to the chain at an address derived from ``deployer``."""

        deployer = normalise_address(deployer)
        nonce = self.state.nonces.get(deployer, 0)
        self.state.nonces[deployer] = nonce + 1
        digest = keccak(encode(["address", "uint256"], [deployer, nonce]))
        address = normalise_address("0x" + digest[12:].hex())
        contract.address = address
        contract.chain = self
        self._contracts[address] = contract
        _LOGGER.debug("Deployed %s at %s", type(contract).__name__, address)
        return contract

    def contract_at(self, address: str) -> Contract:
        return self._contracts[normalise_address(address)]

    # -- native currency -------------------------------------------------

    def balance_of(self, address: str) -> int:
        return self.state.balances.get(normalise_address(address), 0)

    def fund(self, address: str, amount: int) -> None:
        """Credit ``amount`` out of thin air, the way a dev network seeds accounts."""

        if amount < 0:
            raise ValueError("Funding amount must be non-negative.")
        address = normalise_address(address)
        self.state.balances[address] = self.state.balances.get(address, 0) + amount

    def on_receive(self, address: str, hook: Optional[ReceiveHook]) -> None:
        """Register ``hook(sender, amount)`` to run whenever ``address`` receives value."""

        address = normalise_address(address)
        if hook is None:
            self._receive_hooks.pop(address, None)
        else:
            self._receive_hooks[address] = hook

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative.")
        sender = normalise_address(sender)
        recipient = normalise_address(recipient)
        balance = self.state.balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Balance of {sender} is {balance}, cannot send {amount}."
            )
        self.state.balances[sender] = balance - amount
        self.state.balances[recipient] = self.state.balances.get(recipient, 0) + amount
        hook = self._receive_hooks.get(recipient)
        if hook is not None:
            hook(sender, amount)

    # -- events ----------------------------------------------------------

    def emit(self, address: str, event: Event) -> None:
        self._log.append(LogEntry(address=address, event=event))

    def events(self, kind: Optional[Type[Event]] = None, address: Optional[str] = None) -> List[Event]:
        if address is not None:
            address = normalise_address(address)
        return [
            entry.event
            for entry in self._log
            if (kind is None or isinstance(entry.event, kind))
            and (address is None or entry.address == address)
        ]

    @property
    def logs(self) -> List[LogEntry]:
        return list(self._log)

    # -- transactions ----------------------------------------------------

    def touch(self, contract: Contract) -> None:
        """Save ``contract.state`` in every open transaction that has not saved it yet."""

        for frame in self._frames:
            saved = frame["contracts"]
            if contract.address not in saved:
                saved[contract.address] = copy.deepcopy(contract.state)

    def _snapshot(self) -> Dict[str, Any]:
        # Contract states are copied lazily by ``touch``.
        return {
            "chain": copy.deepcopy(self.state),
            "log_length": len(self._log),
            "contracts": {},
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self.state = snapshot["chain"]
        del self._log[snapshot["log_length"]:]
        for address, state in snapshot["contracts"].items():
            self._contracts[address].state = state

    @contextmanager
    def transaction(self) -> Iterator["Chain"]:
        """Run the enclosed calls atomically; nested blocks behave as savepoints.

        Only contracts that call :meth:`Contract._touch` inside the block are
        saved, so a call costs the size of what it changes rather than the
        size of the whole ledger.
        """

        snapshot = self._snapshot()
        self._frames.append(snapshot)
        try:
            yield self
        except Exception as exc:
            self._restore(snapshot)
            _LOGGER.debug("Transaction reverted: %s", exc)
            raise
        finally:
            self._frames.pop()


__all__ = [
    "Chain",
    "ChainState",
    "Contract",
    "DEFAULT_CHAIN_ID",
    "normalise_address",
]
