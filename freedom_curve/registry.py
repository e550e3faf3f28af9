"""Item registry: ownership, enumeration and per-item vesting records.

Only the controller that deployed the game may mint, burn or fund items. Item
holders can move items between accounts and claim the vesting allocation tied
to an item once the vesting period has passed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .chain import Contract, normalise_address
from .errors import NotItemOwnerError, UnauthorizedError, UnknownItemError, ValidationError, VestingError

_LOGGER = logging.getLogger(__name__)

VESTING_DURATION_SECS = 30 * 24 * 3600


@dataclass
class VestingRecord:
    amount: int
    start_timestamp: int
    token: str


@dataclass
class RegistryState:
    owners: Dict[int, str] = field(default_factory=dict)
    holdings: Dict[str, List[int]] = field(default_factory=dict)
    vesting: Dict[int, VestingRecord] = field(default_factory=dict)
    former_owners: Dict[int, str] = field(default_factory=dict)
    minted: int = 0


class ItemRegistry(Contract):
    def __init__(
        self,
        name: str,
        symbol: str,
        controller: str,
        vesting_duration: int = VESTING_DURATION_SECS,
    ) -> None:
        super().__init__()
        self.name = name
        self.symbol = symbol
        self.controller = normalise_address(controller)
        self.vesting_duration = vesting_duration
        self.state = RegistryState()

    def _only_controller(self, caller: str) -> None:
        if normalise_address(caller) != self.controller:
            raise UnauthorizedError(f"{self.symbol}: caller is not the controller")

    # -- views -----------------------------------------------------------

    def exists(self, item_id: int) -> bool:
        return item_id in self.state.owners

    def owner_of(self, item_id: int) -> str:
        try:
            return self.state.owners[item_id]
        except KeyError:
            raise UnknownItemError(f"{self.symbol}: owner query for nonexistent item") from None

    def balance_of(self, owner: str) -> int:
        return len(self.state.holdings.get(normalise_address(owner), []))

    def token_of_owner_by_index(self, owner: str, index: int) -> int:
        holdings = self.state.holdings.get(normalise_address(owner), [])
        if not 0 <= index < len(holdings):
            raise IndexError(f"{self.symbol}: owner index out of bounds")
        return holdings[index]

    def total_supply(self) -> int:
        return len(self.state.owners)

    def vesting_info(self, item_id: int) -> Optional[VestingRecord]:
        return self.state.vesting.get(item_id)

    def beneficiary_of(self, item_id: int) -> Optional[str]:
        """Account entitled to the vesting record: the holder, or whoever burned the item."""

        owner = self.state.owners.get(item_id)
        if owner is not None:
            return owner
        return self.state.former_owners.get(item_id)

    def releasable(self, item_id: int) -> int:
        """Linearly unlocked share of the allocation at the current block time."""

        record = self.state.vesting.get(item_id)
        if record is None or record.amount == 0:
            return 0
        elapsed = max(0, self.chain.timestamp - record.start_timestamp)
        if elapsed >= self.vesting_duration:
            return record.amount
        return record.amount * elapsed // self.vesting_duration

    # -- controller entry points -----------------------------------------

    def mint(self, caller: str, to: str, item_id: int) -> None:
        self._only_controller(caller)
        if item_id in self.state.owners:
            raise ValidationError(f"{self.symbol}: item already minted")
        to = normalise_address(to)
        self._touch()
        self.state.owners[item_id] = to
        self.state.holdings.setdefault(to, []).append(item_id)
        self.state.minted += 1

    def burn(self, caller: str, item_id: int) -> None:
        self._only_controller(caller)
        owner = self.owner_of(item_id)
        self._touch()
        del self.state.owners[item_id]
        self.state.holdings[owner].remove(item_id)
        if item_id in self.state.vesting:
            self.state.former_owners[item_id] = owner

    def fund_vesting(self, caller: str, item_id: int, amount: int, token: str) -> None:
        self._only_controller(caller)
        if not self.exists(item_id):
            raise UnknownItemError(f"{self.symbol}: vesting for nonexistent item")
        self._touch()
        self.state.vesting[item_id] = VestingRecord(
            amount=amount,
            start_timestamp=self.chain.timestamp,
            token=normalise_address(token),
        )

    # -- holder entry points ---------------------------------------------

    def transfer(self, caller: str, to: str, item_id: int) -> None:
        caller = normalise_address(caller)
        if self.owner_of(item_id) != caller:
            raise NotItemOwnerError(f"{self.symbol}: transfer of item that is not own")
        to = normalise_address(to)
        with self.chain.transaction():
            self._touch()
            self.state.holdings[caller].remove(item_id)
            self.state.owners[item_id] = to
            self.state.holdings.setdefault(to, []).append(item_id)

    def claim_vested_tokens(self, caller: str, item_id: int) -> int:
        caller = normalise_address(caller)
        if self.beneficiary_of(item_id) != caller:
            raise NotItemOwnerError(f"{self.symbol}: Not the token owner")
        record = self.state.vesting.get(item_id)
        if record is None or record.amount == 0:
            raise VestingError(f"{self.symbol}: Your vesting amount is 0")
        if self.chain.timestamp < record.start_timestamp + self.vesting_duration:
            raise VestingError(f"{self.symbol}: Vesting period must pass")

        amount = record.amount
        with self.chain.transaction():
            self._touch()
            record.amount = 0
            self.chain.contract_at(record.token).transfer(self.address, caller, amount)
        _LOGGER.info("Item %s released %s vested tokens to %s", item_id, amount, caller)
        return amount
