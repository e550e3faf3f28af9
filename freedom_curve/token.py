"""Minimal fungible token used to fund per-item vesting allocations."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .chain import Contract, normalise_address
from .errors import InsufficientBalanceError
from .events import Transfer

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass
class TokenState:
    balances: Dict[str, int] = field(default_factory=dict)
    total_supply: int = 0


class VestingToken(Contract):
    def __init__(self, name: str = "FarWin", symbol: str = "FWIN", decimals: int = 18) -> None:
        super().__init__()
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.state = TokenState()

    def balance_of(self, account: str) -> int:
        return self.state.balances.get(normalise_address(account), 0)

    def total_supply(self) -> int:
        return self.state.total_supply

    def mint(self, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Mint amount must be non-negative.")
        to = normalise_address(to)
        self._touch()
        self.state.balances[to] = self.state.balances.get(to, 0) + amount
        self.state.total_supply += amount
        self._emit(Transfer(sender=ZERO_ADDRESS, recipient=to, amount=amount))

    def burn(self, holder: str, amount: int) -> None:
        """Destroy ``amount`` of the holder's own tokens."""

        if amount < 0:
            raise ValueError("Burn amount must be non-negative.")
        holder = normalise_address(holder)
        balance = self.state.balances.get(holder, 0)
        if balance < amount:
            raise InsufficientBalanceError(f"{self.symbol}: burn amount exceeds balance")
        self._touch()
        self.state.balances[holder] = balance - amount
        self.state.total_supply -= amount
        self._emit(Transfer(sender=holder, recipient=ZERO_ADDRESS, amount=amount))

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative.")
        sender = normalise_address(sender)
        to = normalise_address(to)
        balance = self.state.balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(f"{self.symbol}: transfer amount exceeds balance")
        self._touch()
        self.state.balances[sender] = balance - amount
        self.state.balances[to] = self.state.balances.get(to, 0) + amount
        self._emit(Transfer(sender=sender, recipient=to, amount=amount))
        return True
