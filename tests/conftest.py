"""Shared fixtures: a fresh chain, named accounts and a deployed game."""
from __future__ import annotations

from types import SimpleNamespace

import pytest
from eth_account import Account
from eth_utils import keccak

from freedom_curve.chain import Chain
from freedom_curve.config import CurveSettings
from freedom_curve.deploy import Game, deploy_game
from freedom_curve.randomness import DRAND_GENESIS
from helpers import STARTING_BALANCE, TOKEN_SUPPLY, VESTING_AMOUNT_PER_USER


def _address(label: str) -> str:
    return Account.from_key(keccak(text=label)).address


@pytest.fixture
def accounts() -> SimpleNamespace:
    return SimpleNamespace(
        owner=_address("owner"),
        charity=_address("charity"),
        operator=_address("operator"),
        user=_address("user"),
        other=_address("other"),
    )


@pytest.fixture
def chain(accounts: SimpleNamespace) -> Chain:
    chain = Chain(chain_id=31337, timestamp=DRAND_GENESIS + 3_000)
    for address in (accounts.owner, accounts.charity, accounts.user, accounts.other):
        chain.fund(address, STARTING_BALANCE)
    return chain


@pytest.fixture
def settings(accounts: SimpleNamespace) -> CurveSettings:
    return CurveSettings(
        charity=accounts.charity,
        operator=accounts.operator,
        vesting_amount_per_user=VESTING_AMOUNT_PER_USER,
    )


@pytest.fixture
def game(chain: Chain, accounts: SimpleNamespace, settings: CurveSettings) -> Game:
    return deploy_game(chain, accounts.owner, settings, token_supply=TOKEN_SUPPLY)
