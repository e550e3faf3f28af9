"""Wire a controller, item registry and vesting token together on a chain."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .chain import Chain
from .config import CurveSettings
from .controller import Curve
from .registry import VESTING_DURATION_SECS, ItemRegistry
from .randomness import DRAND_GENESIS
from .reserve import PrizeConfig
from .token import VestingToken

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Game:
    chain: Chain
    curve: Curve
    registry: ItemRegistry
    token: VestingToken


def deploy_game(
    chain: Chain,
    owner: str,
    settings: CurveSettings,
    *,
    token_supply: int = 0,
    vesting_duration: int = VESTING_DURATION_SECS,
    name: str = "Freedom",
    symbol: str = "FREE",
) -> Game:
    """Deploy the full game and hand ``token_supply`` vesting tokens to ``owner``."""

    token = chain.deploy(VestingToken(), owner)
    if token_supply:
        token.mint(owner, token_supply)

    curve = chain.deploy(
        Curve(
            owner=owner,
            charity=settings.charity,
            operator=settings.operator,
            vesting_token=token.address,
            vesting_amount_per_user=settings.vesting_amount_per_user,
            prizes=PrizeConfig(settings.tier_a_multiplier, settings.tier_b_multiplier),
        ),
        owner,
    )
    registry = chain.deploy(ItemRegistry(name, symbol, curve.address, vesting_duration), owner)
    curve.init_registry(owner, registry.address)

    _LOGGER.info("Deployed curve %s with registry %s and token %s", curve.address, registry.address, token.address)
    return Game(chain=chain, curve=curve, registry=registry, token=token)


def local_chain(settings: CurveSettings, timestamp: Optional[int] = None) -> Chain:
    """Fresh chain whose clock starts at ``timestamp`` (drand genesis by default)."""

    return Chain(chain_id=settings.chain_id, timestamp=timestamp if timestamp is not None else DRAND_GENESIS)
