"""Bonding-curve lottery game: mint, fulfil randomness, burn for tiered rewards."""
from __future__ import annotations

from .chain import Chain
from .config import CurveSettings, load_settings
from .controller import Curve
from .deploy import Game, deploy_game, local_chain
from .drand import DeterministicRandomness, DrandClient
from .errors import CurveError, EconomicSafetyError, ProtocolIntegrityError, ValidationError
from .operator_service import RandomnessOperator
from .pricing import charity_cut, price_to_burn, price_to_mint, reserve_cut
from .rarity import Tier, classify
from .registry import ItemRegistry
from .token import VestingToken

__all__ = [
    "Chain",
    "Curve",
    "CurveError",
    "CurveSettings",
    "DeterministicRandomness",
    "DrandClient",
    "EconomicSafetyError",
    "Game",
    "ItemRegistry",
    "ProtocolIntegrityError",
    "RandomnessOperator",
    "Tier",
    "ValidationError",
    "VestingToken",
    "charity_cut",
    "classify",
    "deploy_game",
    "load_settings",
    "local_chain",
    "price_to_burn",
    "price_to_mint",
    "reserve_cut",
]
