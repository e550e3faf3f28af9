"""Environment-driven settings for deploying and operating a curve game."""
from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import load_dotenv
from web3 import Web3

from .chain import DEFAULT_CHAIN_ID

DEFAULT_CHARITY = "0x5C02a2b417EE583D98343d4B25f0b95A4DC780Ff"
DEFAULT_OPERATOR = "0x1F919E17bB2f322bd1ed5Bf822988C37162CF46c"
DEFAULT_DRAND_URL = "https://api.drand.sh"


@dataclass(frozen=True)
class CurveSettings:
    charity: str = DEFAULT_CHARITY
    operator: str = DEFAULT_OPERATOR
    vesting_amount_per_user: int = 0
    chain_id: int = DEFAULT_CHAIN_ID
    tier_a_multiplier: int = 2
    tier_b_multiplier: int = 5
    drand_url: str = DEFAULT_DRAND_URL


def _address(env: Mapping[str, str], key: str, default: str) -> str:
    value = env.get(key) or default
    if not Web3.is_address(value):
        raise ValueError(f"{key} is not a valid address: {value!r}")
    return Web3.to_checksum_address(value)


def _integer(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(key)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {value!r}") from exc


def _token_amount(env: Mapping[str, str], key: str) -> int:
    """Parse a whole-token amount such as ``"1.5"`` into 18-decimal base units."""

    value = env.get(key)
    if value in (None, ""):
        return 0
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"{key} must be a decimal token amount, got {value!r}") from exc
    if amount < 0:
        raise ValueError(f"{key} must be non-negative.")
    return Web3.to_wei(amount, "ether")


def load_settings(env: Optional[Mapping[str, str]] = None) -> CurveSettings:
    """Build :class:`CurveSettings` from ``env``.

    Parameters
    ----------
    env:
        Mapping used to resolve the ``CURVE_*`` variables. When omitted the
        process environment is used after ``.env`` has been loaded.

    Raises
    ------
    ValueError
        If an address or number cannot be parsed.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    return CurveSettings(
        charity=_address(env, "CURVE_CHARITY_ADDRESS", DEFAULT_CHARITY),
        operator=_address(env, "CURVE_OPERATOR_ADDRESS", DEFAULT_OPERATOR),
        vesting_amount_per_user=_token_amount(env, "CURVE_VESTING_AMOUNT"),
        chain_id=_integer(env, "CURVE_CHAIN_ID", DEFAULT_CHAIN_ID),
        tier_a_multiplier=_integer(env, "CURVE_TIER_A_MULTIPLIER", 2),
        tier_b_multiplier=_integer(env, "CURVE_TIER_B_MULTIPLIER", 5),
        drand_url=(env.get("DRAND_API_URL") or DEFAULT_DRAND_URL).rstrip("/"),
    )


__all__ = [
    "CurveSettings",
    "DEFAULT_CHARITY",
    "DEFAULT_DRAND_URL",
    "DEFAULT_OPERATOR",
    "load_settings",
]
