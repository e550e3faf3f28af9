#!/usr/bin/env python3
"""Play a local curve game: mint items, fulfil them with seeded or drand randomness, optionally burn."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from eth_account import Account
from eth_utils import keccak
from web3 import Web3

from freedom_curve.config import CurveSettings, load_settings
from freedom_curve.deploy import deploy_game, local_chain
from freedom_curve.drand import DeterministicRandomness, DrandClient
from freedom_curve.errors import CurveError
from freedom_curve.operator_service import RandomnessOperator, RandomnessSource
from freedom_curve.pricing import price_to_mint
from freedom_curve.randomness import DRAND_PERIOD
from freedom_curve.rarity import classify

PLAYER_FUNDING = Web3.to_wei(1_000, "ether")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate mints and burns against a freshly deployed curve game.",
    )
    parser.add_argument("--mints", type=int, default=10, help="Number of items to mint (default: 10)")
    parser.add_argument("--players", type=int, default=3, help="Number of minting accounts (default: 3)")
    parser.add_argument("--seed", default="freedom", help="Seed for the deterministic randomness source")
    parser.add_argument(
        "--source",
        choices=("seed", "drand"),
        default="seed",
        help="Randomness source: the local seed, or the drand beacon at DRAND_API_URL (default: seed)",
    )
    parser.add_argument(
        "--vesting-supply",
        type=int,
        default=0,
        help="Whole vesting tokens handed to the curve before minting starts.",
    )
    parser.add_argument("--burn", action="store_true", help="Burn every item once minting is done.")
    parser.add_argument("--json", action="store_true", help="Emit the summary as JSON for downstream scripting.")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging verbosity (DEBUG, INFO, WARNING)",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def _players(count: int) -> List[str]:
    return [Account.from_key(keccak(text=f"player-{index}")).address for index in range(count)]


def _randomness_source(source: str, settings: CurveSettings, seed: str) -> RandomnessSource:
    if source == "drand":
        return DrandClient(base_url=settings.drand_url)
    return DeterministicRandomness(keccak(text=seed))


def simulate(
    mints: int,
    players: int,
    seed: str,
    *,
    vesting_supply: int = 0,
    burn: bool = False,
    source: str = "seed",
    settings: Optional[CurveSettings] = None,
) -> Dict[str, Any]:
    owner = Account.from_key(keccak(text="owner")).address
    if settings is None:
        settings = load_settings({})
    if vesting_supply:
        settings = replace(settings, vesting_amount_per_user=Web3.to_wei(1, "ether"))

    chain = local_chain(settings)
    game = deploy_game(chain, owner, settings, token_supply=Web3.to_wei(vesting_supply, "ether"))
    if vesting_supply:
        game.token.transfer(owner, game.curve.address, Web3.to_wei(vesting_supply, "ether"))

    accounts = _players(players)
    for account in accounts:
        chain.fund(account, PLAYER_FUNDING)

    operator = RandomnessOperator(game.curve, settings.operator, _randomness_source(source, settings, seed))
    minted: List[int] = []
    for index in range(mints):
        player = accounts[index % len(accounts)]
        game.curve.mint(player, price_to_mint(game.curve.item_count))
        chain.advance(DRAND_PERIOD)
        minted.extend(operator.fulfill_pending())

    tiers = Counter(classify(item_id).value for item_id in minted)
    paid_out = 0
    rejected = 0
    if burn:
        for item_id in minted:
            if not game.registry.exists(item_id):
                continue
            holder = game.registry.owner_of(item_id)
            try:
                paid_out += game.curve.burn(holder, item_id)
            except CurveError as exc:
                logging.warning("Burn of item %s rejected: %s", item_id, exc)
                rejected += 1

    return {
        "curve": game.curve.address,
        "minted": len(minted),
        "tiers": dict(tiers),
        "item_count": game.curve.item_count,
        "highest_tier_item_count": game.curve.highest_tier_item_count,
        "epoch": game.curve.epoch,
        "reserve_wei": game.curve.reserve,
        "charity_funds_wei": game.curve.charity_funds,
        "next_mint_price_wei": game.curve.price_to_mint(),
        "burn_paid_out_wei": paid_out,
        "burns_rejected": rejected,
    }


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.mints < 0 or args.players < 1:
        parser.error("--mints must be >= 0 and --players must be >= 1")
        return 2
    configure_logging(args.log_level)
    # Seeded runs ignore the environment.
    settings = load_settings() if args.source == "drand" else None

    summary = simulate(
        args.mints,
        args.players,
        args.seed,
        vesting_supply=args.vesting_supply,
        burn=args.burn,
        source=args.source,
        settings=settings,
    )

    if args.json:
        json.dump(summary, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(f"Minted {summary['minted']} items on curve {summary['curve']}.")
        print(f"Tiers: {summary['tiers']}")
        print(f"Reserve: {Web3.from_wei(summary['reserve_wei'], 'ether')} ETH")
        print(f"Charity funds: {Web3.from_wei(summary['charity_funds_wei'], 'ether')} ETH")
        print(f"Next mint price: {Web3.from_wei(summary['next_mint_price_wei'], 'ether')} ETH")
        if args.burn:
            print(
                f"Burned for {Web3.from_wei(summary['burn_paid_out_wei'], 'ether')} ETH, "
                f"{summary['burns_rejected']} burns rejected."
            )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
