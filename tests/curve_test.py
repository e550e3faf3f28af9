import logging

import pytest
from web3 import Web3

from freedom_curve import rarity
from freedom_curve.controller import Curve
from freedom_curve.errors import (
    AntiDrainError,
    HashMismatchError,
    InsufficientBalanceError,
    InsufficientPaymentError,
    InsufficientReserveError,
    InvalidRandomnessError,
    MalformedRevealError,
    MultiplierOutOfRangeError,
    NotItemOwnerError,
    NotOperatorError,
    ReentrancyError,
    RegistryNotInitialisedError,
    RequestNotPendingError,
    UnauthorizedError,
    ValidationError,
    VestingError,
)
from freedom_curve.events import (
    Burned,
    Lottery,
    Minted,
    OwnershipTransferred,
    PrizeMultipliersUpdated,
    RequestedRandomness,
    VestingFunded,
    VestingTokensRecovered,
)
from freedom_curve.pricing import charity_cut, price_to_burn, price_to_mint
from freedom_curve.randomness import encode_payload, encode_reveal
from freedom_curve.rarity import Tier, derive_item_id
from freedom_curve.registry import VESTING_DURATION_SECS, ItemRegistry
from freedom_curve.reserve import PrizeConfig
from helpers import (
    FAKE_RANDOMNESS,
    STARTING_BALANCE,
    VESTING_AMOUNT_PER_USER,
    find_randomness,
    mint_and_fulfill,
    mint_many,
    reveal_for,
)


def _fund_curve_with_tokens(game, owner, amount=Web3.to_wei(5, "ether")):
    game.token.transfer(owner, game.curve.address, amount)


def test_mint_then_fulfill_creates_one_item(game, accounts, caplog):
    caplog.set_level(logging.INFO, logger="freedom_curve.controller")
    curve = game.curve
    value = curve.price_to_mint() * 110 // 100

    request_id = curve.mint(accounts.user, value)

    assert request_id == 0
    assert curve.request_pending(0)
    (event,) = game.chain.events(RequestedRandomness)
    assert (event.request_id, event.round) == (0, curve.request(0).round)

    item_id = curve.fulfill_randomness(accounts.operator, FAKE_RANDOMNESS, reveal_for(curve, 0))

    assert item_id == derive_item_id(FAKE_RANDOMNESS, curve.address, game.chain.chain_id, 0)
    assert not curve.request_pending(0)
    assert curve.item_count == 1
    assert game.registry.owner_of(item_id) == accounts.user
    assert game.registry.total_supply() == 1
    assert game.chain.events(Minted) == [Minted(item_id=item_id, owner=accounts.user, request_id=0)]
    assert "Request 0 opened" in caplog.text


def test_mint_requires_the_current_price(game, accounts):
    curve = game.curve
    with pytest.raises(InsufficientPaymentError, match="Not enough ETH sent"):
        curve.mint(accounts.user, curve.price_to_mint() - 1)

    assert game.chain.balance_of(accounts.user) == STARTING_BALANCE
    assert curve.request(0) is None
    assert game.chain.events(RequestedRandomness) == []


def test_mint_refunds_excess_payment(game, accounts):
    curve = game.curve
    price = curve.price_to_mint()
    curve.mint(accounts.user, price * 3)

    assert game.chain.balance_of(accounts.user) == STARTING_BALANCE - price
    assert curve.balance() == curve.reserve == price - charity_cut(price)


def test_charity_receives_its_cut_of_every_mint(game, accounts):
    curve = game.curve
    mint_many(game, accounts.user, accounts.operator, [Tier.NONE] * 10)

    expected = sum(charity_cut(price_to_mint(count)) for count in range(10))
    assert curve.charity_funds == expected
    assert game.chain.balance_of(accounts.charity) - STARTING_BALANCE == expected
    assert curve.balance() == curve.reserve
    assert curve.price_to_mint() == price_to_mint(10)


def test_only_the_operator_can_fulfill(game, accounts):
    curve = game.curve
    curve.mint(accounts.user, curve.price_to_mint())

    with pytest.raises(NotOperatorError):
        curve.fulfill_randomness(accounts.user, FAKE_RANDOMNESS, reveal_for(curve, 0))
    assert curve.request_pending(0)


def test_hash_mismatch_keeps_the_request_open(game, accounts):
    curve = game.curve
    curve.mint(accounts.user, curve.price_to_mint())
    wrong_round = encode_reveal(curve.request(0).round + 1, encode_payload(0))

    with pytest.raises(HashMismatchError):
        curve.fulfill_randomness(accounts.operator, FAKE_RANDOMNESS, wrong_round)

    assert curve.request_pending(0)
    assert curve.item_count == 0
    curve.fulfill_randomness(accounts.operator, FAKE_RANDOMNESS, reveal_for(curve, 0))
    assert curve.item_count == 1


def test_request_cannot_be_fulfilled_twice(game, accounts):
    curve = game.curve
    curve.mint(accounts.user, curve.price_to_mint())
    reveal = reveal_for(curve, 0)
    curve.fulfill_randomness(accounts.operator, FAKE_RANDOMNESS, reveal)

    with pytest.raises(RequestNotPendingError):
        curve.fulfill_randomness(accounts.operator, FAKE_RANDOMNESS, reveal)
    assert curve.item_count == 1


def test_request_view_cannot_rewrite_the_commitment(game, accounts):
    curve = game.curve
    curve.mint(accounts.user, curve.price_to_mint())
    committed = curve.requested_hash(0)

    view = curve.request(0)
    view.committed_hash = b"\x11" * 32
    view.pending = False

    assert curve.requested_hash(0) == committed
    assert curve.request_pending(0)


@pytest.mark.parametrize("randomness", [2**256, -1, None, "0xzz"])
def test_randomness_outside_uint256_is_rejected(game, accounts, randomness):
    curve = game.curve
    curve.mint(accounts.user, curve.price_to_mint())

    with pytest.raises(InvalidRandomnessError):
        curve.fulfill_randomness(accounts.operator, randomness, reveal_for(curve, 0))
    assert curve.request_pending(0)
    assert curve.item_count == 0


def test_malformed_reveal_is_rejected(game, accounts):
    curve = game.curve
    curve.mint(accounts.user, curve.price_to_mint())

    with pytest.raises(MalformedRevealError):
        curve.fulfill_randomness(accounts.operator, FAKE_RANDOMNESS, b"\x01\x02\x03")
    assert curve.request_pending(0)


def test_only_the_holder_can_burn(game, accounts):
    curve = game.curve
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)

    with pytest.raises(NotItemOwnerError, match="Not the correct owner"):
        curve.burn(accounts.other, item_id)

    assert curve.item_count == 1
    assert game.registry.owner_of(item_id) == accounts.user


def test_transferred_item_is_burned_by_its_new_holder(game, accounts):
    curve = game.curve
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)
    game.registry.transfer(accounts.user, accounts.other, item_id)

    with pytest.raises(NotItemOwnerError):
        curve.burn(accounts.user, item_id)
    assert curve.burn(accounts.other, item_id) == 0
    assert not game.registry.exists(item_id)


def test_plain_burn_pays_nothing_and_lowers_the_count(game, accounts):
    curve = game.curve
    first, second = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.NONE])
    reserve = curve.reserve

    assert curve.burn(accounts.user, first) == 0
    assert curve.item_count == 1
    assert curve.reserve == reserve
    assert game.chain.events(Burned) == [Burned(item_id=first, price_received=0)]
    assert game.registry.exists(second)


def test_five_of_a_kind_is_blocked_until_three_items_exist(game, accounts):
    curve = game.curve
    _, five = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.FIVE_OF_A_KIND])

    with pytest.raises(AntiDrainError):
        curve.burn(accounts.user, five)
    assert curve.item_count == 2
    assert game.registry.exists(five)

    mint_and_fulfill(game, accounts.user, accounts.operator)
    before = game.chain.balance_of(accounts.user)
    reward = curve.burn(accounts.user, five)

    assert reward == 2 * price_to_mint(3)
    assert game.chain.balance_of(accounts.user) == before + reward
    assert curve.item_count == 2
    assert curve.balance() == curve.reserve


def test_four_of_a_kind_pays_tier_a_multiple(game, accounts):
    curve = game.curve
    *_, four = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.NONE, Tier.FOUR_OF_A_KIND])
    reserve = curve.reserve

    reward = curve.burn(accounts.user, four)

    assert reward == curve.tier_a_multiplier * price_to_burn(3)
    assert curve.reserve == reserve - reward


def test_reward_larger_than_reserve_is_rejected(game, accounts):
    curve = game.curve
    _, four = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.FOUR_OF_A_KIND])
    reserve = curve.reserve

    with pytest.raises(InsufficientReserveError):
        curve.burn(accounts.user, four)
    assert curve.reserve == reserve
    assert curve.item_count == 2


def test_fixed_pattern_pays_tier_b_multiple(game, accounts, monkeypatch):
    curve = game.curve
    items = mint_many(game, accounts.user, accounts.operator, [Tier.NONE] * 8)
    target = items[-1]
    classify = rarity.classify
    monkeypatch.setattr(
        rarity,
        "classify",
        lambda item_id: Tier.FIXED_PATTERN if item_id == target else classify(item_id),
    )

    reward = curve.burn(accounts.user, target)

    assert reward == 5 * price_to_burn(8)
    assert curve.item_count == 7


def test_highest_tier_burn_wins_the_lottery(game, accounts):
    curve = game.curve
    *_, winner = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.NONE, Tier.HIGHEST])
    assert curve.highest_tier_item_count == 1
    jackpot = curve.balance()
    before = game.chain.balance_of(accounts.user)

    reward = curve.burn(accounts.user, winner)

    assert reward == jackpot
    assert game.chain.balance_of(accounts.user) == before + jackpot
    assert curve.balance() == 0
    assert (curve.reserve, curve.item_count, curve.highest_tier_item_count) == (0, 0, 0)
    assert curve.epoch == 1
    assert game.chain.events(Lottery) == [Lottery(is_winner=True)]
    assert curve.price_to_mint() == price_to_mint(0)


def test_items_from_a_previous_epoch_are_retired(game, accounts):
    curve = game.curve
    five, _, _, winner = mint_many(
        game,
        accounts.user,
        accounts.operator,
        [Tier.FIVE_OF_A_KIND, Tier.NONE, Tier.NONE, Tier.HIGHEST],
    )
    assert curve.tier_of(five) is Tier.FIVE_OF_A_KIND
    curve.burn(accounts.user, winner)
    assert curve.tier_of(five) is Tier.NONE

    fresh = mint_and_fulfill(game, accounts.user, accounts.operator)
    assert curve.burn(accounts.user, five) == 0
    assert curve.item_count == 1
    assert game.registry.exists(fresh)
    assert not game.registry.exists(five)


def test_requests_fulfilled_after_the_lottery_mint_retired_items(game, accounts):
    curve = game.curve
    *_, winner = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.NONE, Tier.HIGHEST])
    late = [curve.mint(accounts.user, curve.price_to_mint()) for _ in range(3)]
    curve.burn(accounts.user, winner)
    assert (curve.epoch, curve.reserve, curve.balance()) == (1, 0, 0)

    items = []
    for request_id, tier in zip(late, [Tier.NONE, Tier.NONE, Tier.FIVE_OF_A_KIND]):
        randomness = find_randomness(curve, request_id, lambda item_id, tier=tier: rarity.classify(item_id) is tier)
        items.append(curve.fulfill_randomness(accounts.operator, randomness, reveal_for(curve, request_id)))
    five = items[-1]

    assert curve.request(late[0]).epoch == 0
    assert (curve.item_count, curve.highest_tier_item_count) == (0, 0)
    assert curve.tier_of(five) is Tier.NONE
    assert game.registry.owner_of(five) == accounts.user
    assert curve.price_to_mint() == price_to_mint(0)

    assert curve.burn(accounts.user, five) == 0
    assert (curve.item_count, curve.reserve) == (0, 0)

    *_, fresh_five = mint_many(game, accounts.user, accounts.operator, [Tier.NONE, Tier.NONE, Tier.FIVE_OF_A_KIND])
    assert curve.request(8).epoch == 1
    assert curve.burn(accounts.user, fresh_five) == 2 * price_to_mint(3)


@pytest.mark.parametrize(
    "tier_a, tier_b, message",
    [
        (1, 10, "Four-of-a-kind multiplier"),
        (9, 10, "Four-of-a-kind multiplier"),
        (3, 4, "Pattern multiplier"),
        (3, 41, "Pattern multiplier"),
    ],
)
def test_prize_multipliers_must_stay_in_range(game, accounts, tier_a, tier_b, message):
    with pytest.raises(MultiplierOutOfRangeError, match=message):
        game.curve.set_prize_multipliers(accounts.owner, tier_a, tier_b)
    assert (game.curve.tier_a_multiplier, game.curve.tier_b_multiplier) == (2, 5)


@pytest.mark.parametrize("tier_a, tier_b", [(2, 5), (8, 40), (4, 12)])
def test_prize_multipliers_accept_boundaries(game, accounts, tier_a, tier_b):
    game.curve.set_prize_multipliers(accounts.owner, tier_a, tier_b)
    assert (game.curve.tier_a_multiplier, game.curve.tier_b_multiplier) == (tier_a, tier_b)
    assert game.chain.events(PrizeMultipliersUpdated)[-1] == PrizeMultipliersUpdated(tier_a, tier_b)


def test_admin_calls_are_owner_only(game, accounts):
    curve = game.curve
    with pytest.raises(UnauthorizedError, match="caller is not the owner"):
        curve.set_prize_multipliers(accounts.user, 3, 6)
    with pytest.raises(UnauthorizedError):
        curve.set_vesting_distribution_amount(accounts.user, 0)
    with pytest.raises(UnauthorizedError):
        curve.recover_vesting_tokens(accounts.user, 1)
    with pytest.raises(UnauthorizedError):
        curve.transfer_ownership(accounts.user, accounts.user)
    with pytest.raises(UnauthorizedError):
        curve.init_registry(accounts.user, game.registry.address)


def test_ownership_can_be_handed_over(game, accounts):
    curve = game.curve
    curve.transfer_ownership(accounts.owner, accounts.other)

    assert curve.owner == accounts.other
    assert game.chain.events(OwnershipTransferred) == [OwnershipTransferred(accounts.owner, accounts.other)]
    with pytest.raises(UnauthorizedError):
        curve.set_vesting_distribution_amount(accounts.owner, 0)
    curve.set_vesting_distribution_amount(accounts.other, 0)
    assert curve.vesting_amount_per_user == 0


def test_recover_vesting_tokens_returns_them_to_the_owner(game, accounts):
    token = game.token
    _fund_curve_with_tokens(game, accounts.owner, Web3.to_wei(10, "ether"))
    owner_balance = token.balance_of(accounts.owner)

    game.curve.recover_vesting_tokens(accounts.owner, Web3.to_wei(4, "ether"))

    assert token.balance_of(game.curve.address) == Web3.to_wei(6, "ether")
    assert token.balance_of(accounts.owner) == owner_balance + Web3.to_wei(4, "ether")
    assert game.chain.events(VestingTokensRecovered) == [VestingTokensRecovered(Web3.to_wei(4, "ether"))]

    with pytest.raises(InsufficientBalanceError):
        game.curve.recover_vesting_tokens(accounts.owner, Web3.to_wei(7, "ether"))
    assert len(game.chain.events(VestingTokensRecovered)) == 1


def test_minting_funds_vesting_when_the_curve_holds_tokens(game, accounts):
    _fund_curve_with_tokens(game, accounts.owner)
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)

    record = game.registry.vesting_info(item_id)
    assert record.amount == VESTING_AMOUNT_PER_USER
    assert record.token == game.token.address
    assert game.token.balance_of(game.registry.address) == VESTING_AMOUNT_PER_USER
    assert game.chain.events(VestingFunded) == [VestingFunded(item_id, VESTING_AMOUNT_PER_USER)]


def test_vested_tokens_unlock_after_the_full_period(game, accounts):
    _fund_curve_with_tokens(game, accounts.owner)
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)
    registry = game.registry

    game.chain.advance(VESTING_DURATION_SECS // 2)
    assert registry.releasable(item_id) == VESTING_AMOUNT_PER_USER // 2
    with pytest.raises(VestingError, match="Vesting period must pass"):
        registry.claim_vested_tokens(accounts.user, item_id)

    game.chain.advance(VESTING_DURATION_SECS)
    with pytest.raises(NotItemOwnerError):
        registry.claim_vested_tokens(accounts.other, item_id)
    assert registry.claim_vested_tokens(accounts.user, item_id) == VESTING_AMOUNT_PER_USER
    assert game.token.balance_of(accounts.user) == VESTING_AMOUNT_PER_USER

    with pytest.raises(VestingError, match="Your vesting amount is 0"):
        registry.claim_vested_tokens(accounts.user, item_id)


def test_burner_keeps_the_vesting_claim(game, accounts):
    _fund_curve_with_tokens(game, accounts.owner)
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)
    game.curve.burn(accounts.user, item_id)

    assert game.registry.beneficiary_of(item_id) == accounts.user
    game.chain.advance(VESTING_DURATION_SECS)
    assert game.registry.claim_vested_tokens(accounts.user, item_id) == VESTING_AMOUNT_PER_USER


def test_zero_vesting_amount_skips_funding(game, accounts):
    _fund_curve_with_tokens(game, accounts.owner)
    game.curve.set_vesting_distribution_amount(accounts.owner, 0)
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)

    assert game.registry.vesting_info(item_id) is None
    assert game.chain.events(VestingFunded) == []
    game.chain.advance(VESTING_DURATION_SECS)
    with pytest.raises(VestingError, match="Your vesting amount is 0"):
        game.registry.claim_vested_tokens(accounts.user, item_id)


def test_minting_without_token_balance_skips_vesting(game, accounts):
    item_id = mint_and_fulfill(game, accounts.user, accounts.operator)
    assert game.registry.vesting_info(item_id) is None
    assert game.curve.item_count == 1


def test_reentrant_mint_from_refund_is_rejected(game, accounts):
    curve = game.curve
    price = curve.price_to_mint()
    game.chain.on_receive(accounts.user, lambda sender, amount: curve.mint(accounts.user, price))

    with pytest.raises(ReentrancyError):
        curve.mint(accounts.user, price * 2)

    assert game.chain.balance_of(accounts.user) == STARTING_BALANCE
    assert curve.request(0) is None
    assert curve.charity_funds == 0


def test_reentrant_burn_from_payout_is_rejected(game, accounts):
    curve = game.curve
    first, _, four = mint_many(
        game,
        accounts.user,
        accounts.operator,
        [Tier.NONE, Tier.NONE, Tier.FOUR_OF_A_KIND],
    )
    attempts = []

    def reenter(sender, amount):
        attempts.append(amount)
        with pytest.raises(ReentrancyError):
            curve.burn(accounts.user, first)

    game.chain.on_receive(accounts.user, reenter)
    reward = curve.burn(accounts.user, four)

    assert attempts == [reward]
    assert game.registry.exists(first)
    assert curve.item_count == 2


def test_failed_charity_payment_reverts_the_mint(game, accounts):
    curve = game.curve

    def reject(sender, amount):
        raise RuntimeError("charity offline")

    game.chain.on_receive(accounts.charity, reject)
    with pytest.raises(RuntimeError, match="charity offline"):
        curve.mint(accounts.user, curve.price_to_mint())

    assert game.chain.balance_of(accounts.user) == STARTING_BALANCE
    assert curve.balance() == 0
    assert curve.reserve == 0
    assert not curve.request_pending(0)
    assert game.chain.events(RequestedRandomness) == []

    game.chain.on_receive(accounts.charity, None)
    assert curve.mint(accounts.user, curve.price_to_mint()) == 0


def test_mint_requires_an_initialised_registry(chain, accounts):
    curve = chain.deploy(Curve(accounts.owner, accounts.charity, accounts.operator), accounts.owner)
    with pytest.raises(RegistryNotInitialisedError):
        curve.mint(accounts.user, curve.price_to_mint())
    assert chain.balance_of(accounts.user) == STARTING_BALANCE


def test_registry_is_initialised_once(game, accounts):
    with pytest.raises(ValidationError, match="already initialised"):
        game.curve.init_registry(accounts.owner, game.registry.address)


def test_registry_must_belong_to_the_controller(chain, accounts):
    curve = chain.deploy(Curve(accounts.owner, accounts.charity, accounts.operator), accounts.owner)
    foreign = chain.deploy(ItemRegistry("Other", "OTH", accounts.other), accounts.owner)

    with pytest.raises(ValidationError, match="not bound"):
        curve.init_registry(accounts.owner, foreign.address)


def test_invalid_constructor_multipliers_are_rejected(accounts):
    with pytest.raises(MultiplierOutOfRangeError):
        Curve(accounts.owner, accounts.charity, accounts.operator, prizes=PrizeConfig(1, 5))
