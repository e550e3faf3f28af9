"""Game controller: mint requests, randomness fulfilment, burns and admin calls.

The controller is the only component with side effects. Each state-mutating
entry point runs inside :meth:`Chain.transaction` behind a reentrancy guard, so
a rejected call leaves no trace and a payment recipient cannot call back into
``mint``, ``fulfill_randomness`` or ``burn`` while one of them is running.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from . import pricing, rarity
from .chain import Contract, normalise_address
from .errors import (
    InsufficientPaymentError,
    InvalidRandomnessError,
    MultiplierOutOfRangeError,
    NotItemOwnerError,
    NotOperatorError,
    ReentrancyError,
    RegistryNotInitialisedError,
    UnauthorizedError,
    ValidationError,
)
from .events import (
    Burned,
    Lottery,
    Minted,
    OwnershipTransferred,
    PrizeMultipliersUpdated,
    RequestedRandomness,
    VestingDistributionAmountUpdated,
    VestingFunded,
    VestingTokensRecovered,
)
from .randomness import MintRequest, RequestLedger
from .rarity import Tier
from .registry import ItemRegistry
from .reserve import (
    PrizeConfig,
    ReserveState,
    compute_reward,
    record_burn,
    record_item_minted,
    record_mint_payment,
)
from .token import VestingToken

_LOGGER = logging.getLogger(__name__)

TIER_A_RANGE = (2, 8)
TIER_B_RANGE = (5, 40)

F = TypeVar("F", bound=Callable[..., Any])


def non_reentrant(method: F) -> F:
    @functools.wraps(method)
    def wrapper(self: "Curve", *args: Any, **kwargs: Any) -> Any:
        if self._entered:
            raise ReentrancyError("ReentrancyGuard: reentrant call")
        self._entered = True
        try:
            with self.chain.transaction():
                self._touch()
                return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper  # type: ignore[return-value]


def validate_prize_multipliers(tier_a: int, tier_b: int) -> None:
    low, high = TIER_A_RANGE
    if not low <= tier_a <= high:
        raise MultiplierOutOfRangeError(f"Curve: Four-of-a-kind multiplier must be between {low} and {high}")
    low, high = TIER_B_RANGE
    if not low <= tier_b <= high:
        raise MultiplierOutOfRangeError(f"Curve: Pattern multiplier must be between {low} and {high}")


@dataclass
class CurveState:
    owner: str
    charity: str
    operator: str
    vesting_token: Optional[str]
    vesting_amount_per_user: int
    registry: Optional[str] = None
    reserve: ReserveState = field(default_factory=ReserveState)
    prizes: PrizeConfig = field(default_factory=PrizeConfig)
    requests: RequestLedger = field(default_factory=RequestLedger)
    item_epochs: Dict[int, int] = field(default_factory=dict)


class Curve(Contract):
    def __init__(
        self,
        owner: str,
        charity: str,
        operator: str,
        vesting_token: Optional[str] = None,
        vesting_amount_per_user: int = 0,
        prizes: Optional[PrizeConfig] = None,
    ) -> None:
        super().__init__()
        if vesting_amount_per_user < 0:
            raise ValueError("Vesting amount per user must be non-negative.")
        prizes = prizes or PrizeConfig()
        validate_prize_multipliers(prizes.tier_a_multiplier, prizes.tier_b_multiplier)
        self.state = CurveState(
            owner=normalise_address(owner),
            charity=normalise_address(charity),
            operator=normalise_address(operator),
            vesting_token=normalise_address(vesting_token) if vesting_token else None,
            vesting_amount_per_user=vesting_amount_per_user,
            prizes=prizes,
        )
        self._entered = False

    # -- guards ----------------------------------------------------------

    def _only_owner(self, caller: str) -> None:
        if normalise_address(caller) != self.state.owner:
            raise UnauthorizedError("Ownable: caller is not the owner")

    def _registry(self) -> ItemRegistry:
        if self.state.registry is None:
            raise RegistryNotInitialisedError("Curve: item registry not initialised")
        return self.chain.contract_at(self.state.registry)  # type: ignore[return-value]

    def _vesting_token(self) -> Optional[VestingToken]:
        if self.state.vesting_token is None:
            return None
        return self.chain.contract_at(self.state.vesting_token)  # type: ignore[return-value]

    # -- views -----------------------------------------------------------

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def charity(self) -> str:
        return self.state.charity

    @property
    def operator(self) -> str:
        return self.state.operator

    @property
    def reserve(self) -> int:
        return self.state.reserve.reserve_balance

    @property
    def charity_funds(self) -> int:
        return self.state.reserve.charity_funds_cumulative

    @property
    def item_count(self) -> int:
        return self.state.reserve.item_count

    @property
    def highest_tier_item_count(self) -> int:
        return self.state.reserve.highest_tier_item_count

    @property
    def epoch(self) -> int:
        return self.state.reserve.epoch

    @property
    def tier_a_multiplier(self) -> int:
        return self.state.prizes.tier_a_multiplier

    @property
    def tier_b_multiplier(self) -> int:
        return self.state.prizes.tier_b_multiplier

    @property
    def vesting_amount_per_user(self) -> int:
        return self.state.vesting_amount_per_user

    def balance(self) -> int:
        return self.chain.balance_of(self.address)

    def price_to_mint(self) -> int:
        return pricing.price_to_mint(self.item_count)

    def price_to_burn(self) -> int:
        return pricing.price_to_burn(self.item_count)

    def request_pending(self, request_id: int) -> bool:
        return self.state.requests.is_pending(request_id)

    def requested_hash(self, request_id: int) -> bytes:
        return self.state.requests.committed_hash(request_id)

    def request(self, request_id: int) -> Optional[MintRequest]:
        """Copy of the stored request, so callers cannot rewrite its commitment."""

        request = self.state.requests.requests.get(request_id)
        return replace(request) if request is not None else None

    def is_highest_tier(self, item_id: int) -> bool:
        return rarity.is_highest_tier(item_id)

    def has_four_of_a_kind(self, item_id: int) -> bool:
        return rarity.has_four_of_a_kind(item_id)

    def has_five_of_a_kind(self, item_id: int) -> bool:
        return rarity.has_five_of_a_kind(item_id)

    def matches_fixed_pattern(self, item_id: int) -> bool:
        return rarity.matches_fixed_pattern(item_id)

    def tier_of(self, item_id: int) -> Tier:
        """Tier the item would be paid as if burned now; retired items rank as ``NONE``."""

        if self.state.item_epochs.get(item_id) != self.epoch:
            return Tier.NONE
        return rarity.classify(item_id)

    # -- game entry points -----------------------------------------------

    @non_reentrant
    def mint(self, caller: str, value: int) -> int:
        """Pay ``value`` wei for the next item and open a randomness request for it."""

        self._registry()
        caller = normalise_address(caller)
        price = self.price_to_mint()
        if value < price:
            raise InsufficientPaymentError("C: Not enough ETH sent")

        self.chain.transfer(caller, self.address, value)
        charity = record_mint_payment(self.state.reserve, price)
        request, payload = self.state.requests.open(caller, price, self.chain.timestamp, epoch=self.epoch)
        self._emit(RequestedRandomness(request_id=request.request_id, round=request.round, data=payload))

        self.chain.transfer(self.address, self.state.charity, charity)
        if value > price:
            self.chain.transfer(self.address, caller, value - price)

        _LOGGER.info(
            "Request %s opened by %s at price %s wei (charity %s wei)",
            request.request_id,
            caller,
            price,
            charity,
        )
        return request.request_id

    @non_reentrant
    def fulfill_randomness(self, caller: str, randomness: Union[int, bytes, str], data_with_round: bytes) -> int:
        """Close the request named in ``data_with_round`` and mint its item.

        A request opened before the latest lottery paid into a reserve that has
        since been won, so its item is minted retired: it stays out of the live
        counters and burns for nothing.
        """

        if normalise_address(caller) != self.state.operator:
            raise NotOperatorError("Curve: only the randomness operator can fulfill")
        try:
            random_value = rarity.as_uint256(randomness)
        except (TypeError, ValueError) as exc:
            raise InvalidRandomnessError(f"Curve: invalid randomness: {exc}") from exc
        registry = self._registry()
        request = self.state.requests.verify(data_with_round)
        self.state.requests.close(request)

        item_id = rarity.derive_item_id(random_value, self.address, self.chain.chain_id, request.request_id)
        tier = rarity.classify(item_id)
        if request.epoch == self.epoch:
            record_item_minted(self.state.reserve, tier)
            self.state.item_epochs[item_id] = self.epoch
        else:
            _LOGGER.info(
                "Request %s from epoch %s fulfilled after the lottery; item retired",
                request.request_id,
                request.epoch,
            )

        registry.mint(self.address, request.requester, item_id)
        self._emit(Minted(item_id=item_id, owner=request.requester, request_id=request.request_id))
        self._fund_vesting(registry, item_id)

        _LOGGER.info("Request %s fulfilled with item %s (%s)", request.request_id, item_id, tier.value)
        return item_id

    def _fund_vesting(self, registry: ItemRegistry, item_id: int) -> None:
        token = self._vesting_token()
        amount = self.state.vesting_amount_per_user
        if token is None or amount == 0:
            return
        if token.balance_of(self.address) < amount:
            _LOGGER.debug("Item %s minted without vesting: token balance below %s", item_id, amount)
            return
        token.transfer(self.address, registry.address, amount)
        registry.fund_vesting(self.address, item_id, amount, token.address)
        self._emit(VestingFunded(item_id=item_id, amount=amount))

    @non_reentrant
    def burn(self, caller: str, item_id: int) -> int:
        """Destroy ``item_id`` and pay its reward to the owner; returns the wei paid."""

        registry = self._registry()
        caller = normalise_address(caller)
        if registry.owner_of(item_id) != caller:
            raise NotItemOwnerError("Curve: Not the correct owner")

        current = self.state.item_epochs.pop(item_id, None) == self.epoch
        tier = rarity.classify(item_id) if current else Tier.NONE
        if current:
            reward = compute_reward(self.state.reserve, self.state.prizes, tier, self.balance())
            record_burn(self.state.reserve, tier, reward)
        else:
            reward = 0
        registry.burn(self.address, item_id)

        self._emit(Burned(item_id=item_id, price_received=reward))
        if tier is Tier.HIGHEST:
            self._emit(Lottery(is_winner=True))
            _LOGGER.info("Lottery won by %s with item %s: %s wei", caller, item_id, reward)
        else:
            _LOGGER.info("Item %s burned by %s (%s) for %s wei", item_id, caller, tier.value, reward)

        if reward:
            self.chain.transfer(self.address, caller, reward)
        return reward

    # -- admin -----------------------------------------------------------

    def init_registry(self, caller: str, registry: str) -> None:
        self._only_owner(caller)
        if self.state.registry is not None:
            raise ValidationError("Curve: item registry already initialised")
        contract = self.chain.contract_at(registry)
        if not isinstance(contract, ItemRegistry) or contract.controller != self.address:
            raise ValidationError("Curve: registry is not bound to this controller")
        self._touch()
        self.state.registry = contract.address

    def set_prize_multipliers(self, caller: str, tier_a_multiplier: int, tier_b_multiplier: int) -> None:
        self._only_owner(caller)
        validate_prize_multipliers(tier_a_multiplier, tier_b_multiplier)
        self._touch()
        self.state.prizes = PrizeConfig(tier_a_multiplier, tier_b_multiplier)
        self._emit(PrizeMultipliersUpdated(tier_a_multiplier, tier_b_multiplier))

    def set_vesting_distribution_amount(self, caller: str, amount: int) -> None:
        self._only_owner(caller)
        if amount < 0:
            raise ValidationError("Curve: vesting amount must be non-negative")
        self._touch()
        self.state.vesting_amount_per_user = amount
        self._emit(VestingDistributionAmountUpdated(amount))

    def recover_vesting_tokens(self, caller: str, amount: int) -> None:
        """Send held vesting tokens back to the owner; the native reserve is untouched."""

        self._only_owner(caller)
        token = self._vesting_token()
        if token is None:
            raise ValidationError("Curve: no vesting token configured")
        with self.chain.transaction():
            token.transfer(self.address, self.state.owner, amount)
            self._emit(VestingTokensRecovered(amount))

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        self._touch()
        previous = self.state.owner
        self.state.owner = normalise_address(new_owner)
        self._emit(OwnershipTransferred(previous, self.state.owner))


__all__ = [
    "Curve",
    "CurveState",
    "TIER_A_RANGE",
    "TIER_B_RANGE",
    "non_reentrant",
    "validate_prize_multipliers",
]
