"""Exception hierarchy raised by the curve controller and its collaborators."""
from __future__ import annotations


class CurveError(RuntimeError):
    """Base class for every rejection surfaced by the game."""


class ValidationError(CurveError):
    """The call was malformed or made by the wrong account."""


class InsufficientPaymentError(ValidationError):
    pass


class InsufficientBalanceError(ValidationError):
    pass


class UnauthorizedError(ValidationError):
    """Caller does not hold the role required by the entry point."""


class NotOperatorError(UnauthorizedError):
    pass


class NotItemOwnerError(UnauthorizedError):
    pass


class MultiplierOutOfRangeError(ValidationError, ValueError):
    pass


class RegistryNotInitialisedError(ValidationError):
    pass


class UnknownItemError(ValidationError):
    pass


class VestingError(ValidationError):
    pass


class ProtocolIntegrityError(CurveError):
    """A randomness reveal does not match an open request."""


class MalformedRevealError(ProtocolIntegrityError):
    pass


class RequestNotPendingError(ProtocolIntegrityError):
    pass


class HashMismatchError(ProtocolIntegrityError):
    pass


class InvalidRandomnessError(ProtocolIntegrityError):
    """The operator's randomness is not an unsigned 256-bit value."""


class EconomicSafetyError(CurveError):
    """The payout would leave the game unable to honour its curve."""


class AntiDrainError(EconomicSafetyError):
    pass


class InsufficientReserveError(EconomicSafetyError):
    pass


class ReentrancyError(CurveError):
    pass


__all__ = [
    "AntiDrainError",
    "CurveError",
    "EconomicSafetyError",
    "HashMismatchError",
    "InsufficientBalanceError",
    "InsufficientPaymentError",
    "InsufficientReserveError",
    "InvalidRandomnessError",
    "MalformedRevealError",
    "MultiplierOutOfRangeError",
    "NotItemOwnerError",
    "NotOperatorError",
    "ProtocolIntegrityError",
    "ReentrancyError",
    "RegistryNotInitialisedError",
    "RequestNotPendingError",
    "UnauthorizedError",
    "UnknownItemError",
    "ValidationError",
    "VestingError",
]
