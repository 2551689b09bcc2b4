"""
Exception hierarchy shared by the deriver, codec, validator and network layers.

Decode errors are "this account is not the shape we expected" signals and are
returned as values by `intentfi.accounts.decode_account`; everything else is
raised to the caller with its specific sub-kind.
"""

from __future__ import annotations

from typing import Optional


class IntentFiError(Exception):
    pass


# ---- derivation ----


class DerivationError(IntentFiError):
    pass


class InvalidSeedsError(DerivationError):
    pass


class NoValidBumpError(DerivationError):
    """No bump in [0, 255] produced an off-curve address."""


# ---- encoding ----


class SerializationError(IntentFiError):
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class UnknownInstructionError(SerializationError):
    pass


# ---- decoding ----


class DecodeError(IntentFiError):
    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.offset = offset


class TruncatedDataError(DecodeError):
    def __init__(self, offset: int, width: int, length: int) -> None:
        super().__init__(
            f"need {width} bytes at offset {offset}, buffer has {length}",
            offset,
        )
        self.width = width
        self.length = length


class InvalidLengthError(DecodeError):
    def __init__(self, offset: int, declared: int, limit: int) -> None:
        super().__init__(
            f"length prefix {declared} at offset {offset} exceeds limit {limit}",
            offset,
        )
        self.declared = declared
        self.limit = limit


class UnknownVariantError(DecodeError):
    pass


class InvalidEncodingError(DecodeError):
    pass


# ---- validation ----


class ValidationError(IntentFiError):
    pass


class InvalidAmountError(ValidationError):
    pass


class BelowMinimumError(ValidationError):
    def __init__(self, contribution: int, minimum: int) -> None:
        super().__init__(f"contribution {contribution} is below the minimum {minimum}")
        self.contribution = contribution
        self.minimum = minimum


class AboveMaximumError(ValidationError):
    def __init__(self, contribution: int, maximum: int) -> None:
        super().__init__(f"contribution {contribution} is above the maximum {maximum}")
        self.contribution = contribution
        self.maximum = maximum


class InsufficientSupplyError(ValidationError):
    def __init__(
        self,
        tokens_requested: int,
        tokens_available: int,
        max_contribution_for_available_tokens: int,
    ) -> None:
        super().__init__(
            f"contribution buys {tokens_requested} tokens but only {tokens_available} remain; "
            f"contribute at most {max_contribution_for_available_tokens}"
        )
        self.tokens_requested = tokens_requested
        self.tokens_available = tokens_available
        self.max_contribution_for_available_tokens = max_contribution_for_available_tokens


class LaunchNotActiveError(ValidationError):
    pass


class LaunchNotStartedError(ValidationError):
    pass


class LaunchEndedError(ValidationError):
    pass


class HardCapReachedError(ValidationError):
    pass


class SlippageTooHighError(ValidationError):
    pass


class InvalidApyError(ValidationError):
    pass


# ---- network ----


class NetworkError(IntentFiError):
    def __init__(self, message: str, method: Optional[str] = None) -> None:
        super().__init__(message)
        self.method = method


class RpcResponseError(NetworkError):
    def __init__(self, message: str, method: Optional[str] = None, code: Optional[int] = None) -> None:
        super().__init__(message, method)
        self.code = code


__all__ = [
    "IntentFiError",
    "DerivationError",
    "InvalidSeedsError",
    "NoValidBumpError",
    "SerializationError",
    "UnknownInstructionError",
    "DecodeError",
    "TruncatedDataError",
    "InvalidLengthError",
    "UnknownVariantError",
    "InvalidEncodingError",
    "ValidationError",
    "InvalidAmountError",
    "BelowMinimumError",
    "AboveMaximumError",
    "InsufficientSupplyError",
    "LaunchNotActiveError",
    "LaunchNotStartedError",
    "LaunchEndedError",
    "HardCapReachedError",
    "SlippageTooHighError",
    "InvalidApyError",
    "NetworkError",
    "RpcResponseError",
]
