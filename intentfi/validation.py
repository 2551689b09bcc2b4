"""
Contribution and fee rules, mirrored from the on-chain integer arithmetic.

Everything here is pure: inputs are decoded account state plus caller
integers, outputs are integers or a raised `ValidationError`.
"""

from __future__ import annotations

from intentfi.accounts import LaunchState, LaunchStatus
from intentfi.errors import (
    AboveMaximumError,
    BelowMinimumError,
    HardCapReachedError,
    InsufficientSupplyError,
    InvalidAmountError,
    InvalidApyError,
    LaunchEndedError,
    LaunchNotActiveError,
    LaunchNotStartedError,
    SlippageTooHighError,
)

LAUNCHPAD_FEE_BPS = 200
INTENT_FEE_BPS = 30
BPS_DENOMINATOR = 10_000
MAX_SLIPPAGE_BPS = 1_000
MAX_APY_BPS = 10_000
DEFAULT_DECIMALS = 9
U64_MAX = 2**64 - 1


def _non_negative(name: str, value: int) -> None:
    if value < 0:
        raise InvalidAmountError(f"{name} must be non-negative, got {value}")


def tokens_to_receive(contribution: int, decimals: int, token_price: int) -> int:
    _non_negative("contribution", contribution)
    if token_price <= 0:
        raise InvalidAmountError(f"token price must be positive, got {token_price}")
    scaled = contribution * 10**decimals
    # the program multiplies in u64 and aborts on overflow
    if 10**decimals > U64_MAX or scaled > U64_MAX:
        raise InvalidAmountError(
            f"contribution {contribution} at {decimals} decimals overflows u64 token math"
        )
    return scaled // token_price


def available_tokens(state: LaunchState) -> int:
    return max(state.tokens_for_sale - state.tokens_sold, 0)


def max_contribution_for_available_tokens(state: LaunchState, decimals: int = DEFAULT_DECIMALS) -> int:
    return available_tokens(state) * state.token_price // 10**decimals


def validate_contribution(state: LaunchState, contribution: int, *, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Check `contribution` against the launch's bounds and remaining supply.

    Rules are applied in order (minimum, maximum, supply) and the first
    violation is raised. Returns the number of token base units the
    contribution buys.
    """
    _non_negative("contribution", contribution)
    if contribution < state.min_contribution:
        raise BelowMinimumError(contribution, state.min_contribution)
    if contribution > state.max_contribution:
        raise AboveMaximumError(contribution, state.max_contribution)
    tokens = tokens_to_receive(contribution, decimals, state.token_price)
    available = available_tokens(state)
    if tokens > available:
        raise InsufficientSupplyError(
            tokens, available, max_contribution_for_available_tokens(state, decimals)
        )
    return tokens


def compute_fee(amount: int, fee_rate_bps: int) -> int:
    _non_negative("amount", amount)
    if not 0 <= fee_rate_bps <= BPS_DENOMINATOR:
        raise InvalidAmountError(f"fee rate {fee_rate_bps} bps is outside 0..{BPS_DENOMINATOR}")
    return amount * fee_rate_bps // BPS_DENOMINATOR


protocol_fee = compute_fee


def check_launch_open(state: LaunchState, contribution: int, now: int) -> None:
    if state.status is not LaunchStatus.ACTIVE:
        raise LaunchNotActiveError(f"launch status is {state.status.name}")
    if now < state.launch_start:
        raise LaunchNotStartedError(f"launch opens at {state.launch_start}, now {now}")
    if now > state.launch_end:
        raise LaunchEndedError(f"launch closed at {state.launch_end}, now {now}")
    if state.total_raised + contribution > state.hard_cap:
        raise HardCapReachedError(
            f"raised {state.total_raised} + {contribution} exceeds hard cap {state.hard_cap}"
        )


def validate_slippage(max_slippage_bps: int) -> int:
    if not 0 <= max_slippage_bps <= MAX_SLIPPAGE_BPS:
        raise SlippageTooHighError(
            f"max slippage {max_slippage_bps} bps is outside 0..{MAX_SLIPPAGE_BPS}"
        )
    return max_slippage_bps


def validate_apy(apy_bps: int) -> int:
    if not 0 <= apy_bps <= MAX_APY_BPS:
        raise InvalidApyError(f"APY {apy_bps} bps is outside 0..{MAX_APY_BPS}")
    return apy_bps


__all__ = [
    "LAUNCHPAD_FEE_BPS",
    "INTENT_FEE_BPS",
    "BPS_DENOMINATOR",
    "MAX_SLIPPAGE_BPS",
    "MAX_APY_BPS",
    "DEFAULT_DECIMALS",
    "U64_MAX",
    "tokens_to_receive",
    "available_tokens",
    "max_contribution_for_available_tokens",
    "validate_contribution",
    "compute_fee",
    "protocol_fee",
    "check_launch_open",
    "validate_slippage",
    "validate_apy",
]
