"""
On-chain account records for the launchpad and intent programs.

Each account kind is declared once as an `AccountSchema` (ordered fields plus
the record class); `decode_account` and `encode_account` are driven by that
declaration. Layout of every Anchor account:

    [0:8]   sha256("account:<Name>")[:8]
    [8:]    Borsh-encoded fields in declaration order, trailing space ignored
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Type, Union

from intentfi.codec import (
    BOOL,
    I64,
    PUBKEY,
    STRING,
    U16,
    U32,
    U64,
    U8,
    COption,
    DecodeResult,
    EnumType,
    Err,
    Field,
    Ok,
    Option,
    UnknownVariant,
    decode_struct,
    encode_fields,
)
from intentfi.discriminators import DISCRIMINATOR_LENGTH, account_discriminator
from intentfi.errors import TruncatedDataError, UnknownVariantError


class LaunchStatus(enum.IntEnum):
    ACTIVE = 0
    SUCCESSFUL = 1
    FAILED = 2
    CANCELLED = 3


class IntentType(enum.IntEnum):
    SWAP = 0
    LEND = 1


class IntentStatus(enum.IntEnum):
    PENDING = 0
    EXECUTED = 1
    CANCELLED = 2
    EXPIRED = 3


# ---- launchpad program ----


@dataclass(frozen=True)
class LaunchpadState:
    authority: str
    treasury_authority: str
    platform_fee_bps: int
    total_launches: int
    total_raised: int
    is_paused: bool
    bump: int


@dataclass(frozen=True)
class LaunchState:
    creator: str
    token_mint: str
    token_name: str
    token_symbol: str
    token_uri: str
    soft_cap: int
    hard_cap: int
    token_price: int
    tokens_for_sale: int
    min_contribution: int
    max_contribution: int
    launch_start: int
    launch_end: int
    total_raised: int
    total_contributors: int
    tokens_sold: int
    status: Union[LaunchStatus, UnknownVariant]
    bump: int

    @property
    def is_finalized(self) -> bool:
        return self.status is not LaunchStatus.ACTIVE


@dataclass(frozen=True)
class ContributorState:
    contributor: str
    launch: str
    total_contributed: int
    tokens_owed: int
    claimed: bool


# ---- intent program ----


@dataclass(frozen=True)
class ProtocolState:
    authority: str
    treasury_authority: str
    protocol_fee_bps: int
    total_intents_created: int
    total_intents_executed: int
    is_paused: bool
    bump: int


@dataclass(frozen=True)
class UserAccount:
    authority: str
    active_intents: int
    total_intents_created: int
    total_volume: int
    bump: int


@dataclass(frozen=True)
class IntentAccount:
    authority: str
    intent_type: Union[IntentType, UnknownVariant]
    status: Union[IntentStatus, UnknownVariant]
    from_mint: str
    to_mint: str
    amount: int
    protocol_fee: int
    max_slippage: Optional[int]
    min_apy: Optional[int]
    execution_output: Optional[int]
    execution_apy: Optional[int]
    created_at: int
    expires_at: int
    executed_at: Optional[int]
    cancelled_at: Optional[int]
    bump: int

    @property
    def is_pending(self) -> bool:
        return self.status is IntentStatus.PENDING


# ---- SPL token mint (no discriminator) ----


@dataclass(frozen=True)
class MintInfo:
    mint_authority: Optional[str]
    supply: int
    decimals: int
    is_initialized: bool
    freeze_authority: Optional[str]


MINT_SIZE = 82
MINT_FIELDS = (
    Field("mint_authority", COption(PUBKEY, 32)),
    Field("supply", U64),
    Field("decimals", U8),
    Field("is_initialized", BOOL),
    Field("freeze_authority", COption(PUBKEY, 32)),
)


@dataclass(frozen=True)
class AccountSchema:
    name: str
    fields: Sequence[Field]
    record_type: Type[Any]

    @property
    def discriminator(self) -> bytes:
        return account_discriminator(self.name)


ACCOUNTS: Dict[str, AccountSchema] = {
    schema.name: schema
    for schema in (
        AccountSchema(
            "LaunchpadState",
            (
                Field("authority", PUBKEY),
                Field("treasury_authority", PUBKEY),
                Field("platform_fee_bps", U16),
                Field("total_launches", U64),
                Field("total_raised", U64),
                Field("is_paused", BOOL),
                Field("bump", U8),
            ),
            LaunchpadState,
        ),
        AccountSchema(
            "LaunchState",
            (
                Field("creator", PUBKEY),
                Field("token_mint", PUBKEY),
                Field("token_name", STRING),
                Field("token_symbol", STRING),
                Field("token_uri", STRING),
                Field("soft_cap", U64),
                Field("hard_cap", U64),
                Field("token_price", U64),
                Field("tokens_for_sale", U64),
                Field("min_contribution", U64),
                Field("max_contribution", U64),
                Field("launch_start", I64),
                Field("launch_end", I64),
                Field("total_raised", U64),
                Field("total_contributors", U32),
                Field("tokens_sold", U64),
                Field("status", EnumType(LaunchStatus)),
                Field("bump", U8),
            ),
            LaunchState,
        ),
        AccountSchema(
            "ContributorState",
            (
                Field("contributor", PUBKEY),
                Field("launch", PUBKEY),
                Field("total_contributed", U64),
                Field("tokens_owed", U64),
                Field("claimed", BOOL),
            ),
            ContributorState,
        ),
        AccountSchema(
            "ProtocolState",
            (
                Field("authority", PUBKEY),
                Field("treasury_authority", PUBKEY),
                Field("protocol_fee_bps", U16),
                Field("total_intents_created", U64),
                Field("total_intents_executed", U64),
                Field("is_paused", BOOL),
                Field("bump", U8),
            ),
            ProtocolState,
        ),
        AccountSchema(
            "UserAccount",
            (
                Field("authority", PUBKEY),
                Field("active_intents", U8),
                Field("total_intents_created", U64),
                Field("total_volume", U64),
                Field("bump", U8),
            ),
            UserAccount,
        ),
        AccountSchema(
            "IntentAccount",
            (
                Field("authority", PUBKEY),
                Field("intent_type", EnumType(IntentType)),
                Field("status", EnumType(IntentStatus)),
                Field("from_mint", PUBKEY),
                Field("to_mint", PUBKEY),
                Field("amount", U64),
                Field("protocol_fee", U64),
                Field("max_slippage", Option(U16)),
                Field("min_apy", Option(U16)),
                Field("execution_output", Option(U64)),
                Field("execution_apy", Option(U16)),
                Field("created_at", I64),
                Field("expires_at", I64),
                Field("executed_at", Option(I64)),
                Field("cancelled_at", Option(I64)),
                Field("bump", U8),
            ),
            IntentAccount,
        ),
    )
}


def get_schema(kind: Union[str, AccountSchema]) -> AccountSchema:
    if isinstance(kind, AccountSchema):
        return kind
    try:
        return ACCOUNTS[kind]
    except KeyError:
        raise ValueError(f"unknown account kind {kind!r}") from None


def decode_account(
    kind: Union[str, AccountSchema],
    data: bytes,
    *,
    verify_discriminator: bool = True,
) -> DecodeResult:
    """
    Decode raw account bytes into the record for `kind`.

    Returns `Ok(record)` or `Err(DecodeError)`; never raises for malformed
    input. A wrong discriminator yields `Err(UnknownVariantError)` unless
    `verify_discriminator` is False, in which case the prefix is skipped.
    """
    schema = get_schema(kind)
    if len(data) < DISCRIMINATOR_LENGTH:
        return Err(TruncatedDataError(0, DISCRIMINATOR_LENGTH, len(data)))
    if verify_discriminator and data[:DISCRIMINATOR_LENGTH] != schema.discriminator:
        return Err(
            UnknownVariantError(
                f"discriminator {bytes(data[:DISCRIMINATOR_LENGTH]).hex()} is not {schema.name}",
                0,
            )
        )
    result = decode_struct(schema.fields, data, DISCRIMINATOR_LENGTH)
    if isinstance(result, Err):
        return result
    return Ok(schema.record_type(**result.value))


def encode_account(kind: Union[str, AccountSchema], record: Any) -> bytes:
    schema = get_schema(kind)
    values = {f.name: getattr(record, f.name) for f in schema.fields}
    return schema.discriminator + encode_fields(schema.fields, values)


def identify_account(data: bytes) -> Optional[str]:
    """Name of the known account kind whose discriminator prefixes `data`."""
    prefix = bytes(data[:DISCRIMINATOR_LENGTH])
    for schema in ACCOUNTS.values():
        if schema.discriminator == prefix:
            return schema.name
    return None


def decode_mint(data: bytes) -> DecodeResult:
    result = decode_struct(MINT_FIELDS, data)
    if isinstance(result, Err):
        return result
    return Ok(MintInfo(**result.value))


__all__ = [
    "LaunchStatus",
    "IntentType",
    "IntentStatus",
    "LaunchpadState",
    "LaunchState",
    "ContributorState",
    "ProtocolState",
    "UserAccount",
    "IntentAccount",
    "MintInfo",
    "MINT_SIZE",
    "AccountSchema",
    "ACCOUNTS",
    "get_schema",
    "decode_account",
    "encode_account",
    "identify_account",
    "decode_mint",
]
