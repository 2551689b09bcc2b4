"""
Instruction descriptors for the launchpad and intent programs.

A descriptor pairs the Anchor discriminator with the ordered argument schema
and the ordered account list the program expects. Encoding is
`discriminator || borsh(args...)`; strings longer than the slot the program
reserves for them are rejected rather than truncated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from intentfi.codec import I64, PUBKEY, U16, U64, U8, Field, String, encode_fields
from intentfi.config import INTENT_PROGRAM_ID, LAUNCHPAD_PROGRAM_ID
from intentfi.discriminators import instruction_discriminator
from intentfi.errors import SerializationError, UnknownInstructionError
from intentfi.pda import PubkeyLike, to_address
from intentfi.transaction import AccountMeta, Instruction

LAUNCHPAD = "launchpad"
INTENT = "intent"

PROGRAM_IDS = {LAUNCHPAD: LAUNCHPAD_PROGRAM_ID, INTENT: INTENT_PROGRAM_ID}

MAX_NAME_LENGTH = 96
MAX_SYMBOL_LENGTH = 16
MAX_URI_LENGTH = 196


@dataclass(frozen=True)
class AccountSpec:
    name: str
    signer: bool = False
    writable: bool = False


@dataclass(frozen=True)
class InstructionDescriptor:
    name: str
    program: str
    fields: Tuple[Field, ...]
    accounts: Tuple[AccountSpec, ...]
    fee_field: Optional[str] = None

    @property
    def discriminator(self) -> bytes:
        return instruction_discriminator(self.name)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def account_names(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.accounts)


def _signer(name: str) -> AccountSpec:
    return AccountSpec(name, signer=True, writable=True)


def _mut(name: str) -> AccountSpec:
    return AccountSpec(name, writable=True)


def _ro(name: str) -> AccountSpec:
    return AccountSpec(name)


_TOKEN_STRINGS = (
    Field("name", String(MAX_NAME_LENGTH)),
    Field("symbol", String(MAX_SYMBOL_LENGTH)),
    Field("uri", String(MAX_URI_LENGTH)),
)

_DESCRIPTORS = (
    # ---- launchpad ----
    InstructionDescriptor(
        "initialize_launchpad",
        LAUNCHPAD,
        (Field("platform_fee_bps", U16), Field("treasury_authority", PUBKEY)),
        (_signer("authority"), _mut("launchpad_state"), _ro("system_program")),
    ),
    InstructionDescriptor(
        "create_token_launch",
        LAUNCHPAD,
        _TOKEN_STRINGS
        + (
            Field("soft_cap", U64),
            Field("hard_cap", U64),
            Field("token_price", U64),
            Field("tokens_for_sale", U64),
            Field("min_contribution", U64),
            Field("max_contribution", U64),
            Field("launch_duration", I64),
        ),
        (
            _signer("creator"),
            _mut("launchpad_state"),
            _mut("launch_state"),
            _ro("token_mint"),
            _ro("system_program"),
        ),
        fee_field="hard_cap",
    ),
    InstructionDescriptor(
        "create_token_mint",
        LAUNCHPAD,
        (Field("decimals", U8),) + _TOKEN_STRINGS,
        (
            _signer("creator"),
            _ro("launch_state"),
            _signer("token_mint"),
            _mut("metadata"),
            _ro("token_program"),
            _ro("token_metadata_program"),
            _ro("system_program"),
            _ro("rent"),
        ),
    ),
    InstructionDescriptor(
        "contribute_to_launch",
        LAUNCHPAD,
        (Field("amount", U64),),
        (
            _signer("contributor"),
            _mut("launch_state"),
            _mut("contributor_state"),
            _mut("launchpad_state"),
            _ro("token_mint"),
            _ro("system_program"),
        ),
        fee_field="amount",
    ),
    InstructionDescriptor(
        "finalize_launch",
        LAUNCHPAD,
        (),
        (AccountSpec("authority", signer=True), _mut("launch_state")),
    ),
    InstructionDescriptor(
        "claim_tokens",
        LAUNCHPAD,
        (),
        (
            _signer("contributor"),
            _ro("launch_state"),
            _mut("contributor_state"),
            _mut("token_mint"),
            _mut("contributor_token_account"),
            _ro("token_program"),
            _ro("associated_token_program"),
            _ro("system_program"),
        ),
    ),
    InstructionDescriptor(
        "claim_refund",
        LAUNCHPAD,
        (),
        (_signer("contributor"), _ro("launch_state"), _mut("contributor_state")),
    ),
    InstructionDescriptor(
        "withdraw_funds",
        LAUNCHPAD,
        (),
        (_signer("creator"), _ro("launch_state"), _ro("launchpad_state"), _mut("treasury")),
    ),
    # ---- intents ----
    InstructionDescriptor(
        "initialize_protocol",
        INTENT,
        (Field("treasury_authority", PUBKEY),),
        (_signer("authority"), _mut("protocol_state"), _ro("system_program")),
    ),
    InstructionDescriptor(
        "initialize_user",
        INTENT,
        (),
        (_signer("authority"), _mut("user_account"), _ro("system_program")),
    ),
    InstructionDescriptor(
        "create_swap_intent",
        INTENT,
        (
            Field("from_mint", PUBKEY),
            Field("to_mint", PUBKEY),
            Field("amount", U64),
            Field("max_slippage", U16),
        ),
        (
            _signer("authority"),
            _mut("protocol_state"),
            _mut("user_account"),
            _mut("intent_account"),
            _ro("system_program"),
        ),
        fee_field="amount",
    ),
    InstructionDescriptor(
        "execute_swap_intent",
        INTENT,
        (Field("expected_output", U64),),
        (
            _signer("user"),
            _mut("intent_account"),
            _mut("protocol_state"),
            _mut("user_account"),
            _mut("user_source_token"),
            _mut("user_destination_token"),
            _mut("treasury_fee_account"),
            _ro("token_program"),
        ),
    ),
    InstructionDescriptor(
        "create_lend_intent",
        INTENT,
        (Field("mint", PUBKEY), Field("amount", U64), Field("min_apy", U16)),
        (
            _signer("authority"),
            _mut("protocol_state"),
            _mut("user_account"),
            _mut("intent_account"),
            _ro("system_program"),
        ),
        fee_field="amount",
    ),
    InstructionDescriptor(
        "execute_lend_intent",
        INTENT,
        (Field("actual_apy", U16),),
        (
            _signer("user"),
            _mut("intent_account"),
            _mut("protocol_state"),
            _mut("user_account"),
            _mut("user_token_account"),
            _mut("treasury_fee_account"),
            _ro("token_program"),
        ),
    ),
    InstructionDescriptor(
        "cancel_intent",
        INTENT,
        (),
        (_signer("authority"), _mut("intent_account"), _mut("user_account")),
    ),
)

INSTRUCTIONS: Dict[str, InstructionDescriptor] = {d.name: d for d in _DESCRIPTORS}


def get_descriptor(kind: Union[str, InstructionDescriptor]) -> InstructionDescriptor:
    if isinstance(kind, InstructionDescriptor):
        return kind
    try:
        return INSTRUCTIONS[kind]
    except KeyError:
        raise UnknownInstructionError(f"unknown instruction {kind!r}") from None


def encode_instruction(kind: Union[str, InstructionDescriptor], fields: Mapping[str, Any]) -> bytes:
    descriptor = get_descriptor(kind)
    return descriptor.discriminator + encode_fields(descriptor.fields, fields)


def resolve_accounts(
    descriptor: InstructionDescriptor,
    accounts: Mapping[str, PubkeyLike],
) -> Tuple[AccountMeta, ...]:
    unexpected = sorted(set(accounts) - set(descriptor.account_names))
    if unexpected:
        raise SerializationError(
            f"{descriptor.name}: unexpected accounts {', '.join(unexpected)}", unexpected[0]
        )
    metas = []
    for spec in descriptor.accounts:
        if spec.name not in accounts:
            raise SerializationError(f"{descriptor.name}: missing account {spec.name}", spec.name)
        try:
            address = to_address(accounts[spec.name])
        except ValueError as exc:
            raise SerializationError(f"{descriptor.name}.{spec.name}: {exc}", spec.name) from exc
        metas.append(AccountMeta(address, spec.signer, spec.writable))
    return tuple(metas)


def build_instruction(
    kind: Union[str, InstructionDescriptor],
    fields: Mapping[str, Any],
    accounts: Mapping[str, PubkeyLike],
    *,
    program_id: Optional[PubkeyLike] = None,
) -> Instruction:
    descriptor = get_descriptor(kind)
    program = to_address(program_id) if program_id is not None else PROGRAM_IDS[descriptor.program]
    return Instruction(
        program,
        resolve_accounts(descriptor, accounts),
        encode_instruction(descriptor, fields),
    )


def fee_basis(kind: Union[str, InstructionDescriptor], fields: Mapping[str, Any]) -> int:
    """Lamport amount the protocol fee is charged on (0 when the instruction carries none)."""
    descriptor = get_descriptor(kind)
    if descriptor.fee_field is None:
        return 0
    if descriptor.fee_field not in fields:
        raise SerializationError(f"missing field {descriptor.fee_field}", descriptor.fee_field)
    return int(fields[descriptor.fee_field])


def identify_instruction(data: bytes) -> Optional[InstructionDescriptor]:
    prefix = bytes(data[:8])
    for descriptor in _DESCRIPTORS:
        if descriptor.discriminator == prefix:
            return descriptor
    return None


def program_descriptors(program: str) -> Sequence[InstructionDescriptor]:
    return [d for d in _DESCRIPTORS if d.program == program]


__all__ = [
    "LAUNCHPAD",
    "INTENT",
    "PROGRAM_IDS",
    "MAX_NAME_LENGTH",
    "MAX_SYMBOL_LENGTH",
    "MAX_URI_LENGTH",
    "AccountSpec",
    "InstructionDescriptor",
    "INSTRUCTIONS",
    "get_descriptor",
    "encode_instruction",
    "resolve_accounts",
    "build_instruction",
    "fee_basis",
    "identify_instruction",
    "program_descriptors",
]
