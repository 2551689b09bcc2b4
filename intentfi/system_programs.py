"""
Builders for the native/SPL instructions that surround a program call:
compute budget, system transfer / create-account, SPL mint init and the
associated token account.
"""

from __future__ import annotations

import struct
from typing import Optional

from intentfi.pda import PubkeyLike, ProgramAddress, find_program_address, to_address, to_pubkey
from intentfi.transaction import AccountMeta, Instruction

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
COMPUTE_BUDGET_PROGRAM_ID = "ComputeBudget111111111111111111111111111111"
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
SYSVAR_RENT_ID = "SysvarRent111111111111111111111111111111111"

KNOWN_PROGRAMS = {
    SYSTEM_PROGRAM_ID: "System Program",
    TOKEN_PROGRAM_ID: "SPL Token Program",
    ASSOCIATED_TOKEN_PROGRAM_ID: "Associated Token Program",
    COMPUTE_BUDGET_PROGRAM_ID: "Compute Budget Program",
    TOKEN_METADATA_PROGRAM_ID: "Token Metadata Program",
    SYSVAR_RENT_ID: "Sysvar: Rent",
}

# SystemInstruction enum tags (u32)
SYSTEM_CREATE_ACCOUNT = 0
SYSTEM_TRANSFER = 2

# ComputeBudgetInstruction tags (u8)
COMPUTE_UNIT_LIMIT_TAG = 2
COMPUTE_UNIT_PRICE_TAG = 3

# TokenInstruction tags (u8)
TOKEN_INITIALIZE_MINT = 0
TOKEN_MINT_TO = 7


def set_compute_unit_limit(units: int) -> Instruction:
    return Instruction(COMPUTE_BUDGET_PROGRAM_ID, (), struct.pack("<BI", COMPUTE_UNIT_LIMIT_TAG, units))


def set_compute_unit_price(micro_lamports: int) -> Instruction:
    return Instruction(
        COMPUTE_BUDGET_PROGRAM_ID, (), struct.pack("<BQ", COMPUTE_UNIT_PRICE_TAG, micro_lamports)
    )


def transfer(source: PubkeyLike, destination: PubkeyLike, lamports: int) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        (
            AccountMeta.of(source, signer=True, writable=True),
            AccountMeta.of(destination, writable=True),
        ),
        struct.pack("<IQ", SYSTEM_TRANSFER, lamports),
    )


def create_account(
    payer: PubkeyLike,
    new_account: PubkeyLike,
    lamports: int,
    space: int,
    owner: PubkeyLike,
) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        (
            AccountMeta.of(payer, signer=True, writable=True),
            AccountMeta.of(new_account, signer=True, writable=True),
        ),
        struct.pack("<IQQ", SYSTEM_CREATE_ACCOUNT, lamports, space) + to_pubkey(owner),
    )


def initialize_mint(
    mint: PubkeyLike,
    decimals: int,
    mint_authority: PubkeyLike,
    freeze_authority: Optional[PubkeyLike] = None,
) -> Instruction:
    data = struct.pack("<BB", TOKEN_INITIALIZE_MINT, decimals) + to_pubkey(mint_authority)
    if freeze_authority is None:
        data += b"\x00" + b"\x00" * 32
    else:
        data += b"\x01" + to_pubkey(freeze_authority)
    return Instruction(
        TOKEN_PROGRAM_ID,
        (AccountMeta.of(mint, writable=True), AccountMeta.of(SYSVAR_RENT_ID)),
        data,
    )


def mint_to(mint: PubkeyLike, destination: PubkeyLike, authority: PubkeyLike, amount: int) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        (
            AccountMeta.of(mint, writable=True),
            AccountMeta.of(destination, writable=True),
            AccountMeta.of(authority, signer=True),
        ),
        struct.pack("<BQ", TOKEN_MINT_TO, amount),
    )


def find_associated_token_address(
    owner: PubkeyLike,
    mint: PubkeyLike,
    token_program: PubkeyLike = TOKEN_PROGRAM_ID,
) -> ProgramAddress:
    return find_program_address(
        (to_pubkey(owner), to_pubkey(token_program), to_pubkey(mint)),
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )


def create_associated_token_account(
    payer: PubkeyLike,
    owner: PubkeyLike,
    mint: PubkeyLike,
    token_program: PubkeyLike = TOKEN_PROGRAM_ID,
) -> Instruction:
    ata = find_associated_token_address(owner, mint, token_program)
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        (
            AccountMeta.of(payer, signer=True, writable=True),
            AccountMeta.of(ata, writable=True),
            AccountMeta.of(owner),
            AccountMeta.of(mint),
            AccountMeta.of(SYSTEM_PROGRAM_ID),
            AccountMeta.of(token_program),
        ),
        b"",
    )


def program_label(program_id: PubkeyLike) -> Optional[str]:
    return KNOWN_PROGRAMS.get(to_address(program_id))


__all__ = [
    "SYSTEM_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "COMPUTE_BUDGET_PROGRAM_ID",
    "TOKEN_METADATA_PROGRAM_ID",
    "SYSVAR_RENT_ID",
    "KNOWN_PROGRAMS",
    "set_compute_unit_limit",
    "set_compute_unit_price",
    "transfer",
    "create_account",
    "initialize_mint",
    "mint_to",
    "find_associated_token_address",
    "create_associated_token_account",
    "program_label",
]
