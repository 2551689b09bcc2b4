import struct

import pytest

from intentfi.errors import DecodeError, TruncatedDataError
from intentfi.pda import to_pubkey
from intentfi.system_programs import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    COMPUTE_BUDGET_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_RENT_ID,
    TOKEN_PROGRAM_ID,
    create_account,
    create_associated_token_account,
    find_associated_token_address,
    initialize_mint,
    mint_to,
    set_compute_unit_limit,
    set_compute_unit_price,
    transfer,
)
from intentfi.transaction import (
    AccountMeta,
    Instruction,
    compile_message,
    decode_message,
    encode_shortvec,
    read_shortvec,
    serialize_unsigned,
)

from conftest import AUTHORITY, BLOCKHASH, MINT, TREASURY, key


@pytest.mark.parametrize(
    "value,encoded",
    [(0, b"\x00"), (0x7F, b"\x7f"), (0x80, b"\x80\x01"), (0x3FFF, b"\xff\x7f"), (0x4000, b"\x80\x80\x01")],
)
def test_shortvec(value, encoded):
    assert encode_shortvec(value) == encoded
    assert read_shortvec(encoded + b"\xaa", 0) == (value, len(encoded))


def test_shortvec_truncated():
    with pytest.raises(TruncatedDataError):
        read_shortvec(b"\x80", 0)


def test_compute_budget_layout():
    limit = set_compute_unit_limit(400_000)
    price = set_compute_unit_price(1_000)
    assert limit.program_id == price.program_id == COMPUTE_BUDGET_PROGRAM_ID
    assert limit.data == b"\x02" + struct.pack("<I", 400_000)
    assert price.data == b"\x03" + struct.pack("<Q", 1_000)
    assert limit.accounts == ()


def test_system_transfer_layout():
    ix = transfer(AUTHORITY, TREASURY, 20_000_000)
    assert ix.program_id == SYSTEM_PROGRAM_ID
    assert ix.data == struct.pack("<IQ", 2, 20_000_000)
    assert ix.accounts == (AccountMeta(AUTHORITY, True, True), AccountMeta(TREASURY, False, True))


def test_create_account_and_mint_layouts():
    ix = create_account(AUTHORITY, MINT, 1_461_600, 82, TOKEN_PROGRAM_ID)
    assert ix.data[:20] == struct.pack("<IQQ", 0, 1_461_600, 82)
    assert ix.data[20:] == to_pubkey(TOKEN_PROGRAM_ID)
    assert all(meta.is_signer for meta in ix.accounts)

    init = initialize_mint(MINT, 9, AUTHORITY)
    assert init.data[:2] == b"\x00\x09"
    assert init.data[2:34] == to_pubkey(AUTHORITY)
    assert init.data[34] == 0 and len(init.data) == 67
    assert init.accounts[1].pubkey == SYSVAR_RENT_ID
    assert initialize_mint(MINT, 9, AUTHORITY, AUTHORITY).data[34] == 1

    mint = mint_to(MINT, key(6), AUTHORITY, 500)
    assert mint.data == b"\x07" + struct.pack("<Q", 500)


def test_associated_token_account():
    ata = find_associated_token_address(AUTHORITY, MINT)
    assert ata == find_associated_token_address(AUTHORITY, MINT, TOKEN_PROGRAM_ID)
    ix = create_associated_token_account(key(6), AUTHORITY, MINT)
    assert ix.program_id == ASSOCIATED_TOKEN_PROGRAM_ID
    assert ix.data == b""
    assert [m.pubkey for m in ix.accounts] == [
        key(6),
        ata.address,
        AUTHORITY,
        MINT,
        SYSTEM_PROGRAM_ID,
        TOKEN_PROGRAM_ID,
    ]


def test_compile_orders_and_dedupes_accounts():
    program = key(20)
    payer = key(10)
    ix = Instruction(
        program,
        (
            AccountMeta(key(11), False, False),
            AccountMeta(key(12), False, True),
            AccountMeta(key(13), True, False),
            AccountMeta(payer, True, True),
            AccountMeta(key(11), False, True),
        ),
        b"\x01\x02",
    )
    message = compile_message([set_compute_unit_limit(1), ix], payer, BLOCKHASH)
    # 2 signers (payer, key13), 1 readonly signer, 2 readonly unsigned (two programs)
    assert message[:3] == bytes([2, 1, 2])

    decoded = decode_message(message)
    assert decoded.account_keys == [payer, key(13), key(11), key(12), COMPUTE_BUDGET_PROGRAM_ID, program]
    assert decoded.recent_blockhash == BLOCKHASH
    assert decoded.is_writable(0) and decoded.is_signer(0)
    assert not decoded.is_writable(1) and decoded.is_signer(1)
    assert decoded.is_writable(2) and decoded.is_writable(3)
    assert not decoded.is_writable(4) and not decoded.is_writable(5)

    program_ix = decoded.instructions[1]
    assert program_ix.program_id == program
    assert program_ix.data == b"\x01\x02"
    assert [m.pubkey for m in program_ix.accounts] == [key(11), key(12), key(13), payer, key(11)]


def test_decode_message_round_trips_instructions():
    instructions = [set_compute_unit_price(7), transfer(AUTHORITY, TREASURY, 99)]
    decoded = decode_message(compile_message(instructions, AUTHORITY, BLOCKHASH))
    assert [ix.data for ix in decoded.instructions] == [ix.data for ix in instructions]
    assert decoded.instructions[1].accounts == instructions[1].accounts


def test_decode_message_is_bounds_safe():
    message = compile_message([transfer(AUTHORITY, TREASURY, 1)], AUTHORITY, BLOCKHASH)
    for cut in range(len(message)):
        with pytest.raises(DecodeError):
            decode_message(message[:cut])


def test_serialize_unsigned_reserves_signature_slots():
    message = compile_message([transfer(AUTHORITY, TREASURY, 1)], AUTHORITY, BLOCKHASH)
    wire = serialize_unsigned(message)
    assert wire[0] == 1
    assert wire[1:65] == b"\x00" * 64
    assert wire[65:] == message
