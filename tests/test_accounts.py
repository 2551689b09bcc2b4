import struct

import pytest

from intentfi.accounts import (
    ACCOUNTS,
    ContributorState,
    IntentAccount,
    IntentStatus,
    IntentType,
    LaunchpadState,
    LaunchStatus,
    MINT_SIZE,
    ProtocolState,
    decode_account,
    decode_mint,
    encode_account,
    identify_account,
)
from intentfi.codec import Err, Ok, UnknownVariant
from intentfi.discriminators import account_discriminator
from intentfi.errors import DecodeError, InvalidLengthError, TruncatedDataError, UnknownVariantError

from conftest import AUTHORITY, CONTRIBUTOR, CREATOR, MINT, TREASURY, key, make_launch, make_user

# status is followed only by the bump byte
STATUS_OFFSET = -2


def test_launch_state_round_trip(launch_state, launch_bytes):
    assert launch_bytes[:8] == account_discriminator("LaunchState")
    result = decode_account("LaunchState", launch_bytes)
    assert isinstance(result, Ok)
    assert result.value == launch_state
    assert not result.value.is_finalized


def test_launch_state_edge_values_round_trip():
    state = make_launch(
        token_name="名前" * 10,
        token_symbol="",
        launch_start=-5,
        launch_end=2**63 - 1,
        total_contributors=2**32 - 1,
        status=LaunchStatus.CANCELLED,
    )
    decoded = decode_account("LaunchState", encode_account("LaunchState", state)).unwrap()
    assert decoded == state
    assert decoded.is_finalized


def test_other_accounts_round_trip():
    records = {
        "LaunchpadState": LaunchpadState(AUTHORITY, TREASURY, 200, 3, 5_000_000_000, False, 255),
        "ContributorState": ContributorState(CONTRIBUTOR, key(7), 1_000_000_000, 10**13, True),
        "ProtocolState": ProtocolState(AUTHORITY, TREASURY, 30, 12, 10, True, 250),
        "UserAccount": make_user(active_intents=2, total_intents_created=7, total_volume=123),
        "IntentAccount": IntentAccount(
            authority=AUTHORITY,
            intent_type=IntentType.SWAP,
            status=IntentStatus.EXECUTED,
            from_mint=MINT,
            to_mint=key(8),
            amount=1_000_000,
            protocol_fee=3_000,
            max_slippage=50,
            min_apy=None,
            execution_output=990_000,
            execution_apy=None,
            created_at=1_700_000_000,
            expires_at=1_700_086_400,
            executed_at=1_700_000_100,
            cancelled_at=None,
            bump=251,
        ),
    }
    assert set(records) == set(ACCOUNTS) - {"LaunchState"}
    for kind, record in records.items():
        assert decode_account(kind, encode_account(kind, record)).unwrap() == record


def test_trailing_space_is_ignored(launch_state, launch_bytes):
    padded = launch_bytes + b"\x00" * 200
    assert decode_account("LaunchState", padded).unwrap() == launch_state


def test_truncation_at_every_offset_returns_decode_error(launch_bytes):
    for cut in range(len(launch_bytes)):
        result = decode_account("LaunchState", launch_bytes[:cut])
        assert isinstance(result, Err), cut
        assert isinstance(result.error, DecodeError)


def test_short_buffer_is_truncated_error():
    result = decode_account("LaunchState", b"\x01\x02")
    assert isinstance(result.error, TruncatedDataError)


def test_wrong_discriminator_is_rejected(launch_bytes):
    data = account_discriminator("UserAccount") + launch_bytes[8:]
    result = decode_account("LaunchState", data)
    assert isinstance(result.error, UnknownVariantError)
    assert decode_account("LaunchState", data, verify_discriminator=False).ok


def test_unknown_status_byte_is_not_active(launch_bytes):
    data = bytearray(launch_bytes)
    data[STATUS_OFFSET] = 9
    state = decode_account("LaunchState", bytes(data)).unwrap()
    assert state.status == UnknownVariant("LaunchStatus", 9)
    assert state.status is not LaunchStatus.ACTIVE
    assert state.is_finalized


def test_corrupt_string_length_is_invalid_length(launch_bytes):
    data = bytearray(launch_bytes)
    # token_name length prefix sits after discriminator + creator + mint
    data[72:76] = struct.pack("<I", 50_000)
    result = decode_account("LaunchState", bytes(data))
    assert isinstance(result.error, InvalidLengthError)
    assert result.error.offset == 72


def test_bad_bool_tag_is_unknown_variant():
    record = ContributorState(CONTRIBUTOR, CREATOR, 1, 1, False)
    data = bytearray(encode_account("ContributorState", record))
    data[-1] = 2
    assert isinstance(decode_account("ContributorState", bytes(data)).error, UnknownVariantError)


def test_identify_account(launch_bytes):
    assert identify_account(launch_bytes) == "LaunchState"
    assert identify_account(b"\x00" * 8) is None


def test_unknown_account_kind():
    with pytest.raises(ValueError):
        decode_account("Nope", b"")


def test_decode_mint_layout():
    authority = bytes([4]) * 32
    data = (
        struct.pack("<I", 1)
        + authority
        + struct.pack("<Q", 10**18)
        + bytes([6, 1])
        + b"\x00" * 36
    )
    assert len(data) == MINT_SIZE
    assert data[44] == 6
    mint = decode_mint(data).unwrap()
    assert mint.decimals == 6
    assert mint.supply == 10**18
    assert mint.is_initialized
    assert mint.freeze_authority is None
    assert isinstance(decode_mint(data[:40]), Err)
