import struct

import pytest

from intentfi import pda
from intentfi.errors import InvalidSeedsError, NoValidBumpError
from intentfi.pda import (
    ProgramAddress,
    b58decode,
    b58encode,
    create_program_address,
    derive_address,
    find_program_address,
    is_on_curve,
    to_address,
    to_pubkey,
)

from conftest import CREATOR, key

LAUNCHPAD = "5y2X9WML5ttrWrxzUfGrLSxbXfEcKTyV1dDyw2jXW1Zg"
WSOL = "So11111111111111111111111111111111111111112"
ED25519_BASEPOINT = bytes.fromhex("5866666666666666666666666666666666666666666666666666666666666666")


def test_b58_known_vectors():
    assert b58decode(WSOL).hex() == "069b8857feab8184fb687f634618c035dac439dc1aeb3b5598a0f00000000001"
    assert b58encode(b58decode(WSOL)) == WSOL
    assert b58decode("1" * 32) == b"\x00" * 32
    assert b58encode(b"\x00" * 32) == "1" * 32


def test_b58decode_keeps_leading_zero_bytes():
    raw = b"\x00\x00" + bytes(range(1, 31))
    assert b58decode(b58encode(raw)) == raw


def test_b58decode_rejects_invalid_characters():
    with pytest.raises(ValueError):
        b58decode("0OIl")


def test_to_pubkey_normalises_inputs():
    raw = bytes([7]) * 32
    assert to_pubkey(raw) == raw
    assert to_pubkey(bytearray(raw)) == raw
    assert to_pubkey(b58encode(raw)) == raw
    assert to_address(raw) == b58encode(raw)
    with pytest.raises(ValueError):
        to_pubkey(b"\x01" * 31)
    with pytest.raises(ValueError):
        to_pubkey(12345)


def test_basepoint_is_on_curve():
    assert is_on_curve(ED25519_BASEPOINT)
    assert not is_on_curve(b"\x01" * 31)


def test_find_program_address_is_deterministic():
    seeds = [b"launch_state", to_pubkey(CREATOR)]
    first = find_program_address(seeds, LAUNCHPAD)
    second = find_program_address(seeds, LAUNCHPAD)
    assert first == second
    assert derive_address(seeds, LAUNCHPAD) == (first.key, first.bump)


def test_found_address_is_canonical_and_off_curve():
    seeds = [b"launchpad_state"]
    found = find_program_address(seeds, LAUNCHPAD)
    assert isinstance(found, ProgramAddress)
    assert not is_on_curve(found.key)
    assert create_program_address(seeds + [bytes([found.bump])], LAUNCHPAD) == found.key
    # every higher bump must land on the curve
    for bump in range(found.bump + 1, 256):
        with pytest.raises(ValueError):
            create_program_address(seeds + [bytes([bump])], LAUNCHPAD)
    assert found.address == str(found) == b58encode(found.key)
    assert found.seeds == (b"launchpad_state",)
    assert found.program_id == to_pubkey(LAUNCHPAD)


def test_different_seeds_give_different_addresses():
    a = find_program_address([b"user_account", to_pubkey(key(1))], LAUNCHPAD)
    b = find_program_address([b"user_account", to_pubkey(key(2))], LAUNCHPAD)
    c = find_program_address([b"intent", to_pubkey(key(1)), struct.pack("<Q", 1)], LAUNCHPAD)
    assert len({a.key, b.key, c.key}) == 3


def test_program_address_accepted_as_pubkey():
    found = find_program_address([b"protocol_state"], LAUNCHPAD)
    assert to_pubkey(found) == found.key
    assert to_address(found) == found.address


def test_seed_limits():
    with pytest.raises(InvalidSeedsError):
        find_program_address([b"x" * 33], LAUNCHPAD)
    with pytest.raises(InvalidSeedsError):
        find_program_address([b"x"] * 16, LAUNCHPAD)
    find_program_address([b"x" * 32], LAUNCHPAD)


def test_exhausted_bump_space(monkeypatch):
    monkeypatch.setattr(pda, "is_on_curve", lambda point: True)
    with pytest.raises(NoValidBumpError):
        find_program_address([b"launchpad_state"], LAUNCHPAD)
