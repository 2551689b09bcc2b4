"""
Base58 / ed25519 / program-derived-address helpers.

Every account the client talks to is located by deriving its address from
seeds, so `find_program_address` must be bit-for-bit identical to the
runtime's `Pubkey::find_program_address`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple, Union

import hashlib

from intentfi.errors import InvalidSeedsError, NoValidBumpError


BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ED25519_P = 2**255 - 19
ED25519_D = (-121665 * pow(121666, -1, ED25519_P)) % ED25519_P
SQRT_M1 = pow(2, (ED25519_P - 1) // 4, ED25519_P)

PDA_MARKER = b"ProgramDerivedAddress"
PUBKEY_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16

PubkeyLike = Union[str, bytes, bytearray, "ProgramAddress"]


def b58encode(data: bytes) -> str:
    num = int.from_bytes(data, "big")
    if num == 0:
        return "1" * len(data)
    encoded = ""
    while num > 0:
        num, rem = divmod(num, 58)
        encoded = BASE58_ALPHABET[rem] + encoded
    leading_zero = 0
    for byte in data:
        if byte == 0:
            leading_zero += 1
        else:
            break
    return "1" * leading_zero + encoded


def b58decode(data: str) -> bytes:
    num = 0
    for char in data:
        idx = BASE58_ALPHABET.find(char)
        if idx < 0:
            raise ValueError(f"invalid base58 character {char!r}")
        num = num * 58 + idx
    pad = len(data) - len(data.lstrip("1"))
    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * pad + body


def to_pubkey(value: PubkeyLike) -> bytes:
    """Normalise a base58 string, raw bytes or `ProgramAddress` to 32 raw bytes."""
    if isinstance(value, ProgramAddress):
        return value.key
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        raw = b58decode(value)
    else:
        raise ValueError(f"unsupported pubkey type {type(value).__name__}")
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"pubkey must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def to_address(value: PubkeyLike) -> str:
    return b58encode(to_pubkey(value))


def is_on_curve(point: bytes) -> bool:
    """True when `point` decompresses to an ed25519 curve point."""
    if len(point) != 32:
        return False
    y = (int.from_bytes(point, "little") & ((1 << 255) - 1)) % ED25519_P
    y2 = (y * y) % ED25519_P
    u = (y2 - 1) % ED25519_P
    v = (ED25519_D * y2 + 1) % ED25519_P
    x2 = (u * pow(v, ED25519_P - 2, ED25519_P)) % ED25519_P
    x = pow(x2, (ED25519_P + 3) // 8, ED25519_P)
    if (x * x - x2) % ED25519_P == 0:
        return True
    x = (x * SQRT_M1) % ED25519_P
    return (x * x - x2) % ED25519_P == 0


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeedsError(f"at most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise InvalidSeedsError(
                f"seed of {len(seed)} bytes exceeds {MAX_SEED_LENGTH} byte limit"
            )


def create_program_address(
    seeds: Iterable[bytes],
    program_id: PubkeyLike,
) -> bytes:
    """Hash seeds into an address; raises ValueError if the hash lands on the curve."""
    seeds_tuple = tuple(bytes(seed) for seed in seeds)
    _check_seeds(seeds_tuple)
    hasher = hashlib.sha256()
    for seed in seeds_tuple:
        hasher.update(seed)
    hasher.update(to_pubkey(program_id))
    hasher.update(PDA_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        raise ValueError("derived address is on the ed25519 curve")
    return digest


@dataclass(frozen=True)
class ProgramAddress:
    key: bytes
    bump: int
    seeds: Tuple[bytes, ...]
    program_id: bytes

    @property
    def address(self) -> str:
        return b58encode(self.key)

    def __str__(self) -> str:
        return self.address


def find_program_address(
    seeds: Sequence[bytes],
    program_id: PubkeyLike,
) -> ProgramAddress:
    seeds_tuple = tuple(bytes(seed) for seed in seeds)
    # the bump byte is itself a seed
    if len(seeds_tuple) + 1 > MAX_SEEDS:
        raise InvalidSeedsError(f"at most {MAX_SEEDS - 1} seeds allowed before the bump")
    program_key = to_pubkey(program_id)
    for bump in range(255, -1, -1):
        try:
            key = create_program_address(seeds_tuple + (bytes([bump]),), program_key)
        except ValueError:
            continue
        return ProgramAddress(key=key, bump=bump, seeds=seeds_tuple, program_id=program_key)
    raise NoValidBumpError(f"no off-curve address for seeds {[s.hex() for s in seeds_tuple]}")


def derive_address(
    seeds: Sequence[bytes],
    program_id: PubkeyLike,
) -> Tuple[bytes, int]:
    found = find_program_address(seeds, program_id)
    return found.key, found.bump


__all__ = [
    "BASE58_ALPHABET",
    "PDA_MARKER",
    "PubkeyLike",
    "ProgramAddress",
    "b58encode",
    "b58decode",
    "to_pubkey",
    "to_address",
    "is_on_curve",
    "create_program_address",
    "find_program_address",
    "derive_address",
]
