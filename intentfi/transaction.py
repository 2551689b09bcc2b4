"""
Instruction value types and the legacy Solana message wire format.

    message := header(3) | shortvec(n) pubkey*n | blockhash(32)
               | shortvec(m) compiled_instruction*m
    compiled_instruction := program_index(u8) | shortvec(k) u8*k | shortvec(d) data
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from intentfi.errors import DecodeError, SerializationError, TruncatedDataError
from intentfi.pda import PubkeyLike, b58encode, to_address, to_pubkey

SIGNATURE_LENGTH = 64


@dataclass(frozen=True)
class AccountMeta:
    pubkey: str
    is_signer: bool
    is_writable: bool

    @classmethod
    def of(cls, pubkey: PubkeyLike, *, signer: bool = False, writable: bool = False) -> "AccountMeta":
        return cls(to_address(pubkey), signer, writable)


@dataclass(frozen=True)
class Instruction:
    program_id: str
    accounts: Tuple[AccountMeta, ...]
    data: bytes = b""


@dataclass
class DecodedMessage:
    num_required_signatures: int
    num_readonly_signed: int
    num_readonly_unsigned: int
    account_keys: List[str]
    recent_blockhash: str
    instructions: List[Instruction] = field(default_factory=list)

    def is_signer(self, index: int) -> bool:
        return index < self.num_required_signatures

    def is_writable(self, index: int) -> bool:
        if index < self.num_required_signatures:
            return index < self.num_required_signatures - self.num_readonly_signed
        return index < len(self.account_keys) - self.num_readonly_unsigned


def encode_shortvec(value: int) -> bytes:
    """Solana's compact-u16: little-endian base-128 varint."""
    if not 0 <= value <= 0xFFFF:
        raise SerializationError(f"shortvec length {value} out of range")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def read_shortvec(data: bytes, offset: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise TruncatedDataError(offset, 1, len(data))
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if byte & 0x80:
            shift += 7
            if shift > 14:
                raise DecodeError(f"shortvec at offset {offset} is longer than 3 bytes", offset)
            continue
        break
    return result, offset


def _ordered_keys(instructions: Sequence[Instruction], fee_payer: str) -> Tuple[List[str], Dict[str, List[bool]]]:
    flags: Dict[str, List[bool]] = {fee_payer: [True, True]}
    order = [fee_payer]

    def merge(key: str, signer: bool, writable: bool) -> None:
        if key not in flags:
            flags[key] = [signer, writable]
            order.append(key)
        else:
            flags[key][0] |= signer
            flags[key][1] |= writable

    for ix in instructions:
        for meta in ix.accounts:
            merge(meta.pubkey, meta.is_signer, meta.is_writable)
        merge(ix.program_id, False, False)

    groups = (
        [k for k in order if flags[k][0] and flags[k][1]],
        [k for k in order if flags[k][0] and not flags[k][1]],
        [k for k in order if not flags[k][0] and flags[k][1]],
        [k for k in order if not flags[k][0] and not flags[k][1]],
    )
    # the fee payer is always the first signer-writable key
    keys = [k for group in groups for k in group]
    return keys, flags


def compile_message(
    instructions: Sequence[Instruction],
    fee_payer: PubkeyLike,
    recent_blockhash: PubkeyLike,
) -> bytes:
    payer = to_address(fee_payer)
    keys, flags = _ordered_keys(instructions, payer)
    index = {key: i for i, key in enumerate(keys)}

    num_signers = sum(1 for k in keys if flags[k][0])
    readonly_signed = sum(1 for k in keys if flags[k][0] and not flags[k][1])
    readonly_unsigned = sum(1 for k in keys if not flags[k][0] and not flags[k][1])
    if len(keys) > 256:
        raise SerializationError(f"message references {len(keys)} accounts, limit is 256")

    out = bytearray([num_signers, readonly_signed, readonly_unsigned])
    out += encode_shortvec(len(keys))
    for key in keys:
        out += to_pubkey(key)
    out += to_pubkey(recent_blockhash)
    out += encode_shortvec(len(instructions))
    for ix in instructions:
        out.append(index[ix.program_id])
        out += encode_shortvec(len(ix.accounts))
        out += bytes(index[meta.pubkey] for meta in ix.accounts)
        out += encode_shortvec(len(ix.data))
        out += ix.data
    return bytes(out)


def decode_message(raw: bytes) -> DecodedMessage:
    """Parse a legacy message back into keys and fully-resolved instructions."""

    def take(offset: int, width: int) -> bytes:
        if offset + width > len(raw):
            raise TruncatedDataError(offset, width, len(raw))
        return raw[offset : offset + width]

    if raw and raw[0] & 0x80:
        raise DecodeError("versioned messages are not supported", 0)
    num_signers, readonly_signed, readonly_unsigned = take(0, 3)
    offset = 3
    count, offset = read_shortvec(raw, offset)
    keys = []
    for _ in range(count):
        keys.append(b58encode(take(offset, 32)))
        offset += 32
    blockhash = b58encode(take(offset, 32))
    offset += 32

    message = DecodedMessage(num_signers, readonly_signed, readonly_unsigned, keys, blockhash)
    ix_count, offset = read_shortvec(raw, offset)
    for _ in range(ix_count):
        program_index = take(offset, 1)[0]
        offset += 1
        account_len, offset = read_shortvec(raw, offset)
        indices = list(take(offset, account_len))
        offset += account_len
        data_len, offset = read_shortvec(raw, offset)
        data = take(offset, data_len)
        offset += data_len
        for idx in indices + [program_index]:
            if idx >= len(keys):
                raise DecodeError(f"account index {idx} out of range", offset)
        metas = tuple(
            AccountMeta(keys[i], message.is_signer(i), message.is_writable(i)) for i in indices
        )
        message.instructions.append(Instruction(keys[program_index], metas, data))
    return message


def serialize_unsigned(message: bytes) -> bytes:
    """Wire transaction with zeroed signature slots, ready for an external signer."""
    num_signers = message[0] if message else 0
    return encode_shortvec(num_signers) + b"\x00" * (SIGNATURE_LENGTH * num_signers) + message


__all__ = [
    "SIGNATURE_LENGTH",
    "AccountMeta",
    "Instruction",
    "DecodedMessage",
    "encode_shortvec",
    "read_shortvec",
    "compile_message",
    "decode_message",
    "serialize_unsigned",
]
