#!/usr/bin/env python3

"""Developer command line for inspecting launchpad / intent program state.

Examples:
    intentfi derive --program launchpad str:launch_state pubkey:<creator>
    intentfi discriminator create_token_launch
    intentfi launches --json
    intentfi quote <launch> 1000000000
    intentfi contribute <launch> <wallet> 1000000000
    intentfi describe <base64 message>
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import binascii
import enum
import json
import logging
import struct
import sys
from dataclasses import asdict, is_dataclass
from typing import Any, List, Optional, Sequence

from intentfi.accounts import identify_account
from intentfi.assembler import (
    TransactionAssembler,
    check_readiness,
    intent_readiness_checks,
    launchpad_readiness_checks,
)
from intentfi.codec import decode_struct
from intentfi.config import Settings, load_settings
from intentfi.discriminators import account_discriminator, instruction_discriminator
from intentfi.errors import IntentFiError
from intentfi.instructions import LAUNCHPAD, PROGRAM_IDS, identify_instruction
from intentfi.intents import IntentClient
from intentfi.launchpad import LaunchpadClient, sort_by_end
from intentfi.pda import find_program_address, to_address, to_pubkey
from intentfi.rpc import RpcClient
from intentfi.system_programs import COMPUTE_BUDGET_PROGRAM_ID, SYSTEM_PROGRAM_ID, program_label
from intentfi.transaction import DecodedMessage, Instruction, decode_message, read_shortvec, serialize_unsigned

logger = logging.getLogger(__name__)


def parse_seed(token: str) -> bytes:
    kind, sep, value = token.partition(":")
    if not sep:
        kind, value = "str", token
    if kind == "str":
        return value.encode("utf-8")
    if kind == "pubkey":
        return to_pubkey(value)
    if kind == "u64":
        return struct.pack("<Q", int(value, 0))
    if kind == "hex":
        return bytes.fromhex(value)
    raise ValueError(f"unknown seed type {kind!r} (use str:, pubkey:, u64:, hex:)")


def resolve_program(value: str) -> str:
    return PROGRAM_IDS.get(value) or to_address(value)


def to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def emit(args: argparse.Namespace, value: Any, text: str) -> None:
    if args.json:
        print(json.dumps(to_jsonable(value), indent=2))
    else:
        print(text)


def render_record(record: Any) -> str:
    lines = []
    for key, value in to_jsonable(record).items():
        if isinstance(value, dict) and "raw" in value:
            value = f"Unknown({value['raw']})"
        lines.append(f"  {key}: {value}")
    return "\n".join(lines)


# ---- commands ----


def cmd_derive(args: argparse.Namespace, settings: Settings) -> None:
    seeds = [parse_seed(token) for token in args.seeds]
    found = find_program_address(seeds, resolve_program(args.program))
    emit(
        args,
        {"address": found.address, "bump": found.bump, "seeds": [s.hex() for s in found.seeds]},
        f"{found.address} (bump {found.bump})",
    )


def cmd_discriminator(args: argparse.Namespace, settings: Settings) -> None:
    digest = account_discriminator(args.name) if args.account else instruction_discriminator(args.name)
    namespace = "account" if args.account else "global"
    emit(
        args,
        {"name": args.name, "namespace": namespace, "hex": digest.hex(), "bytes": list(digest)},
        f"{namespace}:{args.name} = {digest.hex()} {list(digest)}",
    )


def cmd_launch(args: argparse.Namespace, settings: Settings) -> None:
    client = LaunchpadClient(_rpc(args, settings), settings.network.launchpad_program_id)
    address = client.launch_state_address(args.creator).address if args.creator else args.address
    if not address:
        raise SystemExit("pass a launch address or --creator")
    state = client.get_launch(address)
    if state is None:
        raise SystemExit(f"launch {address} not found or not decodable")
    progress = client.progress(state)
    emit(
        args,
        {"address": address, "state": asdict(state), "progress": asdict(progress)},
        f"LaunchState {address}\n{render_record(state)}\n"
        f"  raised: {progress.percent_raised:.2f}% of hard cap"
        f"{' (soft cap reached)' if progress.soft_cap_reached else ''}",
    )


def cmd_launches(args: argparse.Namespace, settings: Settings) -> None:
    client = LaunchpadClient(_rpc(args, settings), settings.network.launchpad_program_id)
    records = client.all_launches() if args.all else client.active_launches()
    records = sort_by_end(records)
    lines = [
        f"{r.address}  {r.state.token_symbol:<8} {r.state.status.name:<10} "
        f"raised={r.state.total_raised} hard_cap={r.state.hard_cap} ends={r.state.launch_end}"
        for r in records
    ]
    emit(
        args,
        [{"address": r.address, "state": asdict(r.state)} for r in records],
        "\n".join(lines) if lines else "(no launches)",
    )


def cmd_user(args: argparse.Namespace, settings: Settings) -> None:
    client = IntentClient(
        _rpc(args, settings),
        settings.network.intent_program_id,
        fee_rate_bps=settings.intent_fee_bps,
    )
    user = client.get_user_account(args.authority)
    if user is None:
        raise SystemExit(f"no user account for {args.authority}")
    intents = client.user_intents(args.authority) if args.intents else []
    text = f"UserAccount {client.user_account_address(args.authority).address}\n{render_record(user)}"
    for record in intents:
        intent = record.intent
        text += (
            f"\n  intent #{record.index} {record.address}: "
            f"{intent.intent_type.name} {intent.status.name} amount={intent.amount}"
        )
    emit(
        args,
        {"user": asdict(user), "intents": [asdict(r) for r in intents]},
        text,
    )


def cmd_readiness(args: argparse.Namespace, settings: Settings) -> None:
    rpc = _rpc(args, settings)
    checks = dict(intent_readiness_checks(args.authority, settings.network.intent_program_id))
    checks.update(launchpad_readiness_checks(settings.network.launchpad_program_id))
    readiness = asyncio.run(check_readiness(rpc, checks))
    emit(
        args,
        {"state": readiness.state.value, "present": list(readiness.present), "missing": list(readiness.missing)},
        f"{readiness.state.value}: present={', '.join(readiness.present) or '-'} "
        f"missing={', '.join(readiness.missing) or '-'}",
    )


def cmd_quote(args: argparse.Namespace, settings: Settings) -> None:
    client = LaunchpadClient(
        _rpc(args, settings),
        settings.network.launchpad_program_id,
        fee_rate_bps=settings.launchpad_fee_bps,
    )
    quote = client.quote_contribution(args.launch, args.amount, decimals=args.decimals)
    emit(
        args,
        quote,
        f"{quote.contribution} lamports -> {quote.tokens} tokens "
        f"(fee {quote.fee} at {quote.fee_rate_bps} bps, {quote.tokens_available} available)",
    )


def cmd_contribute(args: argparse.Namespace, settings: Settings) -> None:
    rpc = _rpc(args, settings)
    client = LaunchpadClient(rpc, settings.network.launchpad_program_id, fee_rate_bps=settings.launchpad_fee_bps)
    launch = to_address(args.launch)
    state = client.get_launch(launch)
    if state is None:
        raise LookupError(f"launch {launch} not found")
    client.quote_contribution(launch, args.amount, decimals=args.decimals, state=state)

    assembler = TransactionAssembler.from_settings(settings, args.contributor, LAUNCHPAD)
    readiness = asyncio.run(check_readiness(rpc, launchpad_readiness_checks(client.program_id)))
    assembled = assembler.assemble(
        "contribute_to_launch",
        {"amount": args.amount},
        client.contribution_accounts(args.contributor, launch, state.token_mint),
        readiness,
        program_id=client.program_id,
    )
    wire = serialize_unsigned(assembled.compile(rpc.get_latest_blockhash()))
    payload = base64.b64encode(wire).decode()
    emit(
        args,
        {
            "state": assembled.state.value,
            "protocol_fee": assembled.protocol_fee,
            "instructions": len(assembled.instructions),
            "transaction": payload,
        },
        f"{assembled.state.value}: {len(assembled.instructions)} instructions, "
        f"fee {assembled.protocol_fee} lamports to {assembler.treasury}\n{payload}",
    )


def describe_instruction(ix: Instruction) -> str:
    data = ix.data
    label = program_label(ix.program_id)
    header = f"{ix.program_id}" + (f" ({label})" if label else "")
    body: List[str] = []
    if ix.program_id == COMPUTE_BUDGET_PROGRAM_ID and data[:1] == b"\x02" and len(data) >= 5:
        body.append(f"SetComputeUnitLimit units={struct.unpack_from('<I', data, 1)[0]}")
    elif ix.program_id == COMPUTE_BUDGET_PROGRAM_ID and data[:1] == b"\x03" and len(data) >= 9:
        body.append(f"SetComputeUnitPrice micro_lamports={struct.unpack_from('<Q', data, 1)[0]}")
    elif (
        ix.program_id == SYSTEM_PROGRAM_ID
        and len(data) >= 12
        and len(ix.accounts) >= 2
        and struct.unpack_from("<I", data)[0] == 2
    ):
        lamports = struct.unpack_from("<Q", data, 4)[0]
        body.append(f"Transfer {lamports} lamports {ix.accounts[0].pubkey} -> {ix.accounts[1].pubkey}")
    else:
        descriptor = identify_instruction(data)
        if descriptor is None:
            body.append(f"raw data={data.hex()}")
        else:
            body.append(descriptor.name)
            decoded = decode_struct(descriptor.fields, data, 8)
            if decoded.ok:
                body.extend(f"  {k}: {v}" for k, v in decoded.value.items())
            else:
                body.append(f"  undecodable args: {decoded.error}")
            for spec, meta in zip(descriptor.accounts, ix.accounts):
                body.append(f"  {spec.name}: {meta.pubkey}")
    return header + "\n" + "\n".join(f"    {line}" for line in body)


def cmd_describe(args: argparse.Namespace, settings: Settings) -> None:
    try:
        raw = base64.b64decode(args.payload, validate=True)
    except binascii.Error as exc:
        raise SystemExit(f"payload is not base64: {exc}") from exc
    if args.transaction:
        count, offset = read_shortvec(raw, 0)
        raw = raw[offset + 64 * count :]
    message: DecodedMessage = decode_message(raw)
    if args.json:
        emit(args, message, "")
        return
    print(f"blockhash: {message.recent_blockhash}")
    print("accounts:")
    for idx, key in enumerate(message.account_keys):
        flags = ["signer"] if message.is_signer(idx) else []
        flags.append("writable" if message.is_writable(idx) else "readonly")
        print(f"  [{idx}] {key} ({', '.join(flags)})")
    print("instructions:")
    for idx, ix in enumerate(message.instructions):
        print(f"  {idx}: {describe_instruction(ix)}")


def cmd_account(args: argparse.Namespace, settings: Settings) -> None:
    info = _rpc(args, settings).get_account_info(args.address)
    if info is None:
        raise SystemExit(f"account {args.address} not found")
    kind = identify_account(info.data)
    emit(
        args,
        {"address": args.address, "owner": info.owner, "kind": kind, "size": len(info.data)},
        f"{args.address}: {kind or 'unknown'} owned by {info.owner} ({len(info.data)} bytes)",
    )


def _rpc(args: argparse.Namespace, settings: Settings) -> RpcClient:
    return RpcClient(
        args.rpc or settings.rpc_url,
        commitment=settings.network.commitment,
        timeout=settings.rpc_timeout,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="intentfi", description="Inspect IntentFi launchpad and intent programs.")
    parser.add_argument("--rpc", help="RPC endpoint (default: INTENTFI_RPC_URL or the network default)")
    parser.add_argument("--json", action="store_true", help="emit JSON instead of text")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("derive", help="derive a program address from typed seeds")
    p.add_argument("seeds", nargs="*", help="seeds as str:TEXT, pubkey:B58, u64:N or hex:BYTES")
    p.add_argument("--program", default="launchpad", help="program id or 'launchpad' / 'intent'")
    p.set_defaults(func=cmd_derive)

    p = sub.add_parser("discriminator", help="print an Anchor discriminator")
    p.add_argument("name")
    p.add_argument("--account", action="store_true", help="account namespace instead of instruction")
    p.set_defaults(func=cmd_discriminator)

    p = sub.add_parser("launch", help="fetch and decode one launch")
    p.add_argument("address", nargs="?")
    p.add_argument("--creator", help="derive the launch address from its creator")
    p.set_defaults(func=cmd_launch)

    p = sub.add_parser("launches", help="list launches owned by the launchpad program")
    p.add_argument("--all", action="store_true", help="include finalized launches")
    p.set_defaults(func=cmd_launches)

    p = sub.add_parser("user", help="fetch a user's intent account")
    p.add_argument("authority")
    p.add_argument("--intents", action="store_true", help="also list the user's intents")
    p.set_defaults(func=cmd_user)

    p = sub.add_parser("readiness", help="check whether program state accounts exist")
    p.add_argument("authority")
    p.set_defaults(func=cmd_readiness)

    p = sub.add_parser("quote", help="validate and price a contribution")
    p.add_argument("launch")
    p.add_argument("amount", type=int, help="contribution in lamports")
    p.add_argument("--decimals", type=int, help="token decimals (default: read from the mint)")
    p.set_defaults(func=cmd_quote)

    p = sub.add_parser("contribute", help="build an unsigned contribution transaction")
    p.add_argument("launch")
    p.add_argument("contributor", help="contributor wallet, also the fee payer")
    p.add_argument("amount", type=int, help="contribution in lamports")
    p.add_argument("--decimals", type=int, help="token decimals (default: read from the mint)")
    p.set_defaults(func=cmd_contribute)

    p = sub.add_parser("describe", help="decode a base64 legacy message")
    p.add_argument("payload")
    p.add_argument("--transaction", action="store_true", help="payload is a full transaction with signatures")
    p.set_defaults(func=cmd_describe)

    p = sub.add_parser("account", help="identify an account by its discriminator")
    p.add_argument("address")
    p.set_defaults(func=cmd_account)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.debug("network=%s rpc=%s", settings.network.name, args.rpc or settings.rpc_url)
    try:
        args.func(args, settings)
    except (IntentFiError, ValueError, LookupError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
