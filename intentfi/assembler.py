"""
Readiness-gated transaction assembly.

The assembler has two states. READY emits the real sequence:

    compute-unit limit, compute-unit price, prerequisites...,
    program instruction, fee transfer (when fee > 0)

NOT_READY (program state accounts missing on the target cluster) emits a
fallback that still moves the protocol fee, followed by a 1% self-transfer
in place of the program call:

    fee transfer (when fee > 0), self-transfer((basis - fee) // 100)

The state is fixed for the whole call; only a new readiness check can change it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from intentfi.config import (
    DEFAULT_COMPUTE_UNIT_LIMIT,
    DEFAULT_COMPUTE_UNIT_PRICE,
    INTENT_PROGRAM_ID,
    LAUNCHPAD_PROGRAM_ID,
    Settings,
)
from intentfi.instructions import LAUNCHPAD, InstructionDescriptor, build_instruction, fee_basis, get_descriptor
from intentfi.pda import PubkeyLike, find_program_address, to_address, to_pubkey
from intentfi.rpc import RpcClient
from intentfi.system_programs import set_compute_unit_limit, set_compute_unit_price, transfer
from intentfi.transaction import Instruction, compile_message
from intentfi.validation import compute_fee

logger = logging.getLogger(__name__)

FALLBACK_DIVISOR = 100


class ReadinessState(enum.Enum):
    NOT_READY = "not_ready"
    READY = "ready"


@dataclass(frozen=True)
class Readiness:
    present: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()

    @property
    def state(self) -> ReadinessState:
        return ReadinessState.NOT_READY if self.missing else ReadinessState.READY

    @property
    def is_ready(self) -> bool:
        return not self.missing

    @classmethod
    def ready(cls) -> "Readiness":
        return cls()

    @classmethod
    def not_ready(cls, *missing: str) -> "Readiness":
        return cls(missing=missing or ("unknown",))


def intent_readiness_checks(authority: PubkeyLike, program_id: PubkeyLike = INTENT_PROGRAM_ID) -> Dict[str, str]:
    protocol = find_program_address([b"protocol_state"], program_id)
    user = find_program_address([b"user_account", to_pubkey(authority)], program_id)
    return {"protocol_state": protocol.address, "user_account": user.address}


def launchpad_readiness_checks(program_id: PubkeyLike = LAUNCHPAD_PROGRAM_ID) -> Dict[str, str]:
    return {"launchpad_state": find_program_address([b"launchpad_state"], program_id).address}


async def check_readiness(client: RpcClient, checks: Mapping[str, PubkeyLike]) -> Readiness:
    """Look up every account in `checks` concurrently; NetworkError propagates."""
    labels = list(checks)
    infos = await asyncio.gather(
        *(asyncio.to_thread(client.get_account_info, checks[label]) for label in labels)
    )
    present = tuple(label for label, info in zip(labels, infos) if info is not None)
    missing = tuple(label for label, info in zip(labels, infos) if info is None)
    readiness = Readiness(present, missing)
    logger.info("readiness %s (missing: %s)", readiness.state.value, ", ".join(missing) or "none")
    return readiness


@dataclass(frozen=True)
class ComputeBudget:
    units: int = DEFAULT_COMPUTE_UNIT_LIMIT
    micro_lamports: int = DEFAULT_COMPUTE_UNIT_PRICE

    def instructions(self) -> List[Instruction]:
        return [set_compute_unit_limit(self.units), set_compute_unit_price(self.micro_lamports)]


@dataclass(frozen=True)
class AssembledTransaction:
    state: ReadinessState
    instructions: Tuple[Instruction, ...]
    fee_payer: str
    protocol_fee: int
    kind: str = ""

    def compile(self, recent_blockhash: PubkeyLike) -> bytes:
        return compile_message(self.instructions, self.fee_payer, recent_blockhash)


@dataclass
class TransactionAssembler:
    fee_payer: str
    treasury: str
    fee_rate_bps: int
    compute_budget: ComputeBudget = field(default_factory=ComputeBudget)

    def __post_init__(self) -> None:
        self.fee_payer = to_address(self.fee_payer)
        self.treasury = to_address(self.treasury)

    @classmethod
    def from_settings(cls, settings: Settings, fee_payer: PubkeyLike, program: str = LAUNCHPAD) -> "TransactionAssembler":
        """Assembler charging `program`'s configured fee into the configured treasury."""
        fee_rate = settings.launchpad_fee_bps if program == LAUNCHPAD else settings.intent_fee_bps
        return cls(
            to_address(fee_payer),
            settings.treasury,
            fee_rate,
            ComputeBudget(settings.compute_unit_limit, settings.compute_unit_price),
        )

    def _fee_transfer(self, fee: int) -> List[Instruction]:
        return [transfer(self.fee_payer, self.treasury, fee)] if fee > 0 else []

    def assemble(
        self,
        kind: Union[str, InstructionDescriptor],
        fields: Mapping[str, Any],
        accounts: Mapping[str, PubkeyLike],
        readiness: Readiness,
        prerequisites: Sequence[Instruction] = (),
        *,
        program_id: Optional[PubkeyLike] = None,
    ) -> AssembledTransaction:
        descriptor = get_descriptor(kind)
        basis = fee_basis(descriptor, fields)
        fee = compute_fee(basis, self.fee_rate_bps)

        if readiness.is_ready:
            program_ix = build_instruction(descriptor, fields, accounts, program_id=program_id)
            instructions = (
                self.compute_budget.instructions()
                + list(prerequisites)
                + [program_ix]
                + self._fee_transfer(fee)
            )
        else:
            logger.warning(
                "%s: program accounts missing (%s), using fee-only fallback",
                descriptor.name,
                ", ".join(readiness.missing),
            )
            placeholder = transfer(self.fee_payer, self.fee_payer, (basis - fee) // FALLBACK_DIVISOR)
            instructions = self._fee_transfer(fee) + [placeholder]

        return AssembledTransaction(
            state=readiness.state,
            instructions=tuple(instructions),
            fee_payer=self.fee_payer,
            protocol_fee=fee,
            kind=descriptor.name,
        )


async def assemble_when_ready(
    assembler: TransactionAssembler,
    client: RpcClient,
    checks: Mapping[str, PubkeyLike],
    kind: Union[str, InstructionDescriptor],
    fields: Mapping[str, Any],
    accounts: Mapping[str, PubkeyLike],
    prerequisites: Sequence[Instruction] = (),
) -> AssembledTransaction:
    readiness = await check_readiness(client, checks)
    return assembler.assemble(kind, fields, accounts, readiness, prerequisites)


__all__ = [
    "FALLBACK_DIVISOR",
    "ReadinessState",
    "Readiness",
    "intent_readiness_checks",
    "launchpad_readiness_checks",
    "check_readiness",
    "ComputeBudget",
    "AssembledTransaction",
    "TransactionAssembler",
    "assemble_when_ready",
]
