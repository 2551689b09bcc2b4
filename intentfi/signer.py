"""
Boundary to the external wallet. Key material never enters this package:
the signer receives the unsigned instruction list and decides whether to
submit.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, runtime_checkable

from intentfi.assembler import AssembledTransaction
from intentfi.rpc import RpcClient
from intentfi.transaction import Instruction

logger = logging.getLogger(__name__)

# Returned by signers that queue the request for user approval instead of signing inline.
PENDING_SIGNATURE = "pending"


@runtime_checkable
class Signer(Protocol):
    def sign_and_maybe_submit(
        self,
        instructions: Sequence[Instruction],
        fee_payer: str,
        recent_blockhash: str,
    ) -> str:
        ...


def submit(client: RpcClient, signer: Signer, assembled: AssembledTransaction) -> str:
    blockhash = client.get_latest_blockhash()
    logger.info(
        "handing %s (%d instructions, %s) to signer",
        assembled.kind or "transaction",
        len(assembled.instructions),
        assembled.state.value,
    )
    signature = signer.sign_and_maybe_submit(list(assembled.instructions), assembled.fee_payer, blockhash)
    if signature == PENDING_SIGNATURE:
        logger.info("signer deferred approval")
    return signature


__all__ = ["PENDING_SIGNATURE", "Signer", "submit"]
