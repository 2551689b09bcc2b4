"""
Intent program client: protocol/user/intent accounts and swap-lend instructions.

Intent accounts are numbered per user. The next intent lives at
["intent", authority, u64le(user.total_intents_created + 1)].
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from intentfi.accounts import IntentAccount, ProtocolState, UserAccount, decode_account
from intentfi.config import INTENT_PROGRAM_ID
from intentfi.errors import InvalidAmountError
from intentfi.instructions import build_instruction
from intentfi.pda import ProgramAddress, PubkeyLike, find_program_address, to_address, to_pubkey
from intentfi.rpc import RpcClient
from intentfi.system_programs import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from intentfi.transaction import Instruction
from intentfi.validation import INTENT_FEE_BPS, compute_fee, validate_apy, validate_slippage

logger = logging.getLogger(__name__)


def _positive_amount(amount: int) -> int:
    if amount <= 0:
        raise InvalidAmountError(f"intent amount must be positive, got {amount}")
    return amount


@dataclass(frozen=True)
class IntentRecord:
    address: str
    index: int
    intent: IntentAccount


class IntentClient:
    def __init__(
        self,
        rpc: RpcClient,
        program_id: PubkeyLike = INTENT_PROGRAM_ID,
        *,
        fee_rate_bps: int = INTENT_FEE_BPS,
    ) -> None:
        self.rpc = rpc
        self.program_id = to_address(program_id)
        self.fee_rate_bps = fee_rate_bps

    def protocol_state_address(self) -> ProgramAddress:
        return find_program_address([b"protocol_state"], self.program_id)

    def user_account_address(self, authority: PubkeyLike) -> ProgramAddress:
        return find_program_address([b"user_account", to_pubkey(authority)], self.program_id)

    def intent_address(self, authority: PubkeyLike, index: int) -> ProgramAddress:
        if index < 1:
            raise ValueError("intent indices start at 1")
        return find_program_address(
            [b"intent", to_pubkey(authority), struct.pack("<Q", index)], self.program_id
        )

    def _fetch(self, kind: str, address: PubkeyLike) -> Optional[Any]:
        info = self.rpc.get_account_info(address)
        if info is None:
            return None
        result = decode_account(kind, info.data)
        if not result.ok:
            logger.warning("%s at %s is not decodable: %s", kind, to_address(address), result.error)
            return None
        return result.value

    def get_protocol_state(self) -> Optional[ProtocolState]:
        return self._fetch("ProtocolState", self.protocol_state_address())

    def get_user_account(self, authority: PubkeyLike) -> Optional[UserAccount]:
        return self._fetch("UserAccount", self.user_account_address(authority))

    def get_intent(self, address: PubkeyLike) -> Optional[IntentAccount]:
        return self._fetch("IntentAccount", address)

    def next_intent_address(self, authority: PubkeyLike, user: Optional[UserAccount] = None) -> ProgramAddress:
        """Address the next create_*_intent call will initialise; a missing user account counts as zero."""
        if user is None:
            user = self.get_user_account(authority)
        created = user.total_intents_created if user is not None else 0
        return self.intent_address(authority, created + 1)

    def user_intents(self, authority: PubkeyLike) -> List[IntentRecord]:
        user = self.get_user_account(authority)
        if user is None or user.total_intents_created == 0:
            return []
        addresses = [self.intent_address(authority, i) for i in range(1, user.total_intents_created + 1)]
        infos = self.rpc.get_multiple_accounts(addresses)
        records = []
        for index, (address, info) in enumerate(zip(addresses, infos), start=1):
            if info is None:
                continue
            result = decode_account("IntentAccount", info.data)
            if not result.ok:
                logger.warning("intent #%d at %s is not decodable: %s", index, address.address, result.error)
                continue
            records.append(IntentRecord(address.address, index, result.value))
        return records

    def intent_fee(self, amount: int) -> int:
        return compute_fee(amount, self.fee_rate_bps)

    # ---- instructions ----

    def _build(self, kind: str, fields: Mapping[str, Any], accounts: Mapping[str, PubkeyLike]) -> Instruction:
        return build_instruction(kind, fields, accounts, program_id=self.program_id)

    def initialize_protocol(self, authority: PubkeyLike, treasury_authority: PubkeyLike) -> Instruction:
        return self._build(
            "initialize_protocol",
            {"treasury_authority": treasury_authority},
            {
                "authority": authority,
                "protocol_state": self.protocol_state_address(),
                "system_program": SYSTEM_PROGRAM_ID,
            },
        )

    def initialize_user(self, authority: PubkeyLike) -> Instruction:
        return self._build(
            "initialize_user",
            {},
            {
                "authority": authority,
                "user_account": self.user_account_address(authority),
                "system_program": SYSTEM_PROGRAM_ID,
            },
        )

    def create_intent_accounts(self, authority: PubkeyLike, intent_account: PubkeyLike) -> Mapping[str, PubkeyLike]:
        return {
            "authority": authority,
            "protocol_state": self.protocol_state_address(),
            "user_account": self.user_account_address(authority),
            "intent_account": intent_account,
            "system_program": SYSTEM_PROGRAM_ID,
        }

    def create_swap_intent(
        self,
        authority: PubkeyLike,
        intent_account: PubkeyLike,
        *,
        from_mint: PubkeyLike,
        to_mint: PubkeyLike,
        amount: int,
        max_slippage: int,
    ) -> Instruction:
        return self._build(
            "create_swap_intent",
            {
                "from_mint": from_mint,
                "to_mint": to_mint,
                "amount": _positive_amount(amount),
                "max_slippage": validate_slippage(max_slippage),
            },
            self.create_intent_accounts(authority, intent_account),
        )

    def create_lend_intent(
        self,
        authority: PubkeyLike,
        intent_account: PubkeyLike,
        *,
        mint: PubkeyLike,
        amount: int,
        min_apy: int,
    ) -> Instruction:
        return self._build(
            "create_lend_intent",
            {"mint": mint, "amount": _positive_amount(amount), "min_apy": validate_apy(min_apy)},
            self.create_intent_accounts(authority, intent_account),
        )

    def execute_swap_intent(
        self,
        user: PubkeyLike,
        intent_account: PubkeyLike,
        *,
        expected_output: int,
        user_source_token: PubkeyLike,
        user_destination_token: PubkeyLike,
        treasury_fee_account: PubkeyLike,
    ) -> Instruction:
        return self._build(
            "execute_swap_intent",
            {"expected_output": expected_output},
            {
                "user": user,
                "intent_account": intent_account,
                "protocol_state": self.protocol_state_address(),
                "user_account": self.user_account_address(user),
                "user_source_token": user_source_token,
                "user_destination_token": user_destination_token,
                "treasury_fee_account": treasury_fee_account,
                "token_program": TOKEN_PROGRAM_ID,
            },
        )

    def execute_lend_intent(
        self,
        user: PubkeyLike,
        intent_account: PubkeyLike,
        *,
        actual_apy: int,
        user_token_account: PubkeyLike,
        treasury_fee_account: PubkeyLike,
    ) -> Instruction:
        return self._build(
            "execute_lend_intent",
            {"actual_apy": validate_apy(actual_apy)},
            {
                "user": user,
                "intent_account": intent_account,
                "protocol_state": self.protocol_state_address(),
                "user_account": self.user_account_address(user),
                "user_token_account": user_token_account,
                "treasury_fee_account": treasury_fee_account,
                "token_program": TOKEN_PROGRAM_ID,
            },
        )

    def cancel_intent(self, authority: PubkeyLike, intent_account: PubkeyLike) -> Instruction:
        return self._build(
            "cancel_intent",
            {},
            {
                "authority": authority,
                "intent_account": intent_account,
                "user_account": self.user_account_address(authority),
            },
        )


__all__ = ["IntentRecord", "IntentClient"]
