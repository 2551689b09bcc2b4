"""
Launchpad program client: PDAs, account fetch/decode and instruction helpers.

PDA seeds:
    launchpad_state   ["launchpad_state"]
    launch_state      ["launch_state", creator]
    contributor       ["contributor", launch_state, contributor]
    metadata          ["metadata", metadata_program, mint]   (token metadata program)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from intentfi.accounts import (
    ContributorState,
    LaunchpadState,
    LaunchState,
    LaunchStatus,
    decode_account,
    decode_mint,
    get_schema,
)
from intentfi.cache import TtlCache
from intentfi.config import LAUNCHPAD_PROGRAM_ID
from intentfi.instructions import build_instruction
from intentfi.pda import ProgramAddress, PubkeyLike, find_program_address, to_address, to_pubkey
from intentfi.rpc import RpcClient, memcmp_filter
from intentfi.system_programs import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_RENT_ID,
    TOKEN_METADATA_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    find_associated_token_address,
)
from intentfi.transaction import Instruction
from intentfi.validation import (
    DEFAULT_DECIMALS,
    LAUNCHPAD_FEE_BPS,
    available_tokens,
    check_launch_open,
    compute_fee,
    validate_contribution,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchRecord:
    address: str
    state: LaunchState


@dataclass(frozen=True)
class ContributionQuote:
    launch: str
    contribution: int
    tokens: int
    fee: int
    fee_rate_bps: int
    tokens_available: int


@dataclass(frozen=True)
class LaunchProgress:
    is_ended: bool
    soft_cap_reached: bool
    hard_cap_reached: bool
    can_finalize: bool
    can_withdraw: bool
    percent_raised: float


def launch_progress(state: LaunchState, now: int) -> LaunchProgress:
    is_ended = now > state.launch_end
    soft_cap_reached = state.total_raised >= state.soft_cap
    percent = min(state.total_raised * 100 / state.hard_cap, 100.0) if state.hard_cap else 0.0
    return LaunchProgress(
        is_ended=is_ended,
        soft_cap_reached=soft_cap_reached,
        hard_cap_reached=state.total_raised >= state.hard_cap,
        can_finalize=is_ended and state.status is LaunchStatus.ACTIVE,
        can_withdraw=soft_cap_reached and state.status is LaunchStatus.SUCCESSFUL,
        percent_raised=percent,
    )


class LaunchpadClient:
    def __init__(
        self,
        rpc: RpcClient,
        program_id: PubkeyLike = LAUNCHPAD_PROGRAM_ID,
        *,
        fee_rate_bps: int = LAUNCHPAD_FEE_BPS,
        mint_cache: Optional[TtlCache] = None,
    ) -> None:
        self.rpc = rpc
        self.program_id = to_address(program_id)
        self.fee_rate_bps = fee_rate_bps
        self.mint_cache = mint_cache if mint_cache is not None else TtlCache(maxsize=256, ttl=300.0)

    # ---- addresses ----

    def launchpad_state_address(self) -> ProgramAddress:
        return find_program_address([b"launchpad_state"], self.program_id)

    def launch_state_address(self, creator: PubkeyLike) -> ProgramAddress:
        return find_program_address([b"launch_state", to_pubkey(creator)], self.program_id)

    def contributor_state_address(self, launch_state: PubkeyLike, contributor: PubkeyLike) -> ProgramAddress:
        return find_program_address(
            [b"contributor", to_pubkey(launch_state), to_pubkey(contributor)], self.program_id
        )

    @staticmethod
    def metadata_address(mint: PubkeyLike) -> ProgramAddress:
        return find_program_address(
            [b"metadata", to_pubkey(TOKEN_METADATA_PROGRAM_ID), to_pubkey(mint)],
            TOKEN_METADATA_PROGRAM_ID,
        )

    # ---- reads ----

    def _fetch(self, kind: str, address: PubkeyLike) -> Optional[Any]:
        info = self.rpc.get_account_info(address)
        if info is None:
            return None
        result = decode_account(kind, info.data)
        if not result.ok:
            logger.warning("%s at %s is not decodable: %s", kind, to_address(address), result.error)
            return None
        return result.value

    def get_launchpad_state(self) -> Optional[LaunchpadState]:
        return self._fetch("LaunchpadState", self.launchpad_state_address())

    def get_launch(self, address: PubkeyLike) -> Optional[LaunchState]:
        return self._fetch("LaunchState", address)

    def get_launch_by_creator(self, creator: PubkeyLike) -> Optional[LaunchState]:
        return self.get_launch(self.launch_state_address(creator))

    def get_contributor_state(self, launch_state: PubkeyLike, contributor: PubkeyLike) -> Optional[ContributorState]:
        return self._fetch("ContributorState", self.contributor_state_address(launch_state, contributor))

    def all_launches(self) -> List[LaunchRecord]:
        schema = get_schema("LaunchState")
        accounts = self.rpc.get_program_accounts(self.program_id, [memcmp_filter(0, schema.discriminator)])
        records = []
        for entry in accounts:
            result = decode_account(schema, entry.account.data)
            if not result.ok:
                logger.warning("skipping undecodable launch %s: %s", entry.pubkey, result.error)
                continue
            records.append(LaunchRecord(entry.pubkey, result.value))
        return records

    def active_launches(self) -> List[LaunchRecord]:
        return [r for r in self.all_launches() if r.state.status is LaunchStatus.ACTIVE]

    def mint_decimals(self, mint: PubkeyLike) -> int:
        address = to_address(mint)

        def load() -> int:
            info = self.rpc.get_account_info(address)
            if info is None:
                logger.warning("mint %s not found, assuming %d decimals", address, DEFAULT_DECIMALS)
                return DEFAULT_DECIMALS
            result = decode_mint(info.data)
            if not result.ok:
                logger.warning(
                    "mint %s is not decodable (%s), assuming %d decimals", address, result.error, DEFAULT_DECIMALS
                )
                return DEFAULT_DECIMALS
            return result.value.decimals

        return self.mint_cache.get_or_load(("decimals", address), load)

    def quote_contribution(
        self,
        launch: PubkeyLike,
        contribution: int,
        *,
        decimals: Optional[int] = None,
        now: Optional[int] = None,
        state: Optional[LaunchState] = None,
    ) -> ContributionQuote:
        """
        Validate a contribution against the current launch snapshot and price it.

        Raises the `ValidationError` subclass for the first rule it breaks; when
        `now` is given the launch window and hard cap are checked as well.
        """
        address = to_address(launch)
        if state is None:
            state = self.get_launch(address)
            if state is None:
                raise LookupError(f"launch {address} not found")
        if decimals is None:
            decimals = self.mint_decimals(state.token_mint)
        if now is not None:
            check_launch_open(state, contribution, now)
        tokens = validate_contribution(state, contribution, decimals=decimals)
        return ContributionQuote(
            launch=address,
            contribution=contribution,
            tokens=tokens,
            fee=compute_fee(contribution, self.fee_rate_bps),
            fee_rate_bps=self.fee_rate_bps,
            tokens_available=available_tokens(state),
        )

    def progress(self, state: LaunchState, now: Optional[int] = None) -> LaunchProgress:
        return launch_progress(state, int(time.time()) if now is None else now)

    # ---- instructions ----

    def _build(self, kind: str, fields: Mapping[str, Any], accounts: Mapping[str, PubkeyLike]) -> Instruction:
        return build_instruction(kind, fields, accounts, program_id=self.program_id)

    def initialize_launchpad(self, authority: PubkeyLike, platform_fee_bps: int, treasury_authority: PubkeyLike) -> Instruction:
        return self._build(
            "initialize_launchpad",
            {"platform_fee_bps": platform_fee_bps, "treasury_authority": treasury_authority},
            {
                "authority": authority,
                "launchpad_state": self.launchpad_state_address(),
                "system_program": SYSTEM_PROGRAM_ID,
            },
        )

    def launch_accounts(self, creator: PubkeyLike, token_mint: PubkeyLike) -> Mapping[str, PubkeyLike]:
        return {
            "creator": creator,
            "launchpad_state": self.launchpad_state_address(),
            "launch_state": self.launch_state_address(creator),
            "token_mint": token_mint,
            "system_program": SYSTEM_PROGRAM_ID,
        }

    def create_token_launch(self, creator: PubkeyLike, token_mint: PubkeyLike, params: Mapping[str, Any]) -> Instruction:
        return self._build("create_token_launch", params, self.launch_accounts(creator, token_mint))

    def create_token_mint(
        self,
        creator: PubkeyLike,
        token_mint: PubkeyLike,
        *,
        decimals: int,
        name: str,
        symbol: str,
        uri: str,
    ) -> Instruction:
        return self._build(
            "create_token_mint",
            {"decimals": decimals, "name": name, "symbol": symbol, "uri": uri},
            {
                "creator": creator,
                "launch_state": self.launch_state_address(creator),
                "token_mint": token_mint,
                "metadata": self.metadata_address(token_mint),
                "token_program": TOKEN_PROGRAM_ID,
                "token_metadata_program": TOKEN_METADATA_PROGRAM_ID,
                "system_program": SYSTEM_PROGRAM_ID,
                "rent": SYSVAR_RENT_ID,
            },
        )

    def contribution_accounts(
        self, contributor: PubkeyLike, launch_state: PubkeyLike, token_mint: PubkeyLike
    ) -> Mapping[str, PubkeyLike]:
        return {
            "contributor": contributor,
            "launch_state": launch_state,
            "contributor_state": self.contributor_state_address(launch_state, contributor),
            "launchpad_state": self.launchpad_state_address(),
            "token_mint": token_mint,
            "system_program": SYSTEM_PROGRAM_ID,
        }

    def contribute(
        self, contributor: PubkeyLike, launch_state: PubkeyLike, token_mint: PubkeyLike, amount: int
    ) -> Instruction:
        return self._build(
            "contribute_to_launch",
            {"amount": amount},
            self.contribution_accounts(contributor, launch_state, token_mint),
        )

    def finalize_launch(self, authority: PubkeyLike, launch_state: PubkeyLike) -> Instruction:
        return self._build("finalize_launch", {}, {"authority": authority, "launch_state": launch_state})

    def claim_tokens(self, contributor: PubkeyLike, launch_state: PubkeyLike, token_mint: PubkeyLike) -> Instruction:
        return self._build(
            "claim_tokens",
            {},
            {
                "contributor": contributor,
                "launch_state": launch_state,
                "contributor_state": self.contributor_state_address(launch_state, contributor),
                "token_mint": token_mint,
                "contributor_token_account": find_associated_token_address(contributor, token_mint),
                "token_program": TOKEN_PROGRAM_ID,
                "associated_token_program": ASSOCIATED_TOKEN_PROGRAM_ID,
                "system_program": SYSTEM_PROGRAM_ID,
            },
        )

    def claim_refund(self, contributor: PubkeyLike, launch_state: PubkeyLike) -> Instruction:
        return self._build(
            "claim_refund",
            {},
            {
                "contributor": contributor,
                "launch_state": launch_state,
                "contributor_state": self.contributor_state_address(launch_state, contributor),
            },
        )

    def withdraw_funds(self, creator: PubkeyLike, treasury: PubkeyLike) -> Instruction:
        return self._build(
            "withdraw_funds",
            {},
            {
                "creator": creator,
                "launch_state": self.launch_state_address(creator),
                "launchpad_state": self.launchpad_state_address(),
                "treasury": treasury,
            },
        )


def sort_by_end(records: Sequence[LaunchRecord]) -> List[LaunchRecord]:
    return sorted(records, key=lambda r: r.state.launch_end)


__all__ = [
    "LaunchRecord",
    "ContributionQuote",
    "LaunchProgress",
    "launch_progress",
    "LaunchpadClient",
    "sort_by_end",
]
