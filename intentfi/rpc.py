"""
Minimal Solana JSON-RPC client over `requests`.

Only the calls this package needs are wrapped. Transport failures and JSON-RPC
`error` members are raised as `NetworkError` / `RpcResponseError`; nothing is
retried here.
"""

from __future__ import annotations

import base64
import binascii
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from intentfi.errors import NetworkError, RpcResponseError
from intentfi.pda import PubkeyLike, b58encode, to_address

logger = logging.getLogger(__name__)

MULTIPLE_ACCOUNTS_CHUNK = 100


@dataclass(frozen=True)
class AccountInfo:
    data: bytes
    owner: str
    lamports: int
    executable: bool = False

    @classmethod
    def from_rpc(cls, value: Dict[str, Any]) -> "AccountInfo":
        data = value.get("data") or ["", "base64"]
        encoded = data[0] if isinstance(data, list) else data
        try:
            raw = base64.b64decode(encoded, validate=True) if encoded else b""
        except (binascii.Error, TypeError) as exc:
            raise NetworkError(f"account data is not valid base64: {exc}") from exc
        return cls(
            data=raw,
            owner=value.get("owner", ""),
            lamports=int(value.get("lamports", 0)),
            executable=bool(value.get("executable", False)),
        )


@dataclass(frozen=True)
class ProgramAccount:
    pubkey: str
    account: AccountInfo


def memcmp_filter(offset: int, data: bytes) -> Dict[str, Any]:
    return {"memcmp": {"offset": offset, "bytes": b58encode(data)}}


def data_size_filter(size: int) -> Dict[str, Any]:
    return {"dataSize": size}


class RpcClient:
    def __init__(
        self,
        endpoint: str,
        *,
        commitment: str = "confirmed",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.commitment = commitment
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def request(self, method: str, params: Sequence[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        logger.debug("rpc %s -> %s", method, self.endpoint)
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise NetworkError(f"{method} request failed: {exc}", method) from exc
        except ValueError as exc:
            raise NetworkError(f"{method} returned invalid JSON", method) from exc
        if not isinstance(body, dict):
            raise NetworkError(f"{method} returned a non-object JSON body", method)
        if "error" in body:
            error = body["error"] if isinstance(body["error"], dict) else {"message": body["error"]}
            raise RpcResponseError(
                f"{method} failed: {error.get('message', error)}", method, error.get("code")
            )
        return body.get("result")

    def _config(self, **extra: Any) -> Dict[str, Any]:
        config: Dict[str, Any] = {"commitment": self.commitment}
        config.update(extra)
        return config

    def get_latest_blockhash(self) -> str:
        result = self.request("getLatestBlockhash", [self._config()])
        try:
            return result["value"]["blockhash"]
        except (KeyError, TypeError) as exc:
            raise NetworkError("getLatestBlockhash returned no blockhash", "getLatestBlockhash") from exc

    def get_account_info(self, address: PubkeyLike) -> Optional[AccountInfo]:
        result = self.request(
            "getAccountInfo", [to_address(address), self._config(encoding="base64")]
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        return AccountInfo.from_rpc(value)

    def get_multiple_accounts(self, addresses: Sequence[PubkeyLike]) -> List[Optional[AccountInfo]]:
        keys = [to_address(a) for a in addresses]
        aggregated: List[Optional[AccountInfo]] = []
        for idx in range(0, len(keys), MULTIPLE_ACCOUNTS_CHUNK):
            chunk = keys[idx : idx + MULTIPLE_ACCOUNTS_CHUNK]
            result = self.request("getMultipleAccounts", [chunk, self._config(encoding="base64")])
            values = list((result or {}).get("value") or [])
            if len(values) < len(chunk):
                values.extend([None] * (len(chunk) - len(values)))
            aggregated.extend(
                AccountInfo.from_rpc(v) if v is not None else None for v in values[: len(chunk)]
            )
        return aggregated

    def get_program_accounts(
        self,
        program_id: PubkeyLike,
        filters: Sequence[Dict[str, Any]] = (),
    ) -> List[ProgramAccount]:
        config = self._config(encoding="base64")
        if filters:
            config["filters"] = list(filters)
        result = self.request("getProgramAccounts", [to_address(program_id), config]) or []
        if isinstance(result, dict):
            result = result.get("value") or []
        return [
            ProgramAccount(entry["pubkey"], AccountInfo.from_rpc(entry["account"])) for entry in result
        ]

    def get_parsed_token_accounts_by_owner(
        self,
        owner: PubkeyLike,
        *,
        mint: Optional[PubkeyLike] = None,
        program_id: Optional[PubkeyLike] = None,
    ) -> List[Dict[str, Any]]:
        if (mint is None) == (program_id is None):
            raise ValueError("pass exactly one of mint or program_id")
        owner_filter = {"mint": to_address(mint)} if mint is not None else {"programId": to_address(program_id)}
        result = self.request(
            "getTokenAccountsByOwner",
            [to_address(owner), owner_filter, self._config(encoding="jsonParsed")],
        )
        return list((result or {}).get("value") or [])

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return int(self.request("getMinimumBalanceForRentExemption", [size, self._config()]))


__all__ = [
    "MULTIPLE_ACCOUNTS_CHUNK",
    "AccountInfo",
    "ProgramAccount",
    "memcmp_filter",
    "data_size_filter",
    "RpcClient",
]
