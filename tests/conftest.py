from __future__ import annotations

import base64
import threading
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from intentfi.accounts import LaunchState, LaunchStatus, UserAccount, encode_account
from intentfi.pda import b58encode
from intentfi.rpc import RpcClient


def key(n: int) -> str:
    return b58encode(bytes([n]) * 32)


CREATOR = key(1)
MINT = key(2)
CONTRIBUTOR = key(3)
AUTHORITY = key(4)
TREASURY = key(5)
BLOCKHASH = key(9)


class FakeResponse:
    def __init__(self, body: Any, status: int = 200) -> None:
        self._body = body
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """Stands in for `requests.Session`; dispatches on the JSON-RPC method."""

    def __init__(self) -> None:
        self.handlers: Dict[str, Callable[[List[Any]], Any]] = {}
        self.calls: List[Dict[str, Any]] = []
        self.accounts: Dict[str, bytes] = {}
        self.raise_exc: Optional[Exception] = None
        self._lock = threading.Lock()

    def on(self, method: str, handler: Callable[[List[Any]], Any]) -> None:
        self.handlers[method] = handler

    def add_account(self, address: str, data: bytes) -> None:
        self.accounts[address] = data

    def _account_value(self, address: str) -> Optional[Dict[str, Any]]:
        data = self.accounts.get(address)
        if data is None:
            return None
        return {
            "data": [base64.b64encode(data).decode(), "base64"],
            "owner": "owner",
            "lamports": 1_000_000,
            "executable": False,
        }

    def post(self, url: str, json: Any = None, headers: Any = None, timeout: Any = None) -> FakeResponse:
        with self._lock:
            self.calls.append(json)
        if self.raise_exc is not None:
            raise self.raise_exc
        method, params = json["method"], json["params"]
        if method in self.handlers:
            return FakeResponse({"jsonrpc": "2.0", "id": json["id"], "result": self.handlers[method](params)})
        if method == "getAccountInfo":
            return FakeResponse(
                {"jsonrpc": "2.0", "id": json["id"], "result": {"value": self._account_value(params[0])}}
            )
        if method == "getMultipleAccounts":
            values = [self._account_value(a) for a in params[0]]
            return FakeResponse({"jsonrpc": "2.0", "id": json["id"], "result": {"value": values}})
        if method == "getLatestBlockhash":
            return FakeResponse(
                {"jsonrpc": "2.0", "id": json["id"], "result": {"value": {"blockhash": BLOCKHASH}}}
            )
        return FakeResponse(
            {"jsonrpc": "2.0", "id": json["id"], "error": {"code": -32601, "message": "Method not found"}}
        )

    def methods(self) -> List[str]:
        return [c["method"] for c in self.calls]


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def rpc(session: FakeSession) -> RpcClient:
    return RpcClient("http://rpc.test", session=session)


def make_launch(**overrides: Any) -> LaunchState:
    values = dict(
        creator=CREATOR,
        token_mint=MINT,
        token_name="Test Token",
        token_symbol="TEST",
        token_uri="https://example.com/token.json",
        soft_cap=10_000_000_000,
        hard_cap=100_000_000_000,
        token_price=100_000,
        tokens_for_sale=1_000_000_000_000_000_000,
        min_contribution=100_000_000,
        max_contribution=10_000_000_000,
        launch_start=1_700_000_000,
        launch_end=1_700_604_800,
        total_raised=0,
        total_contributors=0,
        tokens_sold=0,
        status=LaunchStatus.ACTIVE,
        bump=254,
    )
    values.update(overrides)
    return LaunchState(**values)


def make_user(**overrides: Any) -> UserAccount:
    values = dict(
        authority=AUTHORITY,
        active_intents=0,
        total_intents_created=0,
        total_volume=0,
        bump=253,
    )
    values.update(overrides)
    return UserAccount(**values)


@pytest.fixture
def launch_state() -> LaunchState:
    return make_launch()


@pytest.fixture
def launch_bytes(launch_state: LaunchState) -> bytes:
    return encode_account("LaunchState", launch_state)
