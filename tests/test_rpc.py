import base64

import pytest
import requests

from intentfi.errors import NetworkError, RpcResponseError
from intentfi.pda import b58encode
from intentfi.rpc import MULTIPLE_ACCOUNTS_CHUNK, AccountInfo, data_size_filter, memcmp_filter

from conftest import AUTHORITY, BLOCKHASH, FakeResponse, key


def test_request_payload_shape(session, rpc):
    rpc.get_latest_blockhash()
    call = session.calls[0]
    assert call["jsonrpc"] == "2.0"
    assert call["method"] == "getLatestBlockhash"
    assert call["params"] == [{"commitment": "confirmed"}]


def test_latest_blockhash(rpc):
    assert rpc.get_latest_blockhash() == BLOCKHASH


def test_account_info_missing_and_present(session, rpc):
    assert rpc.get_account_info(AUTHORITY) is None
    session.add_account(AUTHORITY, b"\x01\x02\x03")
    info = rpc.get_account_info(AUTHORITY)
    assert isinstance(info, AccountInfo)
    assert info.data == b"\x01\x02\x03"
    assert info.lamports == 1_000_000
    assert session.calls[-1]["params"][1]["encoding"] == "base64"


def test_multiple_accounts_chunks_requests(session, rpc):
    addresses = [key(i % 250 + 1) for i in range(MULTIPLE_ACCOUNTS_CHUNK + 5)]
    session.add_account(addresses[0], b"\xaa")
    infos = rpc.get_multiple_accounts(addresses)
    assert len(infos) == len(addresses)
    assert infos[0].data == b"\xaa"
    assert session.methods() == ["getMultipleAccounts", "getMultipleAccounts"]
    assert len(session.calls[1]["params"][0]) == 5


def test_multiple_accounts_pads_short_responses(session, rpc):
    session.on("getMultipleAccounts", lambda params: {"value": []})
    assert rpc.get_multiple_accounts([key(1), key(2)]) == [None, None]


def test_program_accounts_filters(session, rpc):
    encoded = base64.b64encode(b"\x07" * 10).decode()
    session.on(
        "getProgramAccounts",
        lambda params: [
            {"pubkey": key(3), "account": {"data": [encoded, "base64"], "owner": key(4), "lamports": 5}}
        ],
    )
    filters = [memcmp_filter(0, b"\x01\x02"), data_size_filter(10)]
    accounts = rpc.get_program_accounts(key(4), filters)
    assert accounts[0].pubkey == key(3)
    assert accounts[0].account.data == b"\x07" * 10
    config = session.calls[0]["params"][1]
    assert config["filters"] == [
        {"memcmp": {"offset": 0, "bytes": b58encode(b"\x01\x02")}},
        {"dataSize": 10},
    ]


def test_parsed_token_accounts_by_owner(session, rpc):
    session.on("getTokenAccountsByOwner", lambda params: {"value": [{"pubkey": key(7)}]})
    assert rpc.get_parsed_token_accounts_by_owner(AUTHORITY, mint=key(2)) == [{"pubkey": key(7)}]
    params = session.calls[0]["params"]
    assert params[1] == {"mint": key(2)}
    assert params[2]["encoding"] == "jsonParsed"
    with pytest.raises(ValueError):
        rpc.get_parsed_token_accounts_by_owner(AUTHORITY)


def test_rent_exemption(session, rpc):
    session.on("getMinimumBalanceForRentExemption", lambda params: 1_461_600)
    assert rpc.get_minimum_balance_for_rent_exemption(82) == 1_461_600


def test_json_rpc_error_is_typed(rpc):
    with pytest.raises(RpcResponseError) as exc:
        rpc.request("noSuchMethod", [])
    assert exc.value.code == -32601
    assert exc.value.method == "noSuchMethod"


def test_transport_failure_is_network_error(session, rpc):
    session.raise_exc = requests.Timeout("slow")
    with pytest.raises(NetworkError) as exc:
        rpc.get_account_info(AUTHORITY)
    assert exc.value.method == "getAccountInfo"
    assert isinstance(exc.value.__cause__, requests.Timeout)


def test_http_status_and_bad_json(rpc, monkeypatch):
    monkeypatch.setattr(rpc.session, "post", lambda *a, **kw: FakeResponse({}, status=503))
    with pytest.raises(NetworkError):
        rpc.get_latest_blockhash()
    monkeypatch.setattr(rpc.session, "post", lambda *a, **kw: FakeResponse(ValueError("not json")))
    with pytest.raises(NetworkError):
        rpc.get_latest_blockhash()


@pytest.mark.parametrize("body", [None, [], "ok"])
def test_non_object_body_is_network_error(rpc, monkeypatch, body):
    monkeypatch.setattr(rpc.session, "post", lambda *a, **kw: FakeResponse(body))
    with pytest.raises(NetworkError) as exc:
        rpc.get_latest_blockhash()
    assert exc.value.method == "getLatestBlockhash"


def test_string_error_member_is_typed(rpc, monkeypatch):
    monkeypatch.setattr(rpc.session, "post", lambda *a, **kw: FakeResponse({"error": "overloaded"}))
    with pytest.raises(RpcResponseError) as exc:
        rpc.get_latest_blockhash()
    assert "overloaded" in str(exc.value)
    assert exc.value.code is None


def test_bad_base64_account_data_is_network_error(session, rpc):
    session.on(
        "getAccountInfo",
        lambda params: {"value": {"data": ["not*base64!", "base64"], "owner": AUTHORITY, "lamports": 1}},
    )
    with pytest.raises(NetworkError):
        rpc.get_account_info(AUTHORITY)
