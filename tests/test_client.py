"""
Pytest tests for the requests-based client and the local mint history.

The HTTP session is a MagicMock; no network.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from noema_api.client import MintHistory, NoemaClient, NoemaClientError, PreviewClient


def _resp(status=200, payload=None, content_type="application/json"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.headers = {"content-type": content_type}
    resp.json.return_value = payload
    resp.text = "" if payload is None else str(payload)
    return resp


def _client(cls, *responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return cls("http://localhost:8000/", timeout=5, session=session), session


def test_new_key_sends_only_given_fields():
    client, session = _client(NoemaClient, _resp(payload={"apiKey": "k", "plan": "pro", "expiresAt": 1}))
    assert client.new_key(plan="pro")["apiKey"] == "k"
    args, kwargs = session.request.call_args
    assert args == ("POST", "http://localhost:8000/api/keys/new")
    assert kwargs["json"] == {"plan": "pro"}
    assert kwargs["timeout"] == 5


def test_verify_key_invalid_is_not_an_exception():
    client, _ = _client(NoemaClient, _resp(401, {"valid": False, "error": "Signature has expired"}))
    assert client.verify_key("old") == {"valid": False, "error": "Signature has expired"}


def test_error_carries_status_and_message():
    client, _ = _client(NoemaClient, _resp(501, {"error": "KEY_SECRET not configured"}))
    with pytest.raises(NoemaClientError) as exc:
        client.new_key()
    assert exc.value.status_code == 501
    assert "KEY_SECRET not configured" in str(exc.value)


def test_plain_text_error():
    client, _ = _client(NoemaClient, _resp(400, None, content_type="text/plain"))
    with pytest.raises(NoemaClientError):
        client.create_checkout("gold")


def test_get_agent_sends_bearer():
    client, session = _client(NoemaClient, _resp(payload={"agentId": "bot-1"}))
    client.get_agent("bot-1", api_key="k")
    assert session.request.call_args.kwargs["headers"] == {"Authorization": "Bearer k"}


def test_solana_rpc_body():
    client, session = _client(NoemaClient, _resp(payload={"result": "ok"}))
    client.solana_rpc("getHealth")
    assert session.request.call_args.kwargs["json"] == {"jsonrpc": "2.0", "id": 1, "method": "getHealth"}


def test_preview_stake_and_list():
    client, session = _client(
        PreviewClient,
        _resp(payload={"ok": True}),
        _resp(payload={"stakes": [{"type": "stake"}]}),
    )
    assert client.stake(10, "W1") == {"ok": True}
    assert session.request.call_args.kwargs["json"] == {"amount": 10, "wallet": "W1"}
    assert client.stakes() == [{"type": "stake"}]


# --- MintHistory ---


def _mint(agent="a", mint="NF1", sig="demo_1"):
    return {"agentId": agent, "nftMint": mint, "txSignature": sig}


def test_history_newest_first_and_dedup():
    history = MintHistory()
    assert history.add(_mint(mint="NF1", sig="s1")) is True
    assert history.add(_mint(mint="NF2", sig="s2")) is True
    assert history.add(_mint(mint="NF3", sig="s1")) is False
    assert history.add(_mint(mint="NF2", sig="s9")) is False
    assert [m["nftMint"] for m in history.list()] == ["NF2", "NF1"]


def test_history_records_without_signature_are_not_duplicates():
    history = MintHistory()
    assert history.add({"agentId": "a", "nftMint": "NF1"}) is True
    assert history.add({"agentId": "a", "nftMint": "NF2"}) is True
    assert len(history.list()) == 2


def test_history_rejects_malformed():
    history = MintHistory()
    assert history.add({"nftMint": "NF1"}) is False
    assert history.add("nope") is False
    assert history.list() == []


def test_history_capped_and_seeded_in_order():
    seed = [_mint(mint=f"NF{i}", sig=f"s{i}") for i in range(5)]
    history = MintHistory(seed, limit=3)
    assert [m["nftMint"] for m in history.list()] == ["NF0", "NF1", "NF2"]
    history.clear()
    assert history.list() == []


@pytest.mark.parametrize("payload", [["bad", "request"], "upstream exploded", None])
def test_non_object_json_error_body(payload):
    client, _ = _client(NoemaClient, _resp(502, payload))
    with pytest.raises(NoemaClientError) as exc:
        client.health()
    assert exc.value.status_code == 502
