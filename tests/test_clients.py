"""
Tests for the HTTP and WebSocket clients.

Tests cover:
- Events read API client
- Insertion stream message handling and reconnects
- Qubic RPC client and wallet analyzer
"""

import asyncio
import json

import httpx
import pytest
import websockets

from qx_watcher.api import EventsApiClient, InsertionStreamClient, QubicRpcClient, WalletAnalyzer
from qx_watcher.api.qubic_rpc import is_valid_address

from .helpers import WALLET_A, make_event


class TestEventsApiClient:
    @pytest.mark.asyncio
    async def test_list_recent(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=[make_event(id=3, tx_id="x").to_dict()])

        client = EventsApiClient("http://watcher.local/", transport=httpx.MockTransport(handler))
        events = await client.list_recent(25)
        await client.close()

        assert str(requests[0].url) == "http://watcher.local/events?limit=25"
        assert events[0].id == 3
        assert events[0].tx_id == "x"

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        client = EventsApiClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )
        with pytest.raises(httpx.HTTPStatusError):
            await client.list_by_wallet(WALLET_A)
        await client.close()


class TestInsertionStreamMessages:
    @pytest.mark.asyncio
    async def test_insert_message_reaches_callback(self):
        received = []

        async def on_event(event):
            received.append(event)

        client = InsertionStreamClient(on_event=on_event)
        message = {"type": "insert", "event": {**make_event(id=9).to_dict(), "extra": 1}}

        await client.handle_message(json.dumps(message))

        assert [e.id for e in received] == [9]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        ["not json", json.dumps({"type": "update", "event": {}}), json.dumps([1, 2])],
    )
    async def test_other_messages_ignored(self, raw):
        received = []

        async def on_event(event):
            received.append(event)

        client = InsertionStreamClient(on_event=on_event)
        await client.handle_message(raw)

        assert received == []


class TestInsertionStreamReconnect:
    @pytest.mark.asyncio
    async def test_refused_handshake_is_retried(self, monkeypatch):
        client = InsertionStreamClient(url="ws://stream.test/ws/events", reconnect_delay=0)
        attempts = []
        disconnects = []

        def refuse(url, **kwargs):
            attempts.append(url)
            if len(attempts) == 3:
                client._running = False
            raise websockets.InvalidHandshake("server rejected WebSocket connection: HTTP 503")

        async def on_disconnect():
            disconnects.append(True)

        client.on_disconnect = on_disconnect
        monkeypatch.setattr(websockets, "connect", refuse)

        await asyncio.wait_for(client.connect(), timeout=5)

        assert len(attempts) == 3
        assert len(disconnects) == 3


BALANCE_RESPONSE = {
    "balance": {
        "id": WALLET_A,
        "balance": "5000",
        "validForTick": 1200,
        "latestIncomingTransferTick": 1100,
        "latestOutgoingTransferTick": 1150,
        "incomingAmount": "9000",
        "outgoingAmount": "4000",
        "numberOfIncomingTransfers": 3,
        "numberOfOutgoingTransfers": "2",
    }
}


def rpc_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/v1/latestTick":
        return httpx.Response(200, json={"latestTick": 1234})
    if path == f"/v1/balances/{WALLET_A}":
        return httpx.Response(200, json=BALANCE_RESPONSE)
    if path.endswith("/owned"):
        return httpx.Response(200, json={"ownedAssets": [{"asset": "CFB"}]})
    return httpx.Response(500)


class TestQubicRpc:
    def test_address_validation(self):
        assert is_valid_address(WALLET_A)
        assert not is_valid_address("SHORT")
        assert not is_valid_address("A" * 59 + "!")
        assert not is_valid_address("")

    @pytest.mark.asyncio
    async def test_balance_parsing(self):
        rpc = QubicRpcClient(transport=httpx.MockTransport(rpc_handler))
        balance = await rpc.get_balance(WALLET_A)
        await rpc.close()

        assert balance.balance == 5000
        assert balance.incoming_amount == 9000
        assert balance.total_transfers == 5
        assert balance.valid_for_tick == 1200

    @pytest.mark.asyncio
    async def test_wallet_analysis(self):
        rpc = QubicRpcClient(transport=httpx.MockTransport(rpc_handler))
        analysis = await WalletAnalyzer(rpc).analyze_wallet(WALLET_A)
        await rpc.close()

        assert analysis.valid
        assert analysis.error is None
        assert analysis.network == {"latest_tick": 1234, "status": "connected"}
        assert analysis.balance.balance == 5000
        assert analysis.additional_data["owned_assets"] == {"ownedAssets": [{"asset": "CFB"}]}
        assert "error" in analysis.additional_data["issued_assets"]

    @pytest.mark.asyncio
    async def test_invalid_address_skips_rpc(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        rpc = QubicRpcClient(transport=httpx.MockTransport(handler))
        analysis = await WalletAnalyzer(rpc).analyze_wallet("nope")
        await rpc.close()

        assert not analysis.valid
        assert analysis.error == "Invalid wallet address format"
        assert calls == []

    @pytest.mark.asyncio
    async def test_balance_failure_is_reported(self):
        def handler(request):
            if request.url.path == "/v1/latestTick":
                return httpx.Response(200, json={"latestTick": 1})
            return httpx.Response(502)

        rpc = QubicRpcClient(transport=httpx.MockTransport(handler))
        analysis = await WalletAnalyzer(rpc).analyze_wallet(WALLET_A)
        await rpc.close()

        assert analysis.valid
        assert analysis.balance is None
        assert analysis.error.startswith("Failed to fetch balance")
