"""Client for the Qubic RPC API - balances, ticks and asset holdings."""

import asyncio
import logging
import re
from dataclasses import dataclass, field

import httpx

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^[A-Za-z0-9]{60}$")


def is_valid_address(address: str) -> bool:
    """Qubic identities are 60 alphanumeric characters."""
    return bool(address) and isinstance(address, str) and bool(ADDRESS_PATTERN.match(address))


def _to_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class BalanceInfo:
    """Balance and transfer counters for a wallet."""

    balance: int
    valid_for_tick: int | None
    latest_incoming_transfer_tick: int | None
    latest_outgoing_transfer_tick: int | None
    incoming_amount: int
    outgoing_amount: int
    number_of_incoming_transfers: int
    number_of_outgoing_transfers: int

    @property
    def total_transfers(self) -> int:
        return self.number_of_incoming_transfers + self.number_of_outgoing_transfers


@dataclass
class WalletAnalysis:
    """Everything the RPC API knows about a wallet."""

    address: str
    valid: bool
    network: dict = field(default_factory=dict)
    balance: BalanceInfo | None = None
    additional_data: dict = field(default_factory=dict)
    error: str | None = None


class QubicRpcClient:
    """Client for the Qubic RPC API."""

    def __init__(
        self,
        base_url: str = "https://rpc.qubic.org",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=30.0,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _get(self, path: str) -> dict:
        response = await self._client.get(f"{self.base_url}{path}")
        response.raise_for_status()
        return response.json()

    async def get_balance(self, address: str) -> BalanceInfo:
        """
        Fetch the balance record for a wallet.

        The API wraps the record as {"balance": {...}}; numeric fields may
        arrive as strings.
        """
        data = await self._get(f"/v1/balances/{address}")
        balance = data.get("balance") or {}

        return BalanceInfo(
            balance=_to_int(balance.get("balance")),
            valid_for_tick=balance.get("validForTick"),
            latest_incoming_transfer_tick=balance.get("latestIncomingTransferTick"),
            latest_outgoing_transfer_tick=balance.get("latestOutgoingTransferTick"),
            incoming_amount=_to_int(balance.get("incomingAmount")),
            outgoing_amount=_to_int(balance.get("outgoingAmount")),
            number_of_incoming_transfers=_to_int(balance.get("numberOfIncomingTransfers")),
            number_of_outgoing_transfers=_to_int(balance.get("numberOfOutgoingTransfers")),
        )

    async def get_latest_tick(self) -> int:
        data = await self._get("/v1/latestTick")
        return _to_int(data.get("latestTick"))

    async def get_owned_assets(self, address: str) -> dict:
        return await self._get(f"/v1/assets/{address}/owned")

    async def get_possessed_assets(self, address: str) -> dict:
        return await self._get(f"/v1/assets/{address}/possessed")

    async def get_issued_assets(self, address: str) -> dict:
        return await self._get(f"/v1/assets/{address}/issued")


class WalletAnalyzer:
    """Collects network, balance and asset information for a wallet."""

    def __init__(self, rpc: QubicRpcClient):
        self.rpc = rpc

    async def get_network_info(self) -> dict:
        try:
            return {"latest_tick": await self.rpc.get_latest_tick(), "status": "connected"}
        except Exception as e:
            logger.warning(f"Failed to fetch latest tick: {e}")
            return {"latest_tick": None, "status": "disconnected", "error": str(e)}

    async def get_additional_data(self, address: str) -> dict:
        """Asset holdings; each failed lookup becomes an {"error": ...} entry."""
        lookups = {
            "owned_assets": self.rpc.get_owned_assets,
            "possessed_assets": self.rpc.get_possessed_assets,
            "issued_assets": self.rpc.get_issued_assets,
        }
        additional = {}
        for key, lookup in lookups.items():
            try:
                additional[key] = await lookup(address)
            except Exception as e:
                additional[key] = {"error": f"Failed to fetch: {e}"}
        return additional

    async def analyze_wallet(self, address: str) -> WalletAnalysis:
        if not is_valid_address(address):
            return WalletAnalysis(
                address=address,
                valid=False,
                network={"status": "disconnected"},
                error="Invalid wallet address format",
            )

        network, balance = await asyncio.gather(
            self.get_network_info(),
            self.rpc.get_balance(address),
            return_exceptions=True,
        )

        analysis = WalletAnalysis(address=address, valid=True, network=network)
        if isinstance(balance, Exception):
            analysis.error = f"Failed to fetch balance: {balance}"
        else:
            analysis.balance = balance

        analysis.additional_data = await self.get_additional_data(address)
        return analysis
