"""API clients: the watcher's read API, insertion stream and Qubic RPC."""

from .events_api import EventsApiClient
from .qubic_rpc import BalanceInfo, QubicRpcClient, WalletAnalysis, WalletAnalyzer
from .websocket import InsertionStreamClient

__all__ = [
    "EventsApiClient",
    "InsertionStreamClient",
    "QubicRpcClient",
    "WalletAnalyzer",
    "WalletAnalysis",
    "BalanceInfo",
]
