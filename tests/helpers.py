"""Event builders shared across tests."""

from qx_watcher.events import CanonicalEvent

WALLET_A = "A" * 60
WALLET_B = "B" * 60
JAN_1_2024_MS = 1_704_067_200_000


def make_event(**overrides) -> CanonicalEvent:
    """Build a canonical event with sensible defaults."""
    values = {
        "tx_id": "tx-1",
        "procedure_type_value": 6,
        "procedure_type_name": "AddToBidOrder",
        "source_id": WALLET_A,
        "dest_id": "",
        "amount": "100",
        "tick_number": 1000,
        "timestamp": JAN_1_2024_MS,
        "asset_name": "QUBIC",
    }
    values.update(overrides)
    return CanonicalEvent(**values)
