"""Canonical QX event record shared by ingestion, storage and analysis."""

from dataclasses import asdict, dataclass, field
from enum import Enum


class ProcedureType(str, Enum):
    """QX procedure names as they appear in webhook payloads."""

    ISSUE_ASSET = "IssueAsset"
    ADD_TO_ASK_ORDER = "AddToAskOrder"
    ADD_TO_BID_ORDER = "AddToBidOrder"
    REMOVE_FROM_ASK_ORDER = "RemoveFromAskOrder"
    REMOVE_FROM_BID_ORDER = "RemoveFromBidOrder"
    TRANSFER_SHARE_OWNERSHIP = "TransferShareOwnershipAndPossession"
    TRANSFER_SHARE_MANAGEMENT = "TransferShareManagementRights"


# Dashboard action categories
ACTION_CATEGORIES = {
    ProcedureType.ADD_TO_BID_ORDER.value: "bid",
    ProcedureType.ADD_TO_ASK_ORDER.value: "ask",
    ProcedureType.TRANSFER_SHARE_OWNERSHIP.value: "transfer",
    ProcedureType.TRANSFER_SHARE_MANAGEMENT.value: "transfer",
    ProcedureType.ISSUE_ASSET.value: "issue",
    ProcedureType.REMOVE_FROM_ASK_ORDER.value: "cancel",
    ProcedureType.REMOVE_FROM_BID_ORDER.value: "cancel",
}

DEFAULT_TOKEN = "QUBIC"


def action_category(procedure_type_name: str | None) -> str:
    """Map a procedure name to bid/ask/transfer/issue/cancel, or 'other'."""
    return ACTION_CATEGORIES.get(procedure_type_name or "", "other")


@dataclass
class CanonicalEvent:
    """One exchange action, normalized from either webhook payload shape."""

    tx_id: str
    procedure_type_value: int | None
    procedure_type_name: str
    source_id: str
    dest_id: str
    amount: str  # String-encoded integer, may be empty
    tick_number: int | None
    timestamp: int | None  # Epoch milliseconds
    money_flew: bool | None = None
    issuer_address: str | None = None
    asset_name: str | None = None
    price: float | None = None
    number_of_shares: int | None = None
    input_type: int | None = None
    input_hex: str | None = None
    signature_hex: str | None = None
    raw_payload: dict = field(default_factory=dict)
    # Assigned by the store
    id: int | None = None
    created_at: str | None = None

    @property
    def token(self) -> str:
        """Token symbol used for threshold lookups."""
        return (self.asset_name or DEFAULT_TOKEN).upper()

    @property
    def category(self) -> str:
        return action_category(self.procedure_type_name)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CanonicalEvent":
        """Build an event from a serialized record, ignoring unknown keys."""
        known = cls.__dataclass_fields__.keys()
        values = {key: value for key, value in data.items() if key in known}
        values.setdefault("raw_payload", {})
        return cls(**values)


@dataclass
class WalletRecord:
    """Recency tracking for a wallet that has appeared as an event source."""

    address: str
    first_seen_at: str
    last_seen_at: str
