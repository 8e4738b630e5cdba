"""Normalizes inbound QX webhook payloads into canonical events.

Two payload shapes have been sent to the webhook over time:

* nested: ``RawTransaction.transaction`` carries the chain transaction
  (including ``txId``) and ``ParsedTransaction`` the decoded QX call.
* flat: all fields at the top level, ``moneyFlow`` instead of ``moneyFlew``
  and no ``txId``.

The shape is detected per record by the presence of ``RawTransaction``.
"""

import logging
import math
import time
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from ..errors import MalformedPayloadError
from ..events import CanonicalEvent

logger = logging.getLogger(__name__)


class PayloadShape(str, Enum):
    NESTED = "nested"
    FLAT = "flat"


def detect_shape(record: dict) -> PayloadShape:
    """Return the payload shape of a single webhook record."""
    if "RawTransaction" in record:
        return PayloadShape.NESTED
    return PayloadShape.FLAT


def to_epoch_millis(value: Any) -> int | None:
    """
    Convert a payload timestamp to epoch milliseconds.

    Accepts ISO-8601 strings (naive values are UTC), numeric strings and
    numbers. Numbers below 1e12 are taken as seconds.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, str):
        text = value.strip()
        try:
            numeric = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise MalformedPayloadError(f"Unparseable timestamp: {value!r}")
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)
        value = numeric

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise MalformedPayloadError(f"Non-finite timestamp: {value!r}")
        if value < 1e12:  # Seconds
            value = value * 1000
        return int(value)

    raise MalformedPayloadError(f"Unsupported timestamp type: {type(value).__name__}")


def _amount_text(value: Any) -> str:
    """String-encode an amount without introducing a decimal point."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _optional_int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class EventNormalizer:
    """
    Converts webhook bodies into CanonicalEvent drafts.

    The normalizer keeps a running count of accepted records per payload
    shape so the mix of shapes in production is observable.
    """

    def __init__(self, clock_ms: Callable[[], int] | None = None):
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)
        self.shape_counts: Counter[str] = Counter()

    def normalize_payload(self, body: Any) -> list[CanonicalEvent]:
        """
        Normalize a decoded JSON body (object or array of objects).

        Raises:
            MalformedPayloadError: if any record cannot be normalized
        """
        return [self.normalize_record(record) for record in self.split_records(body)]

    @staticmethod
    def split_records(body: Any) -> list[Any]:
        """Return the records of a body, in order."""
        if isinstance(body, list):
            return list(body)
        return [body]

    def normalize_record(self, record: Any) -> CanonicalEvent:
        """Normalize one webhook record."""
        if not isinstance(record, dict):
            raise MalformedPayloadError(
                f"Expected a JSON object, got {type(record).__name__}"
            )

        shape = detect_shape(record)
        if shape is PayloadShape.NESTED:
            event = self._from_nested(record)
        else:
            event = self._from_flat(record)

        self.shape_counts[shape.value] += 1
        logger.debug(f"Normalized {shape.value} record {event.tx_id}")
        return event

    def _from_nested(self, record: dict) -> CanonicalEvent:
        raw_tx = record.get("RawTransaction") or {}
        if not isinstance(raw_tx, dict):
            raise MalformedPayloadError("RawTransaction must be an object")
        transaction = raw_tx.get("transaction") or {}
        parsed = record.get("ParsedTransaction") or {}

        tx_id = transaction.get("txId")
        if not tx_id:
            raise MalformedPayloadError("Nested payload is missing transaction.txId")

        return CanonicalEvent(
            tx_id=str(tx_id),
            procedure_type_value=_optional_int(record.get("ProcedureTypeValue")),
            procedure_type_name=record.get("ProcedureTypeName") or "",
            source_id=transaction.get("sourceId") or "",
            dest_id=transaction.get("destId") or "",
            amount=_amount_text(transaction.get("amount")),
            tick_number=_optional_int(transaction.get("tickNumber")),
            timestamp=to_epoch_millis(raw_tx.get("timestamp")),
            money_flew=_optional_bool(raw_tx.get("moneyFlew")),
            issuer_address=parsed.get("IssuerAddress"),
            asset_name=parsed.get("AssetName"),
            price=_optional_float(parsed.get("Price")),
            number_of_shares=_optional_int(parsed.get("NumberOfShares")),
            input_type=_optional_int(transaction.get("inputType")),
            input_hex=transaction.get("inputHex"),
            signature_hex=transaction.get("signatureHex"),
            raw_payload=record,
        )

    def _from_flat(self, record: dict) -> CanonicalEvent:
        source_id = record.get("sourceId")
        tick_number = _optional_int(record.get("tickNumber"))
        if not source_id or tick_number is None:
            raise MalformedPayloadError(
                "Flat payload requires sourceId and tickNumber"
            )

        tx_id = record.get("txId") or f"{tick_number}_{source_id}_{self._clock_ms()}"

        return CanonicalEvent(
            tx_id=str(tx_id),
            procedure_type_value=_optional_int(record.get("ProcedureTypeValue")),
            procedure_type_name=record.get("ProcedureTypeName") or "",
            source_id=str(source_id),
            dest_id=record.get("destId") or "",
            amount=_amount_text(record.get("amount")),
            tick_number=tick_number,
            timestamp=to_epoch_millis(record.get("timestamp")),
            money_flew=_optional_bool(record.get("moneyFlow")),
            issuer_address=record.get("IssuerAddress"),
            asset_name=record.get("AssetName"),
            price=_optional_float(record.get("Price")),
            number_of_shares=_optional_int(record.get("NumberOfShares")),
            raw_payload=record,
        )
