"""Webhook ingestion: payload normalization and idempotent writes."""

from .normalizer import EventNormalizer, PayloadShape, detect_shape, to_epoch_millis
from .writer import (
    BatchMode,
    ConflictPolicy,
    EventWriter,
    IngestResult,
    WriteResult,
    WriteStatus,
)

__all__ = [
    "EventNormalizer",
    "PayloadShape",
    "detect_shape",
    "to_epoch_millis",
    "BatchMode",
    "ConflictPolicy",
    "EventWriter",
    "IngestResult",
    "WriteResult",
    "WriteStatus",
]
