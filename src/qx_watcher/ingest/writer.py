"""Event store writer - idempotent persistence of normalized events."""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from ..db import Repository
from ..errors import DuplicateEventError
from ..events import CanonicalEvent
from ..feed.broadcast import InsertionBroadcaster
from .normalizer import EventNormalizer

logger = logging.getLogger(__name__)


class ConflictPolicy(str, Enum):
    """What to do when an incoming tx_id is already stored."""

    MERGE = "merge"  # Overwrite the stored row with the incoming values
    REJECT = "reject"  # Keep the stored row, report the record as a duplicate


class BatchMode(str, Enum):
    """How a failing record affects the rest of a batch."""

    ABORT = "abort"  # Stop at the first failure
    CONTINUE = "continue"  # Attempt every record, report each


class WriteStatus(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class WriteResult:
    """Outcome of writing one record."""

    index: int
    status: WriteStatus
    tx_id: str | None = None
    event_id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not WriteStatus.FAILED

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class IngestResult:
    """Outcome of a whole webhook request."""

    batch: bool
    results: list[WriteResult] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and all(result.ok for result in self.results)

    @property
    def event_ids(self) -> list[int]:
        return [r.event_id for r in self.results if r.event_id is not None]


class EventWriter:
    """
    Persists canonical events with at most one row per tx_id.

    After each event row commits, the source wallet's recency record is
    upserted. That second write is best-effort: its failure is logged and
    does not affect the result of the event write.
    """

    def __init__(
        self,
        repository: Repository,
        normalizer: EventNormalizer | None = None,
        broadcaster: InsertionBroadcaster | None = None,
        conflict_policy: ConflictPolicy = ConflictPolicy.MERGE,
        batch_mode: BatchMode = BatchMode.ABORT,
    ):
        self.repository = repository
        self.normalizer = normalizer or EventNormalizer()
        self.broadcaster = broadcaster
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.batch_mode = BatchMode(batch_mode)

    async def write(self, event: CanonicalEvent, index: int = 0) -> WriteResult:
        """Write one normalized event under the configured conflict policy."""
        if self.conflict_policy is ConflictPolicy.MERGE:
            event_id, inserted = await self.repository.upsert_event(event)
            status = WriteStatus.INSERTED if inserted else WriteStatus.UPDATED
        else:
            try:
                event_id = await self.repository.insert_event(event)
                status = WriteStatus.INSERTED
            except DuplicateEventError as e:
                logger.info(f"Duplicate event {e.tx_id} ignored (stored as {e.existing_id})")
                event_id = e.existing_id
                status = WriteStatus.DUPLICATE

        logger.info(f"Event {event.tx_id} {status.value} as {event_id}")

        if status is WriteStatus.INSERTED and self.broadcaster:
            stored = await self.repository.get_event(event_id)
            if stored:
                self.broadcaster.publish(stored)

        if status is not WriteStatus.DUPLICATE:
            await self._touch_wallet(event.source_id)

        return WriteResult(index=index, status=status, tx_id=event.tx_id, event_id=event_id)

    async def _touch_wallet(self, address: str):
        if not address:
            return
        try:
            await self.repository.upsert_wallet(address)
        except Exception as e:
            logger.error(f"Error upserting source wallet {address[:10]}...: {e}")

    async def ingest(self, body: Any) -> IngestResult:
        """
        Normalize and write a decoded webhook body.

        A single object yields one result. Arrays are processed in order;
        the batch mode decides whether a failure stops the remaining
        records. Records committed before a failure stay committed.
        """
        records = self.normalizer.split_records(body)
        outcome = IngestResult(batch=isinstance(body, list))

        for index, record in enumerate(records):
            try:
                event = self.normalizer.normalize_record(record)
                result = await self.write(event, index=index)
            except Exception as e:
                logger.error(f"Error ingesting record {index}: {e}")
                outcome.results.append(
                    WriteResult(index=index, status=WriteStatus.FAILED, error=str(e))
                )
                if self.batch_mode is BatchMode.ABORT or not outcome.batch:
                    outcome.error = str(e)
                    break
                continue

            outcome.results.append(result)

        failed = sum(1 for r in outcome.results if not r.ok)
        if failed and outcome.error is None:
            outcome.error = f"{failed} of {len(records)} records failed"
        return outcome
