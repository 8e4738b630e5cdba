"""
Tests for the event store repository and writer.

Tests cover:
- At most one row per tx_id under both conflict policies
- Wallet recency upserts that never fail the event write
- Batch abort vs continue semantics
- Realtime publication of true inserts only
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from qx_watcher.errors import DuplicateEventError, StoreUnavailableError
from qx_watcher.feed import InsertionBroadcaster
from qx_watcher.db import Repository
from qx_watcher.ingest import BatchMode, ConflictPolicy, EventWriter, WriteStatus

from .helpers import WALLET_A, WALLET_B, make_event


def flat_record(tx_id: str, **overrides) -> dict:
    record = {
        "txId": tx_id,
        "ProcedureTypeValue": 6,
        "ProcedureTypeName": "AddToBidOrder",
        "sourceId": WALLET_A,
        "destId": "",
        "amount": 1000,
        "tickNumber": 500,
        "timestamp": "2024-01-01T00:00:00Z",
        "AssetName": "QUBIC",
    }
    record.update(overrides)
    return record


class TestRepository:
    @pytest.mark.asyncio
    async def test_round_trips_all_fields(self, repository):
        event = make_event(
            money_flew=True,
            issuer_address="ISSUER",
            price=1.5,
            number_of_shares=20,
            input_type=6,
            input_hex="00",
            signature_hex="ff",
            raw_payload={"amount": 100},
        )
        event_id = await repository.insert_event(event)
        stored = await repository.get_event(event_id)

        assert stored.id == event_id
        assert stored.created_at
        assert stored.tx_id == "tx-1"
        assert stored.amount == "100"
        assert stored.money_flew is True
        assert stored.price == 1.5
        assert stored.raw_payload == {"amount": 100}

    @pytest.mark.asyncio
    async def test_insert_refuses_duplicates(self, repository):
        first_id = await repository.insert_event(make_event())

        with pytest.raises(DuplicateEventError) as excinfo:
            await repository.insert_event(make_event(amount="999"))

        assert excinfo.value.existing_id == first_id
        assert await repository.count_events() == 1
        assert (await repository.get_event(first_id)).amount == "100"

    @pytest.mark.asyncio
    async def test_upsert_overwrites_in_place(self, repository):
        first_id, inserted = await repository.upsert_event(make_event())
        assert inserted
        created_at = (await repository.get_event(first_id)).created_at

        second_id, inserted = await repository.upsert_event(make_event(amount="999"))

        assert not inserted
        assert second_id == first_id
        stored = await repository.get_event(first_id)
        assert stored.amount == "999"
        assert stored.created_at == created_at
        assert await repository.count_events() == 1

    @pytest.mark.asyncio
    async def test_listing(self, repository):
        await repository.insert_event(make_event(tx_id="1", source_id=WALLET_A))
        await repository.insert_event(make_event(tx_id="2", source_id=WALLET_B))
        await repository.insert_event(
            make_event(tx_id="3", source_id=WALLET_B, dest_id=WALLET_A, timestamp=5)
        )

        assert [e.tx_id for e in await repository.list_recent()] == ["3", "2", "1"]
        assert [e.tx_id for e in await repository.list_recent(limit=1)] == ["3"]
        assert [e.tx_id for e in await repository.list_by_wallet(WALLET_A)] == ["3", "1"]
        assert [e.tx_id for e in await repository.list_since(1000)] == ["2", "1"]

    @pytest.mark.asyncio
    async def test_wallet_upsert_keeps_first_seen(self, repository):
        await repository.upsert_wallet(WALLET_A)
        first = await repository.get_wallet(WALLET_A)
        await asyncio.sleep(0.01)
        await repository.upsert_wallet(WALLET_A)
        second = await repository.get_wallet(WALLET_A)

        assert second.first_seen_at == first.first_seen_at
        assert second.last_seen_at > first.last_seen_at

    @pytest.mark.asyncio
    async def test_uninitialized_store_is_unavailable(self, tmp_path):
        repository = Repository(tmp_path / "never.db")
        with pytest.raises(StoreUnavailableError):
            await repository.list_recent()


class TestEventWriter:
    @pytest.mark.asyncio
    async def test_merge_policy_is_idempotent(self, repository):
        writer = EventWriter(repository, conflict_policy=ConflictPolicy.MERGE)

        first = await writer.write(make_event())
        second = await writer.write(make_event(amount="200"))

        assert first.status is WriteStatus.INSERTED
        assert second.status is WriteStatus.UPDATED
        assert second.event_id == first.event_id
        assert await repository.count_events() == 1
        assert (await repository.get_event(first.event_id)).amount == "200"

    @pytest.mark.asyncio
    async def test_reject_policy_reports_duplicate(self, repository):
        writer = EventWriter(repository, conflict_policy=ConflictPolicy.REJECT)

        first = await writer.write(make_event())
        second = await writer.write(make_event(amount="200"))

        assert second.status is WriteStatus.DUPLICATE
        assert second.ok
        assert second.event_id == first.event_id
        assert (await repository.get_event(first.event_id)).amount == "100"

    @pytest.mark.asyncio
    async def test_source_wallet_is_recorded(self, repository):
        writer = EventWriter(repository)
        await writer.write(make_event(source_id=WALLET_B))
        assert await repository.get_wallet(WALLET_B) is not None

    @pytest.mark.asyncio
    async def test_wallet_failure_does_not_fail_write(self, repository):
        repository.upsert_wallet = AsyncMock(side_effect=RuntimeError("locked"))
        writer = EventWriter(repository)

        result = await writer.write(make_event())

        assert result.status is WriteStatus.INSERTED
        assert await repository.get_event(result.event_id) is not None

    @pytest.mark.asyncio
    async def test_only_inserts_are_published(self, repository):
        broadcaster = InsertionBroadcaster()
        queue = broadcaster.subscribe()
        writer = EventWriter(repository, broadcaster=broadcaster)

        inserted = await writer.write(make_event())
        await writer.write(make_event(amount="5"))

        published = queue.get_nowait()
        assert published.id == inserted.event_id
        assert published.created_at
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_single_object_body(self, repository):
        writer = EventWriter(repository)
        outcome = await writer.ingest(flat_record("one"))

        assert not outcome.batch
        assert outcome.success
        assert len(outcome.event_ids) == 1

    @pytest.mark.asyncio
    async def test_batch_abort_stops_at_first_failure(self, repository):
        writer = EventWriter(repository, batch_mode=BatchMode.ABORT)
        body = [flat_record("a"), {"txId": "broken"}, flat_record("c")]

        outcome = await writer.ingest(body)

        assert not outcome.success
        assert [r.status for r in outcome.results] == [
            WriteStatus.INSERTED,
            WriteStatus.FAILED,
        ]
        # Records before the failure stay committed
        assert await repository.get_event_id("a") is not None
        assert await repository.get_event_id("c") is None

    @pytest.mark.asyncio
    async def test_batch_continue_attempts_every_record(self, repository):
        writer = EventWriter(repository, batch_mode=BatchMode.CONTINUE)
        body = [flat_record("a"), {"txId": "broken"}, flat_record("c")]

        outcome = await writer.ingest(body)

        assert not outcome.success
        assert outcome.error == "1 of 3 records failed"
        assert [r.status for r in outcome.results] == [
            WriteStatus.INSERTED,
            WriteStatus.FAILED,
            WriteStatus.INSERTED,
        ]
        assert outcome.results[1].index == 1
        assert await repository.count_events() == 2

    @pytest.mark.asyncio
    async def test_redelivered_batch_leaves_one_row_per_tx(self, repository):
        writer = EventWriter(repository)
        body = [flat_record("a"), flat_record("b")]

        await writer.ingest(body)
        outcome = await writer.ingest(body)

        assert outcome.success
        assert [r.status for r in outcome.results] == [
            WriteStatus.UPDATED,
            WriteStatus.UPDATED,
        ]
        assert await repository.count_events() == 2
