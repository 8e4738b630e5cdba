"""Database repository for QX events and wallet recency."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from ..errors import DuplicateEventError, StoreUnavailableError
from ..events import CanonicalEvent, WalletRecord
from .models import EVENT_COLUMNS, SCHEMA

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """Database repository for all persistence operations."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self):
        """Initialize the database and create tables."""
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        # Create tables
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

        logger.info(f"Database initialized at {self.db_path}")

    async def close(self):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if not self._connection:
            raise StoreUnavailableError(
                "Database not initialized. Call initialize() first."
            )
        return self._connection

    # Event Operations

    @staticmethod
    def _event_values(event: CanonicalEvent) -> tuple:
        values = []
        for column in EVENT_COLUMNS:
            value = getattr(event, column)
            if column == "raw_payload":
                value = json.dumps(value)
            elif column == "money_flew" and value is not None:
                value = int(value)
            values.append(value)
        return tuple(values)

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> CanonicalEvent:
        money_flew = row["money_flew"]
        return CanonicalEvent(
            id=row["id"],
            created_at=row["created_at"],
            tx_id=row["tx_id"],
            procedure_type_value=row["procedure_type_value"],
            procedure_type_name=row["procedure_type_name"],
            source_id=row["source_id"],
            dest_id=row["dest_id"] or "",
            amount=row["amount"] or "",
            tick_number=row["tick_number"],
            timestamp=row["timestamp"],
            money_flew=bool(money_flew) if money_flew is not None else None,
            issuer_address=row["issuer_address"],
            asset_name=row["asset_name"],
            price=row["price"],
            number_of_shares=row["number_of_shares"],
            input_type=row["input_type"],
            input_hex=row["input_hex"],
            signature_hex=row["signature_hex"],
            raw_payload=json.loads(row["raw_payload"]) if row["raw_payload"] else {},
        )

    async def get_event_id(self, tx_id: str) -> int | None:
        """Look up the row id stored for a tx_id."""
        async with self.conn.execute(
            "SELECT id FROM qx_events WHERE tx_id = ?", (tx_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["id"] if row else None

    async def get_event(self, event_id: int) -> CanonicalEvent | None:
        """Fetch a single event by id."""
        async with self.conn.execute(
            "SELECT * FROM qx_events WHERE id = ?", (event_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_event(row) if row else None

    async def insert_event(self, event: CanonicalEvent) -> int:
        """
        Insert an event, refusing duplicates.

        Raises:
            DuplicateEventError: if the tx_id is already stored
        """
        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        try:
            async with self.conn.execute(
                f"""
                INSERT INTO qx_events (created_at, {", ".join(EVENT_COLUMNS)})
                VALUES (?, {placeholders})
                """,
                (_now_iso(), *self._event_values(event)),
            ) as cursor:
                event_id = cursor.lastrowid
        except aiosqlite.IntegrityError:
            await self.conn.rollback()
            raise DuplicateEventError(event.tx_id, await self.get_event_id(event.tx_id))

        await self.conn.commit()
        return event_id or 0

    async def upsert_event(self, event: CanonicalEvent) -> tuple[int, bool]:
        """
        Insert an event or overwrite the stored row with the same tx_id.

        The stored row keeps its id and created_at.

        Returns:
            (event_id, inserted) tuple
        """
        existing_id = await self.get_event_id(event.tx_id)
        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        updates = ", ".join(
            f"{column} = excluded.{column}" for column in EVENT_COLUMNS if column != "tx_id"
        )
        await self.conn.execute(
            f"""
            INSERT INTO qx_events (created_at, {", ".join(EVENT_COLUMNS)})
            VALUES (?, {placeholders})
            ON CONFLICT(tx_id) DO UPDATE SET {updates}
            """,
            (_now_iso(), *self._event_values(event)),
        )
        await self.conn.commit()

        event_id = await self.get_event_id(event.tx_id)
        return event_id or 0, existing_id is None

    async def list_recent(self, limit: int = 100) -> list[CanonicalEvent]:
        """Get the most recently inserted events, newest first."""
        async with self.conn.execute(
            "SELECT * FROM qx_events ORDER BY id DESC LIMIT ?", (limit,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_event(row) for row in rows]

    async def list_by_wallet(self, address: str, limit: int = 20) -> list[CanonicalEvent]:
        """Get events where the wallet is source or destination, newest first."""
        async with self.conn.execute(
            """
            SELECT * FROM qx_events
            WHERE source_id = ? OR dest_id = ?
            ORDER BY id DESC LIMIT ?
            """,
            (address, address, limit),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_event(row) for row in rows]

    async def list_since(self, timestamp_ms: int) -> list[CanonicalEvent]:
        """Get events whose chain timestamp is at or after the given time."""
        async with self.conn.execute(
            "SELECT * FROM qx_events WHERE timestamp >= ? ORDER BY id DESC",
            (timestamp_ms,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_event(row) for row in rows]

    async def count_events(self) -> int:
        async with self.conn.execute("SELECT COUNT(*) AS count FROM qx_events") as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    # Wallet Operations

    async def upsert_wallet(self, address: str, seen_at: datetime | None = None):
        """Record that a wallet was seen as an event source."""
        seen = (seen_at or datetime.now(timezone.utc)).isoformat()
        await self.conn.execute(
            """
            INSERT INTO wallets (address, first_seen_at, last_seen_at)
            VALUES (?, ?, ?)
            ON CONFLICT(address) DO UPDATE SET
                last_seen_at = excluded.last_seen_at
            """,
            (address, seen, seen),
        )
        await self.conn.commit()

    async def get_wallet(self, address: str) -> WalletRecord | None:
        """Get the recency record for a wallet."""
        async with self.conn.execute(
            "SELECT * FROM wallets WHERE address = ?", (address,)
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None

            return WalletRecord(
                address=row["address"],
                first_seen_at=row["first_seen_at"],
                last_seen_at=row["last_seen_at"],
            )
