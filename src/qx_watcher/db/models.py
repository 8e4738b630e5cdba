"""SQLite schema for the event store."""

SCHEMA = """
-- One row per exchange action; tx_id is the idempotency key
CREATE TABLE IF NOT EXISTS qx_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TIMESTAMP NOT NULL,
    tx_id TEXT NOT NULL UNIQUE,
    procedure_type_value INTEGER,
    procedure_type_name TEXT NOT NULL,
    source_id TEXT NOT NULL,
    dest_id TEXT,
    amount TEXT,
    tick_number INTEGER,
    timestamp INTEGER,
    money_flew INTEGER,
    issuer_address TEXT,
    asset_name TEXT,
    price REAL,
    number_of_shares INTEGER,
    input_type INTEGER,
    input_hex TEXT,
    signature_hex TEXT,
    raw_payload TEXT NOT NULL
);

-- Wallet recency, touched on every event from the wallet
CREATE TABLE IF NOT EXISTS wallets (
    address TEXT PRIMARY KEY,
    first_seen_at TIMESTAMP NOT NULL,
    last_seen_at TIMESTAMP NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_qx_events_source ON qx_events(source_id);
CREATE INDEX IF NOT EXISTS idx_qx_events_dest ON qx_events(dest_id);
CREATE INDEX IF NOT EXISTS idx_qx_events_timestamp ON qx_events(timestamp);
"""

# Columns written from a CanonicalEvent, in insert order
EVENT_COLUMNS = (
    "tx_id",
    "procedure_type_value",
    "procedure_type_name",
    "source_id",
    "dest_id",
    "amount",
    "tick_number",
    "timestamp",
    "money_flew",
    "issuer_address",
    "asset_name",
    "price",
    "number_of_shares",
    "input_type",
    "input_hex",
    "signature_hex",
    "raw_payload",
)
