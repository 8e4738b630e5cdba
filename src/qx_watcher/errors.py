"""Exceptions raised across the watcher."""


class QxWatcherError(Exception):
    """Base class for watcher errors."""


class MalformedPayloadError(QxWatcherError, ValueError):
    """Webhook body is not valid JSON or lacks identifying fields."""


class DuplicateEventError(QxWatcherError):
    """An insert-only write hit an existing tx_id."""

    def __init__(self, tx_id: str, existing_id: int | None):
        super().__init__(f"Event {tx_id} already stored")
        self.tx_id = tx_id
        self.existing_id = existing_id


class StoreUnavailableError(QxWatcherError, RuntimeError):
    """The event store is not initialized or cannot be reached."""
