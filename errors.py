"""Error types shared by the ingestion and query paths."""

from __future__ import annotations


class InvalidPayload(ValueError):
    """A reading lacks the fields needed to identify its room."""


class RoomNotFound(KeyError):
    """No reading has been cached for the requested room."""

    def __init__(self, room_id: str) -> None:
        super().__init__(room_id)
        self.room_id = room_id

    def __str__(self) -> str:
        return f"Room {self.room_id!r} not found."


class StoreError(Exception):
    """Base class for durable tier failures."""


class StoreUnavailable(StoreError):
    """The durable tier is unreachable, closed or did not answer in time."""


class WriteRejected(StoreError):
    """The durable tier refused a record that violates its constraints."""
