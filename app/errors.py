"""Exception hierarchy shared by the room services and the HTTP layer."""

from __future__ import annotations


class RoomServiceError(Exception):
    """Base exception for the application."""

    status_code = 500

    def __init__(self, message: str, *, room_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.room_id = room_id


class InvalidInput(RoomServiceError):
    """The request payload failed validation."""

    status_code = 400


class NotFound(RoomServiceError):
    """The requested room has no recorded state."""

    status_code = 404


class StoreError(RoomServiceError):
    """The persistence layer failed or rejected an operation."""


class ExternalApiError(RoomServiceError):
    """The movie catalog API was unreachable or answered with an error."""
