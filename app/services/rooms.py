"""Preference intake, readiness gate and aggregation for rooms."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from pydantic import ValidationError

from ..aggregation import build_catalog_query
from ..config import Settings
from ..errors import InvalidInput, NotFound
from ..models import Preference, RoomResult, RoomStatus
from .kinopoisk import KinopoiskClient
from .store import RoomStore

logger = logging.getLogger(__name__)


def has_quorum(preference_count: int, online_count: int) -> bool:
    """Every online participant has submitted and the room is not empty."""

    return preference_count > 0 and preference_count == online_count


def format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = str(error.get("msg", "invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid input"


class RoomService:
    """Coordinates preference submissions with catalog aggregation."""

    def __init__(
        self,
        settings: Settings,
        store: RoomStore,
        catalog: KinopoiskClient,
    ):
        self._settings = settings
        self._store = store
        self._catalog = catalog
        self._locks: dict[str, asyncio.Lock] = {}

    async def submit_preferences(
        self,
        user_id: Any,
        room_id: Any,
        genres: Any,
        years: Any,
    ) -> RoomStatus:
        """Record one user's preferences and aggregate once quorum is reached."""

        try:
            preference = Preference.model_validate(
                {
                    "user_id": user_id,
                    "room_id": room_id,
                    "genres": genres,
                    "years": years,
                }
            )
        except ValidationError as exc:
            message = format_validation_error(exc)
            logger.info("Rejected preferences for room %s: %s", room_id, message)
            raise InvalidInput(
                message, room_id=room_id if isinstance(room_id, str) else None
            ) from exc

        await self._store.upsert_preference(preference)
        logger.info(
            "Stored preferences of user %s for room %s",
            preference.user_id,
            preference.room_id,
        )
        return await self._evaluate_room(preference.room_id)

    async def check_status(self, room_id: Any) -> RoomStatus:
        """Report whether the room has results, is waiting, or is unknown."""

        room_id = self._clean_room_id(room_id)
        if await self._store.get_result(room_id) is not None:
            return "ready"
        if await self._store.has_preferences(room_id):
            return "waiting"
        raise NotFound(f"Room {room_id} not found", room_id=room_id)

    async def get_results(self, room_id: Any) -> RoomResult:
        """Return the stored recommendation set for a room."""

        room_id = self._clean_room_id(room_id)
        result = await self._store.get_result(room_id)
        if result is None:
            raise NotFound(f"No results for room {room_id}", room_id=room_id)
        return result

    async def retry_aggregation(self, room_id: Any) -> RoomStatus:
        """Re-run the readiness gate for a room without a new submission."""

        room_id = self._clean_room_id(room_id)
        if await self._store.get_result(room_id) is not None:
            return "ready"
        if not await self._store.has_preferences(room_id):
            raise NotFound(f"Room {room_id} not found", room_id=room_id)
        logger.info("Retrying aggregation for room %s", room_id)
        return await self._evaluate_room(room_id)

    async def clean_inactive_rooms(self) -> int:
        """Delete rooms that no longer have any online participant."""

        removed = await self._store.delete_inactive_rooms()
        for room_id in removed:
            self._locks.pop(room_id, None)
        if removed:
            logger.info("Removed %s inactive rooms", len(removed))
        return len(removed)

    async def aggregate(
        self, room_id: str, preferences: Sequence[Preference]
    ) -> RoomResult:
        """Query the catalog with the merged preferences and store the result."""

        query = build_catalog_query(
            preferences,
            page_size=self._settings.catalog_page_size,
            content_types=self._settings.catalog_content_types,
            extra_year_limit=self._settings.extra_year_limit,
        )
        logger.info(
            "Aggregating %s preferences for room %s: years %s, genres %s",
            len(preferences),
            room_id,
            query.year_filter,
            ", ".join(query.genres),
        )
        movies = await self._catalog.search(query, room_id=room_id)
        stored = await self._store.insert_result(room_id, movies)
        if not stored:
            existing = await self._store.get_result(room_id)
            if existing is not None:
                return existing
        return RoomResult(room_id=room_id, movies=movies)

    async def _evaluate_room(self, room_id: str) -> RoomStatus:
        lock = self._locks.setdefault(room_id, asyncio.Lock())
        async with lock:
            if await self._store.get_result(room_id) is not None:
                self._locks.pop(room_id, None)
                return "ready"
            preferences = await self._store.list_preferences(room_id)
            online_count = await self._store.count_online_sessions(room_id)
            if not has_quorum(len(preferences), online_count):
                logger.info(
                    "Room %s waiting: %s of %s online users submitted",
                    room_id,
                    len(preferences),
                    online_count,
                )
                return "waiting"
            await self.aggregate(room_id, preferences)
        self._locks.pop(room_id, None)
        return "ready"

    @staticmethod
    def _clean_room_id(room_id: Any) -> str:
        if not isinstance(room_id, str) or not room_id.strip():
            raise InvalidInput("room_id is required")
        return room_id.strip()
