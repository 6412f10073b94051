"""Persistence operations for room preferences, sessions and results."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import delete, func, select, union
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import RoomResultRecord, UserPreference, UserSession
from ..errors import StoreError
from ..models import Preference, RoomResult, YearRange

logger = logging.getLogger(__name__)


class RoomStore:
    """Reads and writes the room tables through an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert_preference(self, preference: Preference) -> None:
        """Insert the preference or replace the user's previous submission."""

        try:
            inserted = await self._write_preference(preference)
            if not inserted:
                # A concurrent submission by the same user created the row first.
                inserted = await self._write_preference(preference)
            if not inserted:
                raise StoreError(
                    "Failed to save preferences", room_id=preference.room_id
                )
        except SQLAlchemyError as exc:
            self._log_failure("upsert_preference", preference.room_id, exc)
            raise StoreError(
                "Failed to save preferences", room_id=preference.room_id
            ) from exc

    async def _write_preference(self, preference: Preference) -> bool:
        async with self._session_factory() as session:
            stmt = select(UserPreference).where(
                UserPreference.room_id == preference.room_id,
                UserPreference.user_id == preference.user_id,
            )
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            if record is None:
                record = UserPreference(
                    room_id=preference.room_id,
                    user_id=preference.user_id,
                )
                session.add(record)
            record.genres = list(preference.genres)
            record.year_start = preference.years.start
            record.year_end = preference.years.end
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def list_preferences(self, room_id: str) -> list[Preference]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(UserPreference)
                    .where(UserPreference.room_id == room_id)
                    .order_by(UserPreference.id)
                )
                result = await session.execute(stmt)
                records = result.scalars().all()
        except SQLAlchemyError as exc:
            self._log_failure("list_preferences", room_id, exc)
            raise StoreError("Failed to fetch preferences", room_id=room_id) from exc
        return [
            Preference(
                user_id=record.user_id,
                room_id=record.room_id,
                genres=tuple(record.genres or ()),
                years=YearRange(start=record.year_start, end=record.year_end),
            )
            for record in records
        ]

    async def has_preferences(self, room_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(UserPreference.id)
                    .where(UserPreference.room_id == room_id)
                    .limit(1)
                )
                result = await session.execute(stmt)
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as exc:
            self._log_failure("has_preferences", room_id, exc)
            raise StoreError("Failed to fetch preferences", room_id=room_id) from exc

    async def count_online_sessions(self, room_id: str) -> int:
        try:
            async with self._session_factory() as session:
                stmt = select(func.count(UserSession.id)).where(
                    UserSession.room_id == room_id,
                    UserSession.is_online.is_(True),
                )
                result = await session.execute(stmt)
                return int(result.scalar_one())
        except SQLAlchemyError as exc:
            self._log_failure("count_online_sessions", room_id, exc)
            raise StoreError("Failed to fetch users", room_id=room_id) from exc

    async def get_result(self, room_id: str) -> RoomResult | None:
        try:
            async with self._session_factory() as session:
                stmt = select(RoomResultRecord).where(
                    RoomResultRecord.room_id == room_id
                )
                result = await session.execute(stmt)
                record = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._log_failure("get_result", room_id, exc)
            raise StoreError("Failed to fetch results", room_id=room_id) from exc
        if record is None:
            return None
        return RoomResult(
            room_id=record.room_id,
            movies=list(record.movies or []),
            created_at=record.created_at,
        )

    async def insert_result(
        self, room_id: str, movies: Sequence[dict[str, Any]]
    ) -> bool:
        """Store the room's result; ``False`` when one already exists."""

        try:
            async with self._session_factory() as session:
                session.add(RoomResultRecord(room_id=room_id, movies=list(movies)))
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    logger.info(
                        "Result for room %s already stored by another request",
                        room_id,
                    )
                    return False
        except SQLAlchemyError as exc:
            self._log_failure("insert_result", room_id, exc)
            raise StoreError("Failed to save results", room_id=room_id) from exc
        return True

    async def delete_inactive_rooms(self) -> list[str]:
        """Remove every room without an online session and return their ids."""

        try:
            async with self._session_factory() as session:
                online = select(UserSession.room_id).where(
                    UserSession.is_online.is_(True)
                )
                candidates = union(
                    select(UserPreference.room_id),
                    select(RoomResultRecord.room_id),
                    select(UserSession.room_id),
                )
                known = set((await session.execute(candidates)).scalars().all())
                active = set((await session.execute(online)).scalars().all())
                room_ids = sorted(known - active)
                if not room_ids:
                    return []
                for model in (UserPreference, RoomResultRecord, UserSession):
                    await session.execute(
                        delete(model).where(model.room_id.in_(room_ids))
                    )
                await session.commit()
        except SQLAlchemyError as exc:
            self._log_failure("delete_inactive_rooms", None, exc)
            raise StoreError("Failed to clean inactive rooms") from exc
        return room_ids

    @staticmethod
    def _log_failure(operation: str, room_id: str | None, exc: Exception) -> None:
        logger.error("Store operation %s failed for room %s: %s", operation, room_id, exc)
