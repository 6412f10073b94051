from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError

from app.database import Database
from app.db_models import RoomResultRecord


def test_create_all_builds_room_tables(tmp_path) -> None:
    """All three room tables exist with their uniqueness guarantees."""

    database_path = tmp_path / "rooms.db"
    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        tables = set(inspector.get_table_names())
        preference_uniques = inspector.get_unique_constraints("user_preferences")
        result_uniques = inspector.get_unique_constraints("room_results")
    finally:
        inspector_engine.dispose()

    assert {"user_preferences", "user_sessions", "room_results"} <= tables
    assert any(
        set(constraint["column_names"]) == {"room_id", "user_id"}
        for constraint in preference_uniques
    )
    assert any(constraint["column_names"] == ["room_id"] for constraint in result_uniques)


def test_second_result_for_room_is_rejected(tmp_path) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'rooms.db'}")
        await database.create_all()
        try:
            async with database.session() as session:
                session.add(RoomResultRecord(room_id="room-1", movies=[]))
                await session.commit()
            async with database.session() as session:
                session.add(RoomResultRecord(room_id="room-1", movies=[{"id": 1}]))
                with pytest.raises(IntegrityError):
                    await session.commit()
        finally:
            await database.dispose()

    asyncio.run(runner())
