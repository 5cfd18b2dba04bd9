"""Unit tests for DatabaseClient."""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from casework.core.database import DatabaseClient, create_engine


async def table_names(engine):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())


class TestDatabaseClient:
    """Test suite for DatabaseClient."""

    @pytest.mark.asyncio
    async def test_connect_and_health_check(self, engine):
        database = DatabaseClient(engine)

        await database.connect()
        health = await database.health_check()

        assert health == {"status": "healthy", "dialect": "sqlite"}

    @pytest.mark.asyncio
    async def test_create_tables_is_idempotent(self, engine):
        database = DatabaseClient(engine)

        await database.create_tables()

        assert {"cases", "documents", "generated_documents"} <= set(await table_names(engine))

    @pytest.mark.asyncio
    async def test_drop_tables(self, engine):
        database = DatabaseClient(engine)

        await database.drop_tables()

        assert await table_names(engine) == []

    @pytest.mark.asyncio
    async def test_unreachable_database_reported_unhealthy(self, tmp_path):
        missing = tmp_path / "missing" / "casework.db"
        database = DatabaseClient(create_engine(f"sqlite+aiosqlite:///{missing}"))

        health = await database.health_check()
        with pytest.raises(OperationalError):
            await database.connect()

        assert health["status"] == "unhealthy"
        assert "error" in health
        await database.disconnect()
