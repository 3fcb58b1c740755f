"""
Tests for the health metric storage collaborators.

These tests verify that both storage implementations assign ids and
timestamps, return the newest record per user, and surface failures as
PersistenceError.
"""

from datetime import UTC
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vitals.config import DatabaseConfig
from vitals.domain.models import HealthMetricCreate, PersistenceError
from vitals.services.storage import (
    InMemoryHealthMetricsStorage,
    SQLiteHealthMetricsStorage,
    create_storage,
)


def _payload(user_id: str = "user_123", heart_rate: int = 72) -> HealthMetricCreate:
    return HealthMetricCreate(
        user_id=user_id,
        heart_rate=heart_rate,
        foot_pressure=85.3,
        bluetooth_connected=True,
        battery_level=84,
        anomalies_detected=1,
    )


class TestInMemoryStorage:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamp(self) -> None:
        storage = InMemoryHealthMetricsStorage()

        record = await storage.create_health_metrics(_payload())

        assert record.id
        assert record.recorded_at.tzinfo == UTC
        assert record.user_id == "user_123"
        assert record.foot_pressure == 85.3
        assert storage.records == [record]

    @pytest.mark.asyncio
    async def test_latest_is_per_user(self) -> None:
        storage = InMemoryHealthMetricsStorage()
        await storage.create_health_metrics(_payload("a", heart_rate=70))
        await storage.create_health_metrics(_payload("b", heart_rate=90))
        newest_a = await storage.create_health_metrics(_payload("a", heart_rate=75))

        assert await storage.get_latest_health_metrics("a") == newest_a
        assert (await storage.get_latest_health_metrics("b")).heart_rate == 90
        assert await storage.get_latest_health_metrics("nobody") is None


class TestSQLiteStorage:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "vitals.db"

        async with SQLiteHealthMetricsStorage(str(db_path)) as storage:
            created = await storage.create_health_metrics(_payload())
            latest = await storage.get_latest_health_metrics("user_123")

        assert db_path.exists()
        assert latest == created
        assert latest.bluetooth_connected is True
        assert latest.recorded_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_latest_returns_newest_insert(self, tmp_path: Path) -> None:
        async with SQLiteHealthMetricsStorage(str(tmp_path / "vitals.db")) as storage:
            await storage.create_health_metrics(_payload(heart_rate=70))
            await storage.create_health_metrics(_payload(heart_rate=71))
            newest = await storage.create_health_metrics(_payload(heart_rate=99))

            latest = await storage.get_latest_health_metrics("user_123")
            missing = await storage.get_latest_health_metrics("someone-else")

        assert latest is not None
        assert latest.id == newest.id
        assert latest.heart_rate == 99
        assert missing is None

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "vitals.db")
        async with SQLiteHealthMetricsStorage(db_path) as storage:
            created = await storage.create_health_metrics(_payload())

        async with SQLiteHealthMetricsStorage(db_path) as storage:
            latest = await storage.get_latest_health_metrics("user_123")

        assert latest is not None
        assert latest.id == created.id

    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self, tmp_path: Path) -> None:
        storage = SQLiteHealthMetricsStorage(str(tmp_path / "vitals.db"))

        with pytest.raises(PersistenceError, match="not initialised"):
            await storage.create_health_metrics(_payload())

    @pytest.mark.asyncio
    async def test_use_after_close_raises(self, tmp_path: Path) -> None:
        storage = SQLiteHealthMetricsStorage(str(tmp_path / "vitals.db"))
        await storage.initialize()
        await storage.close()

        with pytest.raises(PersistenceError):
            await storage.get_latest_health_metrics("user_123")

    @pytest.mark.asyncio
    async def test_directory_errors_are_wrapped(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        storage = SQLiteHealthMetricsStorage(str(blocker / "sub" / "vitals.db"))

        with pytest.raises(PersistenceError, match="could not initialise") as excinfo:
            await storage.initialize()

        assert isinstance(excinfo.value.__cause__, OSError)
        with pytest.raises(PersistenceError, match="not initialised"):
            await storage.get_latest_health_metrics("user_123")

    @pytest.mark.asyncio
    async def test_reinitialize_closes_previous_connection(self, tmp_path: Path) -> None:
        storage = SQLiteHealthMetricsStorage(str(tmp_path / "vitals.db"))
        await storage.initialize()
        first = storage._connection
        stale = AsyncMock()
        storage._connection = stale

        try:
            await storage.initialize()

            stale.close.assert_awaited_once()
            assert storage._connection is not stale
            assert await storage.get_latest_health_metrics("user_123") is None
        finally:
            await storage.close()
            await first.close()

    @pytest.mark.asyncio
    async def test_driver_errors_are_wrapped(self, tmp_path: Path) -> None:
        async with SQLiteHealthMetricsStorage(str(tmp_path / "vitals.db")) as storage:
            await storage._require_connection().execute("DROP TABLE health_metrics")

            with pytest.raises(PersistenceError, match="failed to store") as excinfo:
                await storage.create_health_metrics(_payload())

        assert excinfo.value.__cause__ is not None


class TestCreateStorage:
    @pytest.mark.asyncio
    async def test_memory_url(self) -> None:
        storage = await create_storage(DatabaseConfig(url="memory://"))
        assert isinstance(storage, InMemoryHealthMetricsStorage)

    @pytest.mark.asyncio
    async def test_sqlite_url(self, tmp_path: Path) -> None:
        db_path = tmp_path / "vitals.db"
        storage = await create_storage(DatabaseConfig(url=f"sqlite:///{db_path}"))
        try:
            assert isinstance(storage, SQLiteHealthMetricsStorage)
            assert storage.db_path == str(db_path)
            assert db_path.exists()
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_unsupported_url(self) -> None:
        with pytest.raises(ValueError, match="Unsupported database URL"):
            await create_storage(DatabaseConfig(url="postgresql://localhost/vitals"))
