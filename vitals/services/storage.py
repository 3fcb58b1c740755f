"""
Storage collaborators for persisted health metric samples.

The simulator only depends on the HealthMetricsStorage protocol. Two
implementations ship here: an in-process list for tests and demos, and an
async SQLite store built on aiosqlite.

Usage:
    async with SQLiteHealthMetricsStorage("data/vitals.db") as storage:
        record = await storage.create_health_metrics(payload)
"""

import os
from datetime import UTC, datetime
from types import TracebackType
from typing import Protocol

import aiosqlite

from vitals.config import DatabaseConfig
from vitals.domain.models import HealthMetricCreate, HealthMetricRecord, PersistenceError
from vitals.observability import get_logger

logger = get_logger(__name__)


class HealthMetricsStorage(Protocol):
    """
    Persistence collaborator for health metric samples.

    Implementations assign `id` and `recorded_at` and raise PersistenceError
    (or their own exception) when a write fails.
    """

    async def create_health_metrics(self, data: HealthMetricCreate) -> HealthMetricRecord: ...

    async def get_latest_health_metrics(self, user_id: str) -> HealthMetricRecord | None: ...


class InMemoryHealthMetricsStorage:
    """Append-only list of records, for tests and the demo runner."""

    def __init__(self) -> None:
        self.records: list[HealthMetricRecord] = []

    async def create_health_metrics(self, data: HealthMetricCreate) -> HealthMetricRecord:
        record = HealthMetricRecord(**data.model_dump())
        self.records.append(record)
        return record

    async def get_latest_health_metrics(self, user_id: str) -> HealthMetricRecord | None:
        mine = [r for r in self.records if r.user_id == user_id]
        if not mine:
            return None
        # Insertion order breaks ties between identical timestamps
        return max(enumerate(mine), key=lambda pair: (pair[1].recorded_at, pair[0]))[1]


class SQLiteHealthMetricsStorage:
    """Async SQLite store for health metric samples.

    Attributes:
        db_path: Path to the SQLite database file
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self.logger = logger.bind(db_path=db_path)

    async def initialize(self) -> None:
        """Open the connection and create the table if it does not exist.

        Re-initialising closes the previous connection first.
        """
        await self.close()

        db_dir = os.path.dirname(self.db_path)
        try:
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir)
                self.logger.info("database_directory_created", directory=db_dir)

            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            await self._create_tables()
        except (OSError, aiosqlite.Error) as e:
            await self.close()
            raise PersistenceError(f"could not initialise {self.db_path}: {e}") from e
        self.logger.info("database_initialized")

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self.logger.info("database_closed")

    async def __aenter__(self) -> "SQLiteHealthMetricsStorage":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _create_tables(self) -> None:
        conn = self._require_connection()
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS health_metrics (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                user_id TEXT NOT NULL,
                heart_rate INTEGER,
                foot_pressure REAL,
                bluetooth_connected BOOLEAN DEFAULT 0,
                battery_level INTEGER DEFAULT 0,
                anomalies_detected INTEGER DEFAULT 0,
                recorded_at TEXT NOT NULL
            )
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_health_metrics_user_recorded
            ON health_metrics(user_id, recorded_at)
        """)
        await conn.commit()

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise PersistenceError("storage not initialised - call initialize() first")
        return self._connection

    async def create_health_metrics(self, data: HealthMetricCreate) -> HealthMetricRecord:
        conn = self._require_connection()
        record = HealthMetricRecord(**data.model_dump(), recorded_at=datetime.now(UTC))
        try:
            await conn.execute(
                """
                INSERT INTO health_metrics (
                    id, user_id, heart_rate, foot_pressure, bluetooth_connected,
                    battery_level, anomalies_detected, recorded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.user_id,
                    record.heart_rate,
                    record.foot_pressure,
                    record.bluetooth_connected,
                    record.battery_level,
                    record.anomalies_detected,
                    record.recorded_at.isoformat(timespec="microseconds"),
                ),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"failed to store health metrics: {e}") from e

        self.logger.debug("health_metrics_row_inserted", id=record.id, user_id=record.user_id)
        return record

    async def get_latest_health_metrics(self, user_id: str) -> HealthMetricRecord | None:
        conn = self._require_connection()
        try:
            async with conn.execute(
                """
                SELECT * FROM health_metrics
                WHERE user_id = ?
                ORDER BY recorded_at DESC, seq DESC
                LIMIT 1
                """,
                (user_id,),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"failed to read health metrics: {e}") from e

        if row is None:
            return None
        return HealthMetricRecord(
            id=row["id"],
            user_id=row["user_id"],
            heart_rate=row["heart_rate"],
            foot_pressure=row["foot_pressure"],
            bluetooth_connected=bool(row["bluetooth_connected"]),
            battery_level=row["battery_level"],
            anomalies_detected=row["anomalies_detected"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )


async def create_storage(
    config: DatabaseConfig,
) -> InMemoryHealthMetricsStorage | SQLiteHealthMetricsStorage:
    """Build and initialise the storage named by `config.url`."""
    url = config.url
    if url.startswith("memory://"):
        return InMemoryHealthMetricsStorage()
    if url.startswith("sqlite:///"):
        storage = SQLiteHealthMetricsStorage(url.removeprefix("sqlite:///"))
        await storage.initialize()
        return storage
    raise ValueError(f"Unsupported database URL: {url}")
