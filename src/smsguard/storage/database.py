# =============================================================================
# Database Connection and Schema Management
# =============================================================================
# Manages the SQLite database connection and schema migrations.
#
# Schema overview:
#   - sms_messages: Received SMS with their classification state
#   - notification_queue: Spam alerts waiting for redelivery
#
# Timestamps are stored as integer epoch milliseconds. A NULL is_spam means
# the message has not been classified yet.
#
# Uses aiosqlite for async operations, with WAL mode for better
# concurrent performance.
# =============================================================================

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

# Current schema version - increment when making schema changes
SCHEMA_VERSION = 1


class Database:
    """
    Manages the SQLite database connection and schema.

    Usage:
        >>> db = Database(config.resolved_database_path())
        >>> await db.connect()
        >>> async with db.conn.execute("SELECT ...") as cursor:
        ...     rows = await cursor.fetchall()
        >>> await db.close()

    Also usable as an async context manager:
        >>> async with Database(path) as db:
        ...     repo = Repository(db)

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """
        Open the database connection and ensure schema is up to date.

        Creates the database file (and its directory) if it doesn't exist.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)

        # Enable foreign keys (off by default in SQLite)
        await self._connection.execute("PRAGMA foreign_keys = ON")

        # Enable WAL mode for better concurrent performance
        await self._connection.execute("PRAGMA journal_mode = WAL")

        await self._init_schema()
        logger.debug(f"Database ready at {self.db_path}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """
        Get the active database connection.

        Raises:
            RuntimeError: If not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def _init_schema(self) -> None:
        """Create tables if they don't exist, run migrations if needed."""
        try:
            async with self.conn.execute(
                "SELECT version FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
                current_version = row[0] if row else 0
        except aiosqlite.OperationalError:
            # Table doesn't exist, this is a fresh database
            current_version = 0

        if current_version < SCHEMA_VERSION:
            await self._create_schema()
            await self._run_migrations(current_version)

    async def _create_schema(self) -> None:
        """Create the database schema from scratch."""
        schema = """
        -- Schema version tracking
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY
        );

        -- Received SMS messages
        CREATE TABLE IF NOT EXISTS sms_messages (
            id TEXT PRIMARY KEY,
            sender TEXT NOT NULL,
            body TEXT NOT NULL,
            timestamp INTEGER NOT NULL,     -- epoch ms
            is_spam INTEGER,                -- NULL until classified
            confidence REAL,
            reason TEXT,
            classified_at INTEGER,          -- epoch ms
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        -- Spam alerts waiting for redelivery (seq gives FIFO order)
        CREATE TABLE IF NOT EXISTS notification_queue (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            message_id TEXT NOT NULL,
            sender TEXT NOT NULL,
            body TEXT NOT NULL,
            timestamp INTEGER NOT NULL,     -- epoch ms
            attempts INTEGER NOT NULL DEFAULT 0,
            last_attempt INTEGER,           -- epoch ms
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        -- Indexes for common queries
        CREATE INDEX IF NOT EXISTS idx_sms_timestamp ON sms_messages(timestamp DESC);
        CREATE INDEX IF NOT EXISTS idx_sms_is_spam ON sms_messages(is_spam);
        CREATE INDEX IF NOT EXISTS idx_queue_attempts ON notification_queue(attempts);
        """

        await self.conn.executescript(schema)

        await self.conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,)
        )
        await self.conn.commit()

    async def _run_migrations(self, from_version: int) -> None:
        """
        Run schema migrations from the given version to current.

        Args:
            from_version: Version to migrate from.
        """
        # Nothing to migrate at version 1. Future steps go here:
        # if from_version < 2:
        #     await self._migrate_to_v2()
        pass
