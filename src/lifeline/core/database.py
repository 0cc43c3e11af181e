"""
Database Infrastructure for Lifeline

SQLite storage for emergency events: one shared connection guarded by a
lock, explicit transactions and numbered schema migrations tracked in
the database's user_version.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass
class Migration:
    """A numbered schema change"""
    version: int
    name: str
    sql: str


class DatabaseError(Exception):
    """Database-related errors"""
    pass


MIGRATIONS: List[Migration] = [
    Migration(
        version=1,
        name="emergency_events",
        sql="""
        CREATE TABLE IF NOT EXISTS emergency_events (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            event_type TEXT NOT NULL CHECK (event_type IN ('panic_button', 'detected_pattern', 'manual')),
            location TEXT, -- JSON object
            sms_content TEXT,
            sms_sent_to TEXT, -- JSON array
            ai_analysis TEXT, -- JSON object
            resolved_at TEXT,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_emergency_events_user_id ON emergency_events (user_id);
        CREATE INDEX IF NOT EXISTS idx_emergency_events_created_at ON emergency_events (created_at);
        """
    ),
]


class DatabaseManager:
    """
    Owns the SQLite connection for the event store
    """

    def __init__(self, database_path: str, migrations: Optional[List[Migration]] = None):
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.migrations = sorted(migrations or MIGRATIONS, key=lambda m: m.version)
        self.logger = logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
            str(self.database_path),
            check_same_thread=False,
            timeout=30.0,
            isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row

        self.logger.info(f"Opened database at {self.database_path}")
        self._migrate()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Exclusive access to the shared connection"""
        with self._lock:
            if self._conn is None:
                raise DatabaseError("Database is closed")
            yield self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside BEGIN/COMMIT, rolling back on any error"""
        with self.get_connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @property
    def schema_version(self) -> int:
        with self.get_connection() as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    def _migrate(self):
        """Apply migrations newer than the stored schema version"""
        current = self.schema_version
        for migration in self.migrations:
            if migration.version <= current:
                continue

            self.logger.info(f"Applying migration {migration.version}: {migration.name}")
            script = (
                "BEGIN;\n"
                f"{migration.sql}\n"
                f"PRAGMA user_version = {int(migration.version)};\n"
                "COMMIT;"
            )
            with self.get_connection() as conn:
                try:
                    conn.executescript(script)
                except sqlite3.Error as e:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise DatabaseError(f"Migration {migration.version} ({migration.name}) failed: {e}") from e
            current = migration.version

    def execute_query(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        """Run a SELECT and return all rows"""
        try:
            with self.get_connection() as conn:
                return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(str(e)) from e

    def execute_update(self, query: str, params: Tuple = ()) -> int:
        """Run an INSERT/UPDATE/DELETE in its own transaction and return the row count"""
        try:
            with self.transaction() as conn:
                return conn.execute(query, params).rowcount
        except sqlite3.Error as e:
            raise DatabaseError(str(e)) from e

    def get_stats(self) -> Dict[str, Any]:
        rows = self.execute_query("SELECT COUNT(*) FROM emergency_events")
        return {
            'emergency_events': rows[0][0],
            'schema_version': self.schema_version,
            'database_size_bytes': self.database_path.stat().st_size
        }

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


# Global database manager instance (initialized by the application)
db_manager: Optional[DatabaseManager] = None


def initialize_database(database_path: str) -> DatabaseManager:
    """Initialize the global database manager"""
    global db_manager
    db_manager = DatabaseManager(database_path)
    return db_manager


def get_database() -> DatabaseManager:
    """Get the global database manager instance"""
    if db_manager is None:
        raise DatabaseError("Database not initialized. Call initialize_database() first.")
    return db_manager
