"""DuckDB storage for enforcement history.

Every kill decision is appended to a single-file database so that past
enforcement can be reviewed from the CLI while the daemon keeps running.
"""

import shutil
import tempfile
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import duckdb

from dadcontrol.models import Enforcement


SCHEMA_VERSION = 1


class HistoryStore:
    """DuckDB-backed log of enforcement actions."""

    def __init__(self, db_path: Path, read_only: bool = False) -> None:
        """Initialize the history store.

        Args:
            db_path: Path to the DuckDB database file. Use ":memory:" for in-memory.
            read_only: If True, open in read-only mode (allows concurrent readers).
        """
        self.db_path = db_path
        self.read_only = read_only
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._temp_db_path: Optional[Path] = None

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        db_str = str(self.db_path) if self.db_path != Path(":memory:") else ":memory:"

        if self.read_only and self.db_path != Path(":memory:"):
            try:
                self._conn = duckdb.connect(db_str, read_only=True)
            except duckdb.IOException:
                # Database is locked by the running daemon, read from a copy
                temp_dir = tempfile.mkdtemp(prefix="dadcontrol_")
                self._temp_db_path = Path(temp_dir) / "history.db"
                shutil.copy2(self.db_path, self._temp_db_path)
                wal_path = Path(str(self.db_path) + ".wal")
                if wal_path.exists():
                    shutil.copy2(wal_path, Path(temp_dir) / "history.db.wal")
                self._conn = duckdb.connect(str(self._temp_db_path), read_only=True)
        else:
            self._conn = duckdb.connect(db_str, read_only=self.read_only)

        if not self.read_only:
            self._ensure_schema()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
        if self._temp_db_path and self._temp_db_path.exists():
            shutil.rmtree(self._temp_db_path.parent, ignore_errors=True)
            self._temp_db_path = None

    def __enter__(self) -> "HistoryStore":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get the database connection, raising if not connected."""
        if self._conn is None:
            raise RuntimeError("HistoryStore not connected. Call connect() first.")
        return self._conn

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        result = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current_version = result[0] if result and result[0] else 0

        if current_version < SCHEMA_VERSION:
            self._apply_schema()
            self.conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                [SCHEMA_VERSION]
            )

    def _apply_schema(self) -> None:
        """Apply the database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS enforcements (
                id VARCHAR PRIMARY KEY,
                timestamp TIMESTAMP NOT NULL,
                weekday INTEGER NOT NULL,
                activity VARCHAR NOT NULL,
                reason VARCHAR NOT NULL,
                pids INTEGER[] DEFAULT [],
                paths VARCHAR[] DEFAULT [],
                duration_seconds DOUBLE NOT NULL,

                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_enforcements_timestamp
            ON enforcements (timestamp)
        """)

    def insert_enforcement(self, enforcement: Enforcement) -> str:
        """Record an enforcement and return its ID."""
        enforcement_id = str(uuid.uuid4())

        self.conn.execute("""
            INSERT INTO enforcements (
                id, timestamp, weekday, activity, reason,
                pids, paths, duration_seconds
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            enforcement_id,
            enforcement.timestamp,
            int(enforcement.weekday),
            enforcement.activity,
            enforcement.reason.value,
            enforcement.pids,
            [p.path for p in enforcement.processes],
            enforcement.duration.total_seconds(),
        ])

        return enforcement_id

    def get_recent_enforcements(
        self,
        limit: int = 50,
        activity: Optional[str] = None,
    ) -> list[dict]:
        """Get the most recent enforcements, newest first."""
        if activity is None:
            result = self.conn.execute("""
                SELECT * FROM enforcements
                ORDER BY timestamp DESC
                LIMIT ?
            """, [limit])
        else:
            result = self.conn.execute("""
                SELECT * FROM enforcements
                WHERE activity = ?
                ORDER BY timestamp DESC
                LIMIT ?
            """, [activity, limit])

        columns = [desc[0] for desc in result.description]
        return [dict(zip(columns, row)) for row in result.fetchall()]

    def get_activity_stats(self, since: datetime) -> list[dict]:
        """Count enforcements per activity and reason since a point in time."""
        result = self.conn.execute("""
            SELECT
                activity,
                reason,
                COUNT(*) as kills,
                MAX(timestamp) as last_kill
            FROM enforcements
            WHERE timestamp >= ?
            GROUP BY activity, reason
            ORDER BY kills DESC
        """, [since]).fetchall()

        columns = ["activity", "reason", "kills", "last_kill"]
        return [dict(zip(columns, row)) for row in result]

    def cleanup_old_data(self, retention_days: int, now: Optional[datetime] = None) -> int:
        """Delete enforcements older than the retention period.

        Returns:
            Number of rows deleted
        """
        cutoff = (now or datetime.now()) - timedelta(days=retention_days)

        count = self.conn.execute(
            "SELECT COUNT(*) FROM enforcements WHERE timestamp < ?",
            [cutoff],
        ).fetchone()[0]

        self.conn.execute("DELETE FROM enforcements WHERE timestamp < ?", [cutoff])
        return count

    def vacuum(self) -> None:
        """Reclaim disk space after deletions."""
        self.conn.execute("VACUUM")
