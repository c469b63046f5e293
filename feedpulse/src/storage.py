"""SQLite-backed storage for feedback records.

Provides insert, point lookup, addressed-flag updates, filtered and
paginated range queries, and bulk reset for the demo dataset. Themes
are stored as JSON text and decoded through the theme index so that a
malformed stored value never breaks a read.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from feedpulse.src.models import FeedbackAnalysis, FeedbackRecord, Source
from feedpulse.src.themes import decode_themes

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS feedback (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL CHECK (source IN ('twitter', 'discord', 'github', 'support')),
    content TEXT NOT NULL,
    sentiment TEXT NOT NULL CHECK (sentiment IN ('positive', 'negative', 'neutral')),
    category TEXT NOT NULL CHECK (category IN ('bug', 'feature', 'praise', 'complaint')),
    priority INTEGER NOT NULL CHECK (priority >= 1 AND priority <= 5),
    created_at TEXT NOT NULL,
    themes TEXT DEFAULT '[]',
    addressed INTEGER DEFAULT 0,
    addressed_at TEXT DEFAULT NULL
);

CREATE INDEX IF NOT EXISTS idx_feedback_source ON feedback(source);
CREATE INDEX IF NOT EXISTS idx_feedback_sentiment ON feedback(sentiment);
CREATE INDEX IF NOT EXISTS idx_feedback_category ON feedback(category);
CREATE INDEX IF NOT EXISTS idx_feedback_priority ON feedback(priority);
CREATE INDEX IF NOT EXISTS idx_feedback_created_at ON feedback(created_at);
"""

_NEWEST_FIRST = "ORDER BY created_at DESC, id DESC"


class StorageError(Exception):
    """Raised for storage-level failures (I/O, constraint violations)."""


def format_timestamp(value: datetime) -> str:
    """Serialize a timestamp so that text order matches time order."""
    return value.isoformat(timespec="microseconds")


class FeedbackStorage:
    """SQLite-backed storage for FeedbackRecord.

    Args:
        db_path: Path to SQLite database file, or ':memory:' for in-memory.
        check_same_thread: Passed to sqlite3; disable when the connection
            is shared with a server thread pool.

    Example::

        with FeedbackStorage("feedpulse.db") as store:
            store.initialize_schema()
            record = store.insert(Source.GITHUB, "Build is broken", analysis)
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        check_same_thread: bool = True,
    ) -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=check_same_thread)
        self._conn.row_factory = sqlite3.Row

    def __enter__(self) -> FeedbackStorage:
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Close the database connection."""
        self.close()

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def initialize_schema(self) -> None:
        """Create the feedback table and indexes if they don't exist."""
        try:
            self._conn.executescript(_SCHEMA_SQL)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to initialize schema: {exc}") from exc

    # ---------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------

    def insert(
        self,
        source: Source,
        content: str,
        analysis: FeedbackAnalysis,
        created_at: datetime | None = None,
    ) -> FeedbackRecord:
        """Insert a classified feedback item.

        Args:
            source: Channel the feedback came from.
            content: Feedback text.
            analysis: Sanitized classifier output.
            created_at: Insert timestamp (defaults to now).

        Returns:
            The stored record with its assigned ID.

        Raises:
            StorageError: If the insert fails.
        """
        stamp = created_at or datetime.now()
        try:
            cursor = self._conn.execute(
                "INSERT INTO feedback "
                "(source, content, sentiment, category, priority, themes, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                self._insert_params(source, content, analysis, stamp),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Failed to insert feedback: {exc}") from exc

        return FeedbackRecord(
            id=int(cursor.lastrowid),
            source=source,
            content=content,
            sentiment=analysis.sentiment,
            category=analysis.category,
            priority=analysis.priority,
            themes=list(analysis.themes),
            created_at=stamp,
        )

    def insert_many(
        self,
        items: Iterable[tuple[Source, str, FeedbackAnalysis, datetime]],
    ) -> int:
        """Insert many classified items in a single transaction.

        Args:
            items: (source, content, analysis, created_at) tuples.

        Returns:
            Number of rows inserted.

        Raises:
            StorageError: If any insert fails; no rows are kept in that case.
        """
        params = [self._insert_params(*item) for item in items]
        try:
            with self._conn:
                self._conn.executemany(
                    "INSERT INTO feedback "
                    "(source, content, sentiment, category, priority, themes, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    params,
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to insert feedback batch: {exc}") from exc
        return len(params)

    def update_addressed(
        self,
        record_id: int,
        addressed: bool,
        at: datetime | None = None,
    ) -> FeedbackRecord | None:
        """Set or clear the addressed flag on one record.

        Args:
            record_id: ID of the record to update.
            addressed: New flag value.
            at: Timestamp recorded when flagging (defaults to now).

        Returns:
            The updated record, or None if no record has this ID.

        Raises:
            StorageError: If the update fails.
        """
        current = self.get(record_id)
        if current is None:
            return None
        updated = current.with_addressed(addressed, at)
        addressed_at = (
            format_timestamp(updated.addressed_at) if updated.addressed_at is not None else None
        )
        try:
            self._conn.execute(
                "UPDATE feedback SET addressed = ?, addressed_at = ? WHERE id = ?",
                (1 if updated.addressed else 0, addressed_at, record_id),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Failed to update feedback {record_id}: {exc}") from exc
        return updated

    def clear_all(self) -> int:
        """Delete every record.

        Returns:
            Number of rows deleted.

        Raises:
            StorageError: If the delete fails.
        """
        try:
            cursor = self._conn.execute("DELETE FROM feedback")
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Failed to clear feedback: {exc}") from exc
        return cursor.rowcount

    # ---------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------

    def get(self, record_id: int) -> FeedbackRecord | None:
        """Fetch a record by ID.

        Args:
            record_id: The record's unique ID.

        Returns:
            FeedbackRecord or None if not found.
        """
        row = self._fetchone("SELECT * FROM feedback WHERE id = ?", (record_id,))
        if row is None:
            return None
        return self._row_to_record(row)

    def query(
        self,
        where: str = "",
        params: Sequence[Any] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[FeedbackRecord]:
        """Fetch records matching a predicate, newest first.

        Args:
            where: SQL WHERE clause (without the keyword) or empty for all rows.
            params: Positional parameters for the clause.
            limit: Maximum rows returned (None for no limit).
            offset: Rows skipped before the first returned row.

        Returns:
            Matching records ordered by created_at desc, then id desc.
        """
        sql = "SELECT * FROM feedback" + _where_sql(where) + " " + _NEWEST_FIRST
        args = list(params)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            args.extend([limit, offset])
        rows = self._fetchall(sql, args)
        return [self._row_to_record(r) for r in rows]

    def count(self, where: str = "", params: Sequence[Any] = ()) -> int:
        """Count records matching a predicate.

        Args:
            where: SQL WHERE clause (without the keyword) or empty for all rows.
            params: Positional parameters for the clause.

        Returns:
            Number of matching records.
        """
        row = self._fetchone("SELECT COUNT(*) AS total FROM feedback" + _where_sql(where), params)
        return int(row["total"]) if row is not None else 0

    def all_records(self) -> list[FeedbackRecord]:
        """Fetch every record in insertion (id) order."""
        rows = self._fetchall("SELECT * FROM feedback ORDER BY id ASC", ())
        return [self._row_to_record(r) for r in rows]

    # ---------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------

    def _fetchone(self, sql: str, params: Sequence[Any]) -> sqlite3.Row | None:
        try:
            return self._conn.execute(sql, tuple(params)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    def _fetchall(self, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    @staticmethod
    def _insert_params(
        source: Source,
        content: str,
        analysis: FeedbackAnalysis,
        created_at: datetime,
    ) -> tuple[Any, ...]:
        return (
            source.value,
            content,
            analysis.sentiment.value,
            analysis.category.value,
            analysis.priority,
            json.dumps(list(analysis.themes)),
            format_timestamp(created_at),
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> FeedbackRecord:
        data = dict(row)
        data["themes"] = decode_themes(row["themes"])
        data["addressed"] = bool(row["addressed"])
        return FeedbackRecord.from_dict(data)


def _where_sql(where: str) -> str:
    return f" WHERE {where}" if where else ""
