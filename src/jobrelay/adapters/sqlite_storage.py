"""SQLite storage adapter.

Implements the core MessageStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional

from jobrelay.core.models import MessageRecord
from jobrelay.core.ports import RecordStateError

_RECORD_COLUMNS = (
    "record_key",
    "channel_id",
    "message_id",
    "channel_name",
    "message_text",
    "message_timestamp",
    "received_at",
    "is_processed",
    "is_relevant",
    "processed_at",
    "job_fingerprint",
    "is_forwarded",
)


DEFAULT_CLAIM_TTL = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_db_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value is not None else None


def _from_db_bool(value: Optional[int]) -> Optional[bool]:
    return bool(value) if value is not None else None


def _row_to_record(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        channel_id=int(row["channel_id"]),
        message_id=int(row["message_id"]),
        channel_name=row["channel_name"],
        message_text=row["message_text"],
        message_timestamp=_from_db_time(row["message_timestamp"]),
        received_at=_from_db_time(row["received_at"]),
        is_processed=bool(row["is_processed"]),
        is_relevant=_from_db_bool(row["is_relevant"]),
        processed_at=_from_db_time(row["processed_at"]),
        job_fingerprint=row["job_fingerprint"],
        is_forwarded=bool(row["is_forwarded"]),
    )


class SQLiteMessageStore:
    """Thin SQLite wrapper that satisfies the MessageStorePort contract.

    Every operation opens its own connection, commits on exit and closes it,
    so each call is atomic and safe to use from concurrent request handlers.

    A fingerprint claim older than ``claim_ttl`` is treated as abandoned (the
    process died between claim and send) and may be taken over, unless the
    fingerprint has already been forwarded.
    """

    def __init__(
        self,
        db_path: str,
        claim_ttl: timedelta = DEFAULT_CLAIM_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db_path = db_path
        self._claim_ttl = claim_ttl
        self._clock = clock

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - messages: one row per ingested post, keyed by record_key
        - fingerprint_claims: one row per fingerprint a worker has claimed
        """

        with self._connect() as conn:
            # messages holds the full record lifecycle. rowid keeps insertion
            # order, which fetch_unprocessed uses for deterministic batches.
            # Fields:
            # - record_key: "<channel_id>_<message_id>" (PRIMARY KEY)
            # - is_relevant: NULL until processed, then 0/1
            # - job_fingerprint: NULL until processed
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    record_key TEXT PRIMARY KEY,
                    channel_id INTEGER NOT NULL,
                    message_id INTEGER NOT NULL,
                    channel_name TEXT NOT NULL,
                    message_text TEXT NOT NULL,
                    message_timestamp TIMESTAMP NOT NULL,
                    received_at TIMESTAMP NOT NULL,
                    is_processed INTEGER NOT NULL DEFAULT 0,
                    is_relevant INTEGER,
                    processed_at TIMESTAMP,
                    job_fingerprint TEXT,
                    is_forwarded INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_processed ON messages (is_processed)"
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_messages_fingerprint
                ON messages (job_fingerprint, is_forwarded)
                """
            )
            # fingerprint_claims is the dedup lock: the PRIMARY KEY makes the
            # claim a single conditional insert.
            # Fields:
            # - fingerprint: SHA-256 of the normalized text (PRIMARY KEY)
            # - record_key: the record allowed to send this fingerprint
            # - claimed_at: timestamp of the claim; stale claims expire
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS fingerprint_claims (
                    fingerprint TEXT PRIMARY KEY,
                    record_key TEXT NOT NULL,
                    claimed_at TIMESTAMP NOT NULL
                )
                """
            )

    def upsert(self, record: MessageRecord) -> None:
        """Create or fully replace the record stored under its key."""

        values = (
            record.record_key,
            record.channel_id,
            record.message_id,
            record.channel_name,
            record.message_text,
            _to_db_time(record.message_timestamp),
            _to_db_time(record.received_at),
            int(record.is_processed),
            None if record.is_relevant is None else int(record.is_relevant),
            _to_db_time(record.processed_at),
            record.job_fingerprint,
            int(record.is_forwarded),
        )
        placeholders = ", ".join("?" for _ in _RECORD_COLUMNS)
        assignments = ", ".join(
            f"{column} = excluded.{column}" for column in _RECORD_COLUMNS[1:]
        )
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO messages ({", ".join(_RECORD_COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT(record_key) DO UPDATE SET {assignments}
                """,
                values,
            )

    def get(self, record_key: str) -> Optional[MessageRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM messages WHERE record_key = ?",
                (record_key,),
            ).fetchone()
        return _row_to_record(row) if row else None

    def fetch_unprocessed(self, limit: int) -> List[MessageRecord]:
        """Return up to ``limit`` unprocessed records in insertion order."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE is_processed = 0 ORDER BY rowid LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def update_classification(
        self,
        record_key: str,
        is_relevant: bool,
        fingerprint: str,
        processed_at: datetime,
    ) -> None:
        """Write the processing fields once; a second write is rejected."""

        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE messages
                SET is_processed = 1,
                    is_relevant = ?,
                    processed_at = ?,
                    job_fingerprint = ?
                WHERE record_key = ? AND is_processed = 0
                """,
                (int(is_relevant), _to_db_time(processed_at), fingerprint, record_key),
            )
            if cur.rowcount != 1:
                raise RecordStateError(f"{record_key} is missing or already processed")

    def mark_forwarded(self, record_key: str) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE messages SET is_forwarded = 1 WHERE record_key = ?",
                (record_key,),
            )
            if cur.rowcount != 1:
                raise RecordStateError(f"{record_key} is missing")

    def exists_forwarded_for_fingerprint(self, fingerprint: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM messages
                WHERE job_fingerprint = ? AND is_forwarded = 1
                LIMIT 1
                """,
                (fingerprint,),
            ).fetchone()
        return row is not None

    def claim_fingerprint(self, fingerprint: str, record_key: str) -> bool:
        """Insert a claim if none exists; return whether this call won it.

        An abandoned claim is removed first. The delete matches the exact
        ``claimed_at`` that was read, so of two workers taking over the same
        stale claim only one insert succeeds.
        """

        now = self._clock()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT claimed_at FROM fingerprint_claims WHERE fingerprint = ?",
                (fingerprint,),
            ).fetchone()
            if row is not None and now - _from_db_time(row["claimed_at"]) > self._claim_ttl:
                conn.execute(
                    """
                    DELETE FROM fingerprint_claims
                    WHERE fingerprint = ? AND claimed_at = ?
                    AND NOT EXISTS (
                        SELECT 1 FROM messages
                        WHERE job_fingerprint = ? AND is_forwarded = 1
                    )
                    """,
                    (fingerprint, row["claimed_at"], fingerprint),
                )
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO fingerprint_claims (fingerprint, record_key, claimed_at)
                VALUES (?, ?, ?)
                """,
                (fingerprint, record_key, _to_db_time(now)),
            )
            return cur.rowcount == 1

    def release_fingerprint(self, fingerprint: str, record_key: str) -> None:
        """Drop a claim, but only if ``record_key`` is the one holding it."""

        with self._connect() as conn:
            conn.execute(
                "DELETE FROM fingerprint_claims WHERE fingerprint = ? AND record_key = ?",
                (fingerprint, record_key),
            )

    def count_messages(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM messages").fetchone()
        return int(row["total"])
