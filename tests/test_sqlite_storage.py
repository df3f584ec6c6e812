from __future__ import annotations

import dataclasses
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from jobrelay.adapters import sqlite_storage
from jobrelay.adapters.sqlite_storage import SQLiteMessageStore
from jobrelay.core.models import MessageRecord
from jobrelay.core.ports import RecordStateError

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2025, 1, 2, 8, 30, tzinfo=timezone.utc)


def _record(channel_id: int, message_id: int, text: str = "Backend role", **overrides) -> MessageRecord:
    record = MessageRecord(
        channel_id=channel_id,
        message_id=message_id,
        channel_name=f"chan {channel_id}",
        message_text=text,
        message_timestamp=T0,
        received_at=T0,
    )
    return dataclasses.replace(record, **overrides)


@pytest.fixture
def store(tmp_path) -> SQLiteMessageStore:
    store = SQLiteMessageStore(str(tmp_path / "jobrelay.db"))
    store.init_db()
    return store


def test_upsert_roundtrips_every_field(store: SQLiteMessageStore) -> None:
    record = _record(
        -100,
        7,
        is_processed=True,
        is_relevant=False,
        processed_at=T1,
        job_fingerprint="abc",
        is_forwarded=True,
    )
    store.upsert(record)
    assert store.get("-100_7") == record


def test_upsert_same_key_overwrites_in_place(store: SQLiteMessageStore) -> None:
    store.upsert(_record(1, 1, text="first"))
    store.update_classification("1_1", True, "fp", T1)
    store.upsert(_record(1, 1, text="second", channel_name="renamed"))

    assert store.count_messages() == 1
    stored = store.get("1_1")
    assert stored.message_text == "second"
    assert stored.channel_name == "renamed"
    # Processing state from before the redelivery is gone.
    assert stored.is_processed is False
    assert stored.job_fingerprint is None


def test_fetch_unprocessed_respects_limit_and_insertion_order(store: SQLiteMessageStore) -> None:
    for message_id in (3, 1, 2):
        store.upsert(_record(1, message_id))
    store.update_classification("1_1", False, "fp", T1)

    batch = store.fetch_unprocessed(10)
    assert [r.record_key for r in batch] == ["1_3", "1_2"]
    assert [r.record_key for r in store.fetch_unprocessed(1)] == ["1_3"]


def test_update_classification_is_write_once(store: SQLiteMessageStore) -> None:
    store.upsert(_record(1, 1))
    store.update_classification("1_1", True, "fp", T1)

    stored = store.get("1_1")
    assert stored.is_processed is True
    assert stored.is_relevant is True
    assert stored.job_fingerprint == "fp"
    assert stored.processed_at == T1

    with pytest.raises(RecordStateError):
        store.update_classification("1_1", False, "other", T1)
    assert store.get("1_1").job_fingerprint == "fp"


def test_update_classification_unknown_key(store: SQLiteMessageStore) -> None:
    with pytest.raises(RecordStateError):
        store.update_classification("9_9", True, "fp", T1)


def test_exists_forwarded_for_fingerprint(store: SQLiteMessageStore) -> None:
    store.upsert(_record(1, 1))
    store.update_classification("1_1", True, "fp", T1)
    assert store.exists_forwarded_for_fingerprint("fp") is False

    store.mark_forwarded("1_1")
    assert store.get("1_1").is_forwarded is True
    assert store.exists_forwarded_for_fingerprint("fp") is True
    assert store.exists_forwarded_for_fingerprint("other") is False


def test_mark_forwarded_unknown_key(store: SQLiteMessageStore) -> None:
    with pytest.raises(RecordStateError):
        store.mark_forwarded("9_9")


def test_claim_fingerprint_is_granted_once(store: SQLiteMessageStore) -> None:
    assert store.claim_fingerprint("fp", "1_1") is True
    assert store.claim_fingerprint("fp", "2_1") is False
    assert store.claim_fingerprint("fp", "1_1") is False


def test_release_only_drops_own_claim(store: SQLiteMessageStore) -> None:
    store.claim_fingerprint("fp", "1_1")
    store.release_fingerprint("fp", "2_1")
    assert store.claim_fingerprint("fp", "2_1") is False

    store.release_fingerprint("fp", "1_1")
    assert store.claim_fingerprint("fp", "2_1") is True


def test_init_db_is_repeatable(store: SQLiteMessageStore) -> None:
    store.upsert(_record(1, 1))
    store.init_db()
    assert store.count_messages() == 1


def test_connections_are_closed_after_each_operation(store: SQLiteMessageStore, monkeypatch) -> None:
    opened: list[sqlite3.Connection] = []
    real_connect = sqlite3.connect

    def recording_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(sqlite_storage.sqlite3, "connect", recording_connect)
    store.upsert(_record(1, 1))
    store.get("1_1")
    store.claim_fingerprint("fp", "1_1")

    assert len(opened) == 3
    for conn in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")


class SteppingClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_stale_claim_can_be_taken_over(tmp_path) -> None:
    clock = SteppingClock(T0)
    store = SQLiteMessageStore(str(tmp_path / "jobrelay.db"), claim_ttl=timedelta(hours=1), clock=clock)
    store.init_db()

    assert store.claim_fingerprint("fp", "1_1") is True
    clock.now = T0 + timedelta(minutes=30)
    assert store.claim_fingerprint("fp", "2_1") is False
    clock.now = T0 + timedelta(hours=2)
    assert store.claim_fingerprint("fp", "2_1") is True
    # The new holder's claim is fresh again.
    assert store.claim_fingerprint("fp", "3_1") is False


def test_stale_claim_is_kept_once_fingerprint_was_forwarded(tmp_path) -> None:
    clock = SteppingClock(T0)
    store = SQLiteMessageStore(str(tmp_path / "jobrelay.db"), claim_ttl=timedelta(hours=1), clock=clock)
    store.init_db()
    store.upsert(_record(1, 1))
    store.update_classification("1_1", True, "fp", T0)
    assert store.claim_fingerprint("fp", "1_1") is True
    store.mark_forwarded("1_1")

    clock.now = T0 + timedelta(hours=2)
    assert store.claim_fingerprint("fp", "2_1") is False
