"""Webhook ingestion for incoming Telegram updates.

The sender (Telegram) retries any update that is not acknowledged, so every
request is answered with success: malformed bodies, uninteresting updates,
and even storage failures are logged or dropped instead of refused.
"""

from __future__ import annotations

import enum
import json
import logging
from datetime import datetime, timezone
from typing import Callable

from jobrelay.adapters.telegram_mapper import record_from_update
from jobrelay.core.ports import MessageStorePort

LOGGER = logging.getLogger(__name__)

ACK_STATUS = 200


class IngestOutcome(enum.Enum):
    STORED = "stored"
    IGNORED_METHOD = "ignored_method"
    DROPPED_MALFORMED = "dropped_malformed"
    DROPPED_EMPTY = "dropped_empty"
    STORE_FAILED = "store_failed"


def acknowledge_regardless_of_outcome(outcome: IngestOutcome) -> int:
    """Return the HTTP status for an ingestion outcome: always success."""

    if outcome is IngestOutcome.STORE_FAILED:
        LOGGER.warning("Acknowledging update that could not be stored")
    return ACK_STATUS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionEndpoint:
    """Maps webhook bodies to MessageRecords and upserts them."""

    def __init__(self, store: MessageStorePort, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def handle(self, method: str, body: bytes) -> IngestOutcome:
        if method.upper() != "POST":
            return IngestOutcome.IGNORED_METHOD

        try:
            update = json.loads(body)
            record = record_from_update(update, self._clock())
        except (ValueError, UnicodeDecodeError, OverflowError, OSError) as e:
            # json.JSONDecodeError and MalformedUpdateError are ValueErrors;
            # out-of-range dates surface as OverflowError/OSError.
            LOGGER.debug("Dropping malformed update: %s", e)
            return IngestOutcome.DROPPED_MALFORMED

        if record is None:
            return IngestOutcome.DROPPED_EMPTY

        # Redelivery of the same message overwrites the stored record,
        # including any processing state it already had.
        try:
            self._store.upsert(record)
        except Exception:
            LOGGER.exception("Failed to store update %s", record.record_key)
            return IngestOutcome.STORE_FAILED

        LOGGER.debug("Stored %s from %s", record.record_key, record.channel_name)
        return IngestOutcome.STORED
