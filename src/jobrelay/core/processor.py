"""Core batch processing worker.

This module is integration-agnostic. It only relies on ports for storage and
forwarding, enabling other transports or stores without changes here.

Per record the order is strict:
1) Fingerprint and classify the text
2) Persist the classification (always, relevant or not)
3) Stop for irrelevant posts
4) Skip fingerprints that were already forwarded or claimed
5) Send, then mark forwarded; release the claim if the send fails
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from jobrelay.core.config import WorkerConfig
from jobrelay.core.dedup import compute_fingerprint
from jobrelay.core.models import BatchResult, MessageRecord
from jobrelay.core.ports import ForwardGatewayPort, MessageStorePort
from jobrelay.core.rules_engine import ClassifierTables, classify

LOGGER = logging.getLogger(__name__)

# Outcomes of a single record, tallied into BatchResult.
IRRELEVANT = "irrelevant"
DUPLICATE = "duplicate"
FORWARDED = "forwarded"
SEND_FAILED = "send_failed"
FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingWorker:
    """Pulls a bounded batch of unprocessed records and relays the relevant ones."""

    def __init__(
        self,
        store: MessageStorePort,
        gateway: ForwardGatewayPort,
        tables: ClassifierTables,
        config: WorkerConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._tables = tables
        self._config = config
        self._clock = clock

    def run_batch(self) -> BatchResult:
        """Run one pass over at most ``batch_size`` unprocessed records.

        Errors while fetching propagate so the caller can report the whole
        invocation as failed. Errors inside a record are contained to that
        record; records are handled one at a time, never concurrently.
        """

        records = self._store.fetch_unprocessed(self._config.batch_size)
        if not records:
            return BatchResult()

        counts = {
            "processed": 0,
            "relevant": 0,
            "forwarded": 0,
            "duplicates": 0,
            "failed": 0,
        }
        for record in records:
            outcome = self.process_one(record)
            if outcome == FAILED:
                counts["failed"] += 1
                continue
            counts["processed"] += 1
            if outcome == IRRELEVANT:
                continue
            counts["relevant"] += 1
            if outcome == FORWARDED:
                counts["forwarded"] += 1
            elif outcome == DUPLICATE:
                counts["duplicates"] += 1

        result = BatchResult(fetched=len(records), **counts)
        LOGGER.info(
            "Worker pass complete: fetched=%s, processed=%s, forwarded=%s, duplicates=%s, failed=%s",
            result.fetched,
            result.processed,
            result.forwarded,
            result.duplicates,
            result.failed,
        )
        return result

    def process_one(self, record: MessageRecord) -> str:
        """Process one record and return its outcome label."""

        key = record.record_key
        try:
            fingerprint = compute_fingerprint(record.message_text)
            classification = classify(record.message_text, self._tables)
            # Classification is persisted before any send attempt, so a record
            # whose send fails stays processed and is never picked up again.
            self._store.update_classification(
                key,
                classification.relevant,
                fingerprint,
                self._clock(),
            )
        except Exception:
            LOGGER.exception("Failed to classify %s; it stays unprocessed", key)
            return FAILED

        if not classification.relevant:
            LOGGER.debug("Rejected %s (%s)", key, classification.reason)
            return IRRELEVANT

        try:
            if self._store.exists_forwarded_for_fingerprint(fingerprint):
                LOGGER.info("Dedup skip for %s (already forwarded)", key)
                return DUPLICATE
            # The claim is a conditional insert, so overlapping worker passes
            # cannot both send the same fingerprint.
            if not self._store.claim_fingerprint(fingerprint, key):
                LOGGER.info("Dedup skip for %s (fingerprint claimed)", key)
                return DUPLICATE
        except Exception:
            LOGGER.exception("Dedup check failed for %s; not forwarding", key)
            return DUPLICATE

        sent = self._send(record)
        if not sent:
            try:
                self._store.release_fingerprint(fingerprint, key)
            except Exception:
                LOGGER.exception("Failed to release fingerprint claim for %s", key)
            LOGGER.warning("Send failed for %s; it stays processed but unforwarded", key)
            return SEND_FAILED

        try:
            self._store.mark_forwarded(key)
        except Exception:
            # The claim is kept, so the fingerprint is still never sent twice.
            LOGGER.exception("Forwarded %s but failed to mark it", key)
        LOGGER.info("Forwarded %s from %s", key, record.channel_name)
        return FORWARDED

    def _send(self, record: MessageRecord) -> bool:
        try:
            return self._gateway.send(self._config.destination_chat_id, record)
        except Exception:
            LOGGER.exception("Gateway raised while sending %s", record.record_key)
            return False
