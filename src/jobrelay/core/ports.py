"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage and forwarding adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from jobrelay.core.models import MessageRecord


class RecordStateError(RuntimeError):
    """A write-once field was written twice, or the record does not exist."""


class MessageStorePort(Protocol):
    """Storage operations required by ingestion and the worker.

    Each operation is atomic on its own; nothing spans operations.
    """

    def upsert(self, record: MessageRecord) -> None:
        ...

    def get(self, record_key: str) -> Optional[MessageRecord]:
        ...

    def fetch_unprocessed(self, limit: int) -> List[MessageRecord]:
        ...

    def update_classification(
        self,
        record_key: str,
        is_relevant: bool,
        fingerprint: str,
        processed_at: datetime,
    ) -> None:
        ...

    def mark_forwarded(self, record_key: str) -> None:
        ...

    def exists_forwarded_for_fingerprint(self, fingerprint: str) -> bool:
        ...

    def claim_fingerprint(self, fingerprint: str, record_key: str) -> bool:
        ...

    def release_fingerprint(self, fingerprint: str, record_key: str) -> None:
        ...


class ForwardGatewayPort(Protocol):
    """Delivery of one relevant post to the destination chat."""

    def send(self, destination: int, record: MessageRecord) -> bool:
        ...
