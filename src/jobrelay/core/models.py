"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from jobrelay.core.source_keys import build_record_key


@dataclass(frozen=True)
class MessageRecord:
    """Persisted representation of one ingested channel post.

    ``is_relevant``, ``processed_at`` and ``job_fingerprint`` stay ``None``
    until the worker processes the record, then are written together once.
    """

    channel_id: int
    message_id: int
    channel_name: str
    message_text: str
    message_timestamp: datetime
    received_at: datetime
    is_processed: bool = False
    is_relevant: Optional[bool] = None
    processed_at: Optional[datetime] = None
    job_fingerprint: Optional[str] = None
    is_forwarded: bool = False

    @property
    def record_key(self) -> str:
        return build_record_key(self.channel_id, self.message_id)


@dataclass(frozen=True)
class BatchResult:
    """Counters for one worker pass."""

    fetched: int = 0
    processed: int = 0
    relevant: int = 0
    forwarded: int = 0
    duplicates: int = 0
    failed: int = 0
