"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class WorkerConfig:
    """Settings for one processing worker pass."""

    destination_chat_id: int
    batch_size: int = DEFAULT_BATCH_SIZE
