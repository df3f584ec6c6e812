from __future__ import annotations

from datetime import datetime, timezone

from jobrelay.adapters.notification_formatting import format_job_post
from jobrelay.core.models import MessageRecord


def _record(channel_name: str, text: str) -> MessageRecord:
    return MessageRecord(
        channel_id=1,
        message_id=1,
        channel_name=channel_name,
        message_text=text,
        message_timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
        received_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


def test_format_job_post_embeds_channel_and_text() -> None:
    message = format_job_post(_record("Jobs Daily", "Backend engineer role"))
    assert message == "📢 Job Post\n\nChannel: Jobs Daily\n\nBackend engineer role"


def test_format_job_post_keeps_braces_in_text() -> None:
    message = format_job_post(_record("Dev {Ops}", "Use {placeholders} freely"))
    assert message.endswith("Use {placeholders} freely")
    assert "Channel: Dev {Ops}" in message
