"""Shared formatting for relayed job posts.

Keeping the template here prevents drift between the gateway and anything
else that renders a relayed post.
"""

from __future__ import annotations

from jobrelay.core.models import MessageRecord

JOB_POST_TEMPLATE = "📢 Job Post\n\nChannel: {channel}\n\n{text}"


def format_job_post(record: MessageRecord) -> str:
    """Render the plain-text message sent to the destination chat."""

    return JOB_POST_TEMPLATE.format(channel=record.channel_name, text=record.message_text)
