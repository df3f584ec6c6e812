"""Telegram-to-core update mapping adapter.

This keeps Bot API update details out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from jobrelay.core.models import MessageRecord


class MalformedUpdateError(ValueError):
    """The update does not have the shape of a Bot API update."""


def _message_from_update(update: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    # Private/group chats deliver "message", channels deliver "channel_post".
    for field in ("message", "channel_post"):
        raw = update.get(field)
        if raw is None:
            continue
        if not isinstance(raw, Mapping):
            raise MalformedUpdateError(f"{field} is not an object")
        return raw
    return None


def _require_int(value: Any, name: str) -> int:
    # bool is an int subclass, but never a valid id.
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedUpdateError(f"{name} must be an integer")
    return value


def has_content(message: Mapping[str, Any]) -> bool:
    """Return True when the post carries text, a caption, or media."""

    has_text = bool(message.get("text")) or bool(message.get("caption"))
    has_media = message.get("document") is not None or bool(message.get("photo"))
    return has_text or has_media


def record_from_update(update: Any, received_at: datetime) -> Optional[MessageRecord]:
    """Build an unprocessed MessageRecord from a decoded Bot API update.

    Returns ``None`` for updates we do not store (no message, or a message
    without text and media). Only ``text`` becomes ``message_text``; captions
    count as content but are not copied.
    """

    if not isinstance(update, Mapping):
        raise MalformedUpdateError("update is not an object")

    message = _message_from_update(update)
    if message is None or not has_content(message):
        return None

    chat = message.get("chat")
    if not isinstance(chat, Mapping):
        raise MalformedUpdateError("chat is missing")

    channel_id = _require_int(chat.get("id"), "chat.id")
    message_id = _require_int(message.get("message_id"), "message_id")
    date = _require_int(message.get("date", 0), "date")
    text = message.get("text") or ""
    if not isinstance(text, str):
        raise MalformedUpdateError("text must be a string")

    return MessageRecord(
        channel_id=channel_id,
        message_id=message_id,
        channel_name=str(chat.get("title") or ""),
        message_text=text,
        message_timestamp=datetime.fromtimestamp(date, tz=timezone.utc),
        received_at=received_at,
    )
