"""Helpers for working with composite record keys."""

from __future__ import annotations


def build_record_key(channel_id: int, message_id: int) -> str:
    """Return the composite key for one message in one chat.

    Channel ids are often negative ("-100123_7"); the key keeps the sign.
    """

    return f"{channel_id}_{message_id}"
