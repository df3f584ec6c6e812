"""Telegram Bot API forwarding adapter.

Delivers relevant posts to the destination chat through the Bot API.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any

from jobrelay.adapters.notification_formatting import format_job_post
from jobrelay.core.models import MessageRecord

LOGGER = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class TelegramBotGateway:
    """Gateway adapter that satisfies ForwardGatewayPort via the Bot API.

    A call is successful only when the API answers HTTP 200. There is no retry:
    every other status or a transport error is reported as ``False``.
    """

    def __init__(self, bot_token: str, timeout: float = 10, api_base: str = API_BASE) -> None:
        self._bot_token = bot_token
        self._timeout = timeout
        self._api_base = api_base.rstrip("/")

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{self._api_base}/bot{self._bot_token}/{method}"

    def send(self, destination: int, record: MessageRecord) -> bool:
        """Send the formatted job post as a new message."""

        payload = {"chat_id": destination, "text": format_job_post(record)}
        return self._post("sendMessage", payload)

    def forward_message(self, destination: int, from_chat_id: int, message_id: int) -> bool:
        """Forward the original post instead of re-sending its text."""

        payload = {
            "chat_id": destination,
            "from_chat_id": from_chat_id,
            "message_id": message_id,
        }
        return self._post("forwardMessage", payload)

    def _post(self, method: str, payload: dict[str, Any]) -> bool:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        # A blocking call keeps the adapter small; the worker sends one record
        # at a time anyway.
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                status = response.status
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            LOGGER.warning("Bot API %s failed with %s: %s", method, e.code, body)
            return False
        except (urllib.error.URLError, OSError) as e:
            LOGGER.warning("Bot API %s transport error: %s", method, e)
            return False

        if status != 200:
            LOGGER.warning("Bot API %s returned %s", method, status)
            return False
        return True
