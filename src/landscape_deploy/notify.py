from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class SlackNotifier:
    """Posts deployment messages to a Slack incoming webhook.

    Delivery is best effort: failures are logged and never raised.
    """

    def __init__(
        self,
        url: Optional[str],
        *,
        username: str = "Deployment Guru Bot",
        channel: str = "#bot-deployments",
        icon_emoji: str = ":octopus:",
        timeout: float = 15.0,
    ):
        self.url = url
        self.username = username
        self.channel = channel
        self.icon_emoji = icon_emoji
        self.timeout = timeout

    def payload(self, text: str) -> dict[str, str]:
        return {
            "username": self.username,
            "channel": self.channel,
            "icon_emoji": self.icon_emoji,
            "text": text,
        }

    def notify(self, text: str) -> bool:
        if not self.url:
            logger.debug("No webhook configured; skipping notification: %s", text)
            return False
        try:
            response = requests.post(self.url, json=self.payload(text), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to post notification to %s: %s", self.channel, exc)
            return False
        return True
