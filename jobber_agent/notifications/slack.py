"""
Slack incoming-webhook notifier.

Sends are fire-and-forget: a failed send is logged and reported as False,
never raised into the pipeline.
"""
from typing import Optional, Dict, Any

import requests

from jobber_agent.logging_config import get_logger

logger = get_logger(__name__)


class SlackNotifier:
    def __init__(self, webhook_url: Optional[str], channel: Optional[str] = None,
                 username: Optional[str] = None, icon_emoji: Optional[str] = None,
                 timeout: int = 5):
        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self.icon_emoji = icon_emoji
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def send(
        self,
        *,
        title: str,
        text: str,
        severity: str = "info",
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send a Slack notification.
        - `context` is rendered as attachment fields.
        - Returns True only when Slack answers HTTP 200.
        """
        if not self.enabled:
            logger.info("Slack notification skipped (no webhook configured)", title=title)
            return False

        payload = {
            "text": f"[{severity.upper()}] {title}",
            "attachments": [
                {
                    "color": self._get_color(severity),
                    "text": text,
                    "fields": self._format_context(context or {}),
                    "footer": "Jobber Agent",
                }
            ],
        }

        if self.channel:
            payload["channel"] = self.channel
        if self.username:
            payload["username"] = self.username
        if self.icon_emoji:
            payload["icon_emoji"] = self.icon_emoji

        try:
            r = requests.post(
                self.webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Slack notification failed", title=title, error=str(e))
            return False

        if r.status_code != 200:
            logger.warning("Slack notification rejected", title=title, status_code=r.status_code)
            return False
        return True

    def _get_color(self, severity: str) -> str:
        colors = {
            "info": "#36a64f",
            "warning": "#ffcc00",
            "error": "#ff0000",
            "critical": "#ff0000",
        }
        return colors.get(severity.lower(), "#36a64f")

    def _format_context(self, context: Dict[str, Any]) -> list:
        return [
            {"title": key, "value": str(value), "short": True}
            for key, value in context.items()
        ]


def build_notifier(config) -> SlackNotifier:
    return SlackNotifier(
        config.SLACK_WEBHOOK_URL,
        channel=config.SLACK_CHANNEL,
        username=config.SLACK_USERNAME,
        icon_emoji=config.SLACK_ICON,
    )
