"""
Webhook alerting for source and pipeline failures.

Alerts are fire-and-forget: a failing webhook is logged and never fails the
pipeline.
"""
import logging
import traceback
from datetime import datetime, timezone
from typing import Optional

import httpx

from tvmux.config import Settings, get_settings

logger = logging.getLogger(__name__)

ALERT_COLOR = 15548997  # Red


class Alerter:
    """Posts Discord-style embed alerts to a configured webhook."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = settings or get_settings()
        self.webhook_url = settings.alert_webhook_url
        self.timeout = settings.alert_timeout_seconds
        self.app_name = settings.app_name
        self._client = client

    def build_payload(self, source_name: str, error: BaseException) -> dict:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return {
            "embeds": [
                {
                    "title": f"🚨 {self.app_name} Data Source Failure",
                    "color": ALERT_COLOR,
                    "fields": [
                        {"name": "Source", "value": source_name, "inline": True},
                        {
                            "name": "Timestamp",
                            "value": datetime.now(timezone.utc).isoformat(),
                            "inline": True,
                        },
                        {"name": "Error Message", "value": f"```{error}```"},
                        # Discord caps field values at 1024 characters
                        {"name": "Error Stack", "value": f"```{stack[-1000:] or 'Not available'}```"},
                    ],
                    "footer": {"text": f"{self.app_name} Background Worker"},
                }
            ]
        }

    async def notify(self, source_name: str, error: BaseException) -> bool:
        """
        Send an alert for a failed source.

        Returns:
            True if the webhook accepted the alert.
        """
        if not self.webhook_url:
            logger.warning(f"Alert webhook not configured. Skipping alert for {source_name}.")
            return False

        payload = self.build_payload(source_name, error)
        try:
            if self._client is not None:
                response = await self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=False) as client:
                    response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except Exception as e:
            logger.error(f"Failed to send alert for source {source_name}: {e}")
            return False

        logger.info(f"Sent alert for failed source: {source_name}")
        return True
