"""Slack webhook notifier for enforcement actions."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from cachetools import TTLCache

from dadcontrol.durations import format_duration
from dadcontrol.models import Enforcement, ViolationReason

logger = logging.getLogger(__name__)

# Slack color codes by reason
REASON_COLORS = {
    ViolationReason.DAY_NOT_ALLOWED: "#9C27B0",     # purple
    ViolationReason.DURATION_EXCEEDED: "#F44336",   # red
    ViolationReason.OUTSIDE_TIME_RANGE: "#FF9800",  # orange
}

DEFAULT_DEDUP_CACHE_SIZE = 1024


@dataclass
class SlackConfig:
    """Configuration for Slack notifier."""
    webhook_url: str
    dedup_window: int = 600  # seconds
    enabled: bool = True


class SlackNotifier:
    """Async Slack webhook notifier.

    A respawning process gets killed on every scan; repeated notifications
    for the same (activity, reason) are suppressed for `dedup_window` seconds.
    """

    def __init__(self, config: SlackConfig) -> None:
        self.config = config
        self._client: Optional[httpx.AsyncClient] = None
        self._sent_cache: TTLCache[str, bool] = TTLCache(
            maxsize=DEFAULT_DEDUP_CACHE_SIZE,
            ttl=config.dedup_window,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _is_duplicate(self, enforcement: Enforcement) -> bool:
        """Check if this (activity, reason) was notified recently, marking it if not."""
        cache_key = f"{enforcement.activity}|{enforcement.reason.value}"
        if cache_key in self._sent_cache:
            logger.debug(f"Dedup: suppressing repeat notification for {enforcement.activity}")
            return True
        self._sent_cache[cache_key] = True
        return False

    def _format_message(self, enforcement: Enforcement) -> dict:
        """Format enforcement as Slack message with attachment."""
        color = REASON_COLORS.get(enforcement.reason, "#808080")

        paths = sorted({p.path for p in enforcement.processes})
        fields = [
            {"title": "Activity", "value": enforcement.activity, "short": True},
            {"title": "Day", "value": enforcement.weekday.label, "short": True},
            {"title": "Time today", "value": format_duration(enforcement.duration), "short": True},
            {"title": "Processes", "value": str(len(enforcement.processes)), "short": True},
        ]
        if paths:
            fields.append({
                "title": "Programs",
                "value": "\n".join(f"`{path}`" for path in paths[:10]),
                "short": False,
            })

        attachment = {
            "color": color,
            "title": f"Stopped {enforcement.activity}",
            "text": enforcement.reason.value.capitalize(),
            "fields": fields,
            "footer": "dadcontrol",
            "ts": int(enforcement.timestamp.timestamp()),
        }

        return {"attachments": [attachment]}

    async def send_enforcement(self, enforcement: Enforcement) -> bool:
        """Send enforcement to Slack. Returns True if sent successfully."""
        if not self.config.enabled:
            return False

        if self._is_duplicate(enforcement):
            return False

        try:
            client = await self._get_client()
            payload = self._format_message(enforcement)

            resp = await client.post(self.config.webhook_url, json=payload)

            if resp.status_code == 200:
                logger.debug(f"Slack notification sent for activity: {enforcement.activity}")
                return True
            else:
                logger.warning(f"Slack webhook failed: {resp.status_code} - {resp.text}")
                return False

        except httpx.TimeoutException:
            logger.warning("Slack webhook timeout")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Slack webhook error: {e}")
            return False
