# price_tracker/notifiers/discord_notifier.py

"""Discord webhook notification sink."""

import logging
from datetime import datetime, timezone
from typing import Any

from curl_cffi import requests as curl_requests

from price_tracker.config.settings import Settings
from price_tracker.models.change_event import ChangeEvent, ChangeKind
from price_tracker.notifiers.base import NotificationSink

logger = logging.getLogger("price_tracker.notifiers.discord")

_HEADLINES: dict[ChangeKind, str] = {
    ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD: "🎉 **Price Alert!**",
    ChangeKind.BACK_IN_STOCK: "📦 **Back in Stock!**",
    ChangeKind.PRICE_CHANGED: "💰 Price Update",
    ChangeKind.OUT_OF_STOCK: "⚠️ Out of Stock",
}

_COLOURS: dict[ChangeKind, int] = {
    ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD: 0x00FF00,
    ChangeKind.BACK_IN_STOCK: 0x0099FF,
    ChangeKind.PRICE_CHANGED: 0xFFAA00,
    ChangeKind.OUT_OF_STOCK: 0xFF0000,
}


class DiscordNotifier(NotificationSink):
    """Posts change events to a Discord channel webhook."""

    name = "discord"

    def __init__(self, webhook_url: str | None = None) -> None:
        self.webhook_url = (
            Settings.DISCORD_WEBHOOK_URL
            if webhook_url is None
            else webhook_url
        )
        self.session = curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER
        )

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    def build_message(self, event: ChangeEvent) -> str:
        """Return the plain-text content line for ``event``."""
        return f"{_HEADLINES[event.kind]} - {event.item.title}"

    def build_embed(self, event: ChangeEvent) -> dict[str, Any]:
        """Build the Discord embed object for ``event``."""
        item = event.item
        fields: list[dict[str, Any]] = []
        if event.new_price is not None:
            fields.append({
                "name": "Current Price",
                "value": f"€{event.new_price:.2f}",
                "inline": True,
            })
        if item.desired_max_price > 0:
            fields.append({
                "name": "Your Max Price",
                "value": f"€{item.desired_max_price:.2f}",
                "inline": True,
            })
        if item.is_uhd_4k:
            fields.append({
                "name": "Format", "value": "🎬 UHD 4K", "inline": True,
            })
        fields.append({
            "name": "Source", "value": item.source or "-", "inline": True,
        })

        embed: dict[str, Any] = {
            "title": item.title,
            "url": item.url,
            "color": _COLOURS[event.kind],
            "description": event.describe(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "fields": fields,
        }
        if item.image_url:
            embed["thumbnail"] = {"url": item.image_url}
        return embed

    def notify(self, event: ChangeEvent) -> None:
        """POST the event to the webhook; raise on a non-2xx reply."""
        payload = {
            "content": self.build_message(event),
            "embeds": [self.build_embed(event)],
        }
        resp = self.session.post(
            self.webhook_url,
            json=payload,
            timeout=Settings.REQUEST_TIMEOUT,
        )
        if resp.status_code >= 300:
            msg = (
                f"Discord webhook returned HTTP {resp.status_code}"
            )
            raise RuntimeError(msg)
        logger.info("Discord notification sent: %s", event.describe())
