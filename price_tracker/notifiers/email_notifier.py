# price_tracker/notifiers/email_notifier.py

"""SMTP email notification sink."""

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

from price_tracker.config.settings import Settings
from price_tracker.models.change_event import ChangeEvent, ChangeKind
from price_tracker.notifiers.base import NotificationSink

logger = logging.getLogger("price_tracker.notifiers.email")


@dataclass
class SmtpConfig:
    """Connection and addressing details for the SMTP relay."""

    server: str = ""
    port: int = 587
    user: str = ""
    password: str = ""
    from_address: str = ""
    to_address: str = ""

    @classmethod
    def from_settings(cls) -> "SmtpConfig":
        """Build the config from ``Settings``."""
        return cls(
            server=Settings.SMTP_SERVER,
            port=Settings.SMTP_PORT,
            user=Settings.SMTP_USER,
            password=Settings.SMTP_PASS,
            from_address=Settings.SMTP_FROM,
            to_address=Settings.SMTP_TO,
        )


class EmailNotifier(NotificationSink):
    """Sends change events as plain-text email over STARTTLS."""

    name = "email"

    def __init__(self, config: SmtpConfig | None = None) -> None:
        self.config = config or SmtpConfig.from_settings()

    def is_configured(self) -> bool:
        cfg = self.config
        return all(
            (cfg.server, cfg.user, cfg.from_address, cfg.to_address)
        )

    def build_subject(self, event: ChangeEvent) -> str:
        title = event.item.title
        if event.kind is ChangeKind.PRICE_DROPPED_BELOW_THRESHOLD:
            return f"Price Alert: {title} - €{event.new_price or 0.0:.2f}"
        if event.kind is ChangeKind.BACK_IN_STOCK:
            return f"Back in Stock: {title}"
        if event.kind is ChangeKind.PRICE_CHANGED:
            return f"Price Update: {title}"
        return f"Out of Stock: {title}"

    def build_body(self, event: ChangeEvent) -> str:
        item = event.item
        lines = [
            "Price Tracker Notification",
            "==========================",
            "",
            event.describe(),
            "",
            "Product Details:",
            "---------------",
            f"Title: {item.title}",
            f"URL: {item.url}",
            f"Source: {item.source}",
        ]
        if event.new_price is not None:
            lines.append(f"Current Price: €{event.new_price:.2f}")
        if (
            event.old_price is not None
            and event.old_price != event.new_price
        ):
            lines.append(f"Previous Price: €{event.old_price:.2f}")
        if item.desired_max_price > 0:
            lines.append(f"Your Max Price: €{item.desired_max_price:.2f}")
        if item.is_uhd_4k:
            lines.append("Format: UHD 4K")
        lines.append(
            "Stock Status: "
            + ("In Stock" if item.in_stock else "Out of Stock")
        )
        lines.extend(["", "--", "Price Tracker"])
        return "\n".join(lines) + "\n"

    def notify(self, event: ChangeEvent) -> None:
        cfg = self.config
        msg = EmailMessage()
        msg["Subject"] = self.build_subject(event)
        msg["From"] = cfg.from_address
        msg["To"] = cfg.to_address
        msg.set_content(self.build_body(event))

        context = ssl.create_default_context()
        with smtplib.SMTP(
            cfg.server, cfg.port, timeout=Settings.REQUEST_TIMEOUT,
        ) as smtp:
            smtp.starttls(context=context)
            smtp.login(cfg.user, cfg.password)
            smtp.send_message(msg)
        logger.info("Email notification sent: %s", event.describe())
