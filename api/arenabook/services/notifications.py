"""Booking notifications via SMTP.

Delivery is best effort: notify_booking() never raises, so a mail outage can
not turn a successful booking into a failed one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from email.message import EmailMessage

import aiosmtplib

from arenabook.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingSummary:
    reference: str
    court_name: str
    start_time: datetime
    end_time: datetime
    status: str
    total_price: Decimal
    court_type: str | None = None


async def send_email(to: str, subject: str, body: str) -> None:
    """Send a plain-text email via SMTP."""
    message = EmailMessage()
    message["From"] = settings.smtp_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    await aiosmtplib.send(message, hostname=settings.smtp_host, port=settings.smtp_port)


def render_summary(summary: BookingSummary) -> str:
    when = f"{summary.start_time:%A %d %B %Y, %H:%M} - {summary.end_time:%H:%M}"
    lines = [
        f"Booking: {summary.reference}",
        f"Court: {summary.court_name}" + (f" ({summary.court_type.replace('_', ' ')})" if summary.court_type else ""),
        f"When: {when}",
        f"Status: {summary.status}",
        f"Total: {summary.total_price:.2f}",
    ]
    return "\n".join(lines)


async def notify_booking(recipient: str | None, subject: str, summary: BookingSummary) -> bool:
    """Send a booking summary. Returns False (and logs) on any delivery failure."""
    to = recipient or settings.staff_notification_email
    body = f"Hi,\n\n{render_summary(summary)}\n\n{settings.app_name}"
    try:
        await send_email(to, subject, body)
    except Exception:
        logger.warning("Booking notification to %s failed for %s", to, summary.reference, exc_info=True)
        return False
    logger.info("Booking notification sent to %s for %s", to, summary.reference)
    return True
