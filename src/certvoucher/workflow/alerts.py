"""Operator alerts for distribution failures that need a human.

Alerts are fire-and-forget: :meth:`OperatorAlerter.alert` never raises.  A
failed send is logged and the triggering request proceeds exactly as it
would have without the alert.  There is no retry and no suppression window;
every failed lookup produces its own alert.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from certvoucher.mail.resend import ResendMailer
from certvoucher.mail.templates import alert_email

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OperatorAlerter:
    """Email operator alerts to a fixed address.

    Parameters
    ----------
    mailer:
        Client used to send the alert.
    sender:
        From address for alerts.
    recipient:
        Operator address.  When ``None`` alerts are only logged.
    clock:
        Returns the current UTC time; stamped into the alert body.
    """

    def __init__(
        self,
        mailer: ResendMailer,
        *,
        sender: str,
        recipient: str | None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._mailer = mailer
        self._sender = sender
        self._recipient = recipient
        self._clock = clock

    async def alert(self, subject: str, message: str) -> None:
        """Send ``[ALERT] {subject}``; log and swallow any failure."""
        if self._recipient is None:
            logger.warning("ADMIN_EMAIL not configured; alert not sent: %s (%s)", subject, message)
            return

        email = alert_email(
            sender=self._sender,
            to=self._recipient,
            subject=subject,
            message=message,
            sent_at=self._clock(),
        )
        try:
            await self._mailer.send(email)
        except Exception:  # noqa: BLE001 alert failure must not affect the request
            logger.exception("Operator alert %r failed", subject)
            return
        logger.info("Operator alert sent: %s", subject)
