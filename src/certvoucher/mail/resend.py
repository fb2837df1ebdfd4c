"""Async client for the hosted email-sending API.

:class:`ResendMailer` posts one message per call to ``{RESEND_API_URL}/emails``
and returns the provider's message id.  Provider errors (non-2xx) and
transport failures are both raised as :exc:`EmailSendError`; callers never
need to catch :mod:`httpx` exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


class EmailSendError(RuntimeError):
    """Raised when the email provider rejects a message or cannot be reached."""


@dataclass(frozen=True)
class EmailMessage:
    """A single outbound HTML email."""

    sender: str
    to: str
    subject: str
    html: str


class ResendMailer:
    """Send HTML email through the Resend API.

    Parameters
    ----------
    api_key:
        Bearer token (``RESEND_API_KEY``).
    base_url:
        API root, ``https://api.resend.com`` in production.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional transport override for tests.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.resend.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            logger.warning("RESEND_API_KEY is not set; email delivery will fail")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def send(
        self, message: EmailMessage, *, idempotency_key: str | None = None
    ) -> str:
        """Send *message* and return the provider-assigned id.

        Parameters
        ----------
        message:
            The email to send.
        idempotency_key:
            When given, forwarded as the ``Idempotency-Key`` header so the
            provider delivers at most one message per key.

        Raises
        ------
        EmailSendError
            If the provider answers with an error status or a non-JSON body,
            or the request fails.
        """
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        payload = {
            "from": message.sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        try:
            response = await self._client.post("/emails", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise EmailSendError(f"Email request failed: {exc}") from exc

        if response.is_error:
            raise EmailSendError(_error_message(response))

        try:
            body = response.json() if response.content else {}
        except ValueError as exc:
            raise EmailSendError(
                f"Email provider returned a non-JSON body (HTTP {response.status_code})"
            ) from exc
        message_id = str(body.get("id", "")) if isinstance(body, dict) else ""
        logger.debug("Email %r accepted by provider as %s", message.subject, message_id)
        return message_id


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"{body.get('name', 'error')}: {body['message']}"
    return f"Email provider returned HTTP {response.status_code}"
