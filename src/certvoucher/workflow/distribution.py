"""Distribution workflow: turn a winner event into a delivered voucher.

Processing order for one event:

0. **Replay check**: if the event carries a contact id and a distribution
   for that contact and certification type already exists, the event is a
   redelivery and the recorded result is returned without side effects.
1. **Class resolution**: earliest class of the requested certification type
   dated today (UTC) or later.  None found, or the lookup fails: operator
   alert + :exc:`NoClassAvailableError`.
2. **Voucher resolution**: any Available voucher of the type.  None found,
   or the lookup fails: operator alert + :exc:`NoVoucherAvailableError`.
3. **Notification**: the winner email, sent with an idempotency key derived
   from the contact id.  Failure: :exc:`EmailDeliveryError`; nothing has
   been written.
4. **Voucher consumption**: conditional Available → Used update.
5. **Audit log**: append the distribution record.

Steps 1–3 are fatal to the request.  Once the email has gone out, failures
in steps 4–5 are logged and the request still succeeds: the email cannot be
recalled, so the caller is told the voucher was delivered even if the store
is left inconsistent.

Notes
-----
- There is no transaction spanning the steps.  Two concurrent events can
  read the same Available voucher; the conditional update in step 4 lets
  only one of them flip it to Used and the loser is logged as a double
  issue for an operator to resolve.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from certvoucher.mail.resend import EmailSendError, ResendMailer
from certvoucher.mail.templates import winner_email
from certvoucher.store.client import StoreError, SupabaseStore
from certvoucher.store.records import ClassSession, Distribution, Voucher
from certvoucher.workflow.alerts import OperatorAlerter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class WorkflowError(Exception):
    """Base class for outcomes that end the request with an error response.

    Attributes
    ----------
    status_code:
        HTTP status the API answers with.
    message:
        Human-readable ``error`` text.
    context:
        Extra keys merged into the JSON payload.
    """

    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.context}


class MissingFieldsError(WorkflowError):
    """The event lacks ``email`` or ``certification_type``."""

    status_code = 400


class NoClassAvailableError(WorkflowError):
    """No upcoming class exists for the certification type."""

    status_code = 404


class NoVoucherAvailableError(WorkflowError):
    """No Available voucher exists for the certification type."""

    status_code = 404


class EmailDeliveryError(WorkflowError):
    """The winner email could not be sent."""

    status_code = 500


# ---------------------------------------------------------------------------
# Inputs and outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WinnerEvent:
    """A "winner selected" notification from the CRM."""

    contact_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    certification_type: str | None = None

    @property
    def winner_name(self) -> str:
        parts = (self.first_name, self.last_name)
        return " ".join(p.strip() for p in parts if p and p.strip())


@dataclass(frozen=True)
class DistributionOutcome:
    """Result of a successfully processed event."""

    voucher_code: str
    class_date: date
    email_sent: bool = True
    replayed: bool = False


def idempotency_key(contact_id: str | None, certification_type: str) -> str | None:
    """Deterministic email idempotency key for a contact and certification type.

    Returns ``None`` when there is no contact id to key on.
    """
    if not contact_id:
        return None
    digest = hashlib.sha256(f"{contact_id}:{certification_type}".encode("utf-8"))
    return f"voucher-{digest.hexdigest()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class DistributionWorkflow:
    """Match a winner to a class and a voucher, email it, and record it.

    Parameters
    ----------
    store:
        Data store client.
    mailer:
        Email client used for the winner email.
    alerter:
        Operator alert emitter used when a lookup comes back empty.
    sender:
        From address for winner emails.
    clock:
        Returns the current UTC time.  "Today" for class eligibility and the
        issuance timestamp both come from here.
    """

    def __init__(
        self,
        store: SupabaseStore,
        mailer: ResendMailer,
        alerter: OperatorAlerter,
        *,
        sender: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._mailer = mailer
        self._alerter = alerter
        self._sender = sender
        self._clock = clock

    async def process(self, event: WinnerEvent) -> DistributionOutcome:
        """Run the full workflow for one event.

        Raises
        ------
        MissingFieldsError
            ``email`` or ``certification_type`` is missing.  No external call
            has been made.
        NoClassAvailableError / NoVoucherAvailableError
            The corresponding lookup found nothing; one alert has been sent.
        EmailDeliveryError
            The winner email failed; nothing was written.
        """
        if not _present(event.email) or not _present(event.certification_type):
            raise MissingFieldsError(
                "Missing required fields: email and certification_type"
            )
        email: str = event.email.strip()  # type: ignore[union-attr]
        certification_type: str = event.certification_type.strip()  # type: ignore[union-attr]
        winner_name = event.winner_name

        replay = await self._find_replay(event.contact_id, certification_type)
        if replay is not None:
            logger.info(
                "Event for contact %s already distributed voucher %s; skipping",
                event.contact_id,
                replay.voucher_code,
            )
            return DistributionOutcome(
                voucher_code=replay.voucher_code,
                class_date=replay.class_date,
                replayed=True,
            )

        now = self._clock()
        session = await self._resolve_class(certification_type, email, now.date())
        voucher = await self._resolve_voucher(certification_type, email)

        message = winner_email(
            sender=self._sender,
            to=email,
            winner_name=winner_name,
            certification_type=certification_type,
            session=session,
            voucher_code=voucher.voucher_code,
        )
        try:
            await self._mailer.send(
                message,
                idempotency_key=idempotency_key(event.contact_id, certification_type),
            )
        except EmailSendError as exc:
            logger.error("Winner email to %s failed: %s", email, exc)
            raise EmailDeliveryError("Failed to send email") from exc
        logger.info("Voucher email sent to %s for %s", email, certification_type)

        issued_at = self._clock()
        await self._consume_voucher(voucher, winner_name, email, issued_at)
        await self._log_distribution(
            Distribution(
                winner_name=winner_name,
                winner_email=email,
                certification_type=certification_type,
                voucher_code=voucher.voucher_code,
                class_date=session.class_date,
                date_issued=issued_at,
                external_contact_id=event.contact_id,
            )
        )

        return DistributionOutcome(
            voucher_code=voucher.voucher_code,
            class_date=session.class_date,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _find_replay(
        self, contact_id: str | None, certification_type: str
    ) -> Distribution | None:
        if not contact_id:
            return None
        try:
            return await self._store.find_distribution(contact_id, certification_type)
        except StoreError as exc:
            logger.warning("Replay lookup for contact %s failed: %s", contact_id, exc)
            return None

    async def _resolve_class(
        self, certification_type: str, email: str, today: date
    ) -> ClassSession:
        try:
            session = await self._store.next_class(certification_type, today)
        except StoreError as exc:
            logger.warning("Class lookup for %s failed: %s", certification_type, exc)
            session = None

        if session is None:
            await self._alerter.alert(
                "No Classes Available",
                f"No upcoming {certification_type} classes found for winner: {email}",
            )
            raise NoClassAvailableError(
                "No upcoming classes available",
                certification_type=certification_type,
            )
        return session

    async def _resolve_voucher(self, certification_type: str, email: str) -> Voucher:
        try:
            voucher = await self._store.available_voucher(certification_type)
        except StoreError as exc:
            logger.warning("Voucher lookup for %s failed: %s", certification_type, exc)
            voucher = None

        if voucher is None:
            await self._alerter.alert(
                "No Vouchers Available",
                f"No available {certification_type} vouchers for winner: {email}",
            )
            raise NoVoucherAvailableError(
                "No vouchers available",
                certification_type=certification_type,
            )
        return voucher

    async def _consume_voucher(
        self, voucher: Voucher, winner_name: str, email: str, issued_at: datetime
    ) -> None:
        if voucher.id is None:
            logger.error("Voucher %s has no id; cannot mark it Used", voucher.voucher_code)
            return
        try:
            claimed = await self._store.claim_voucher(
                voucher.id,
                winner_name=winner_name,
                winner_email=email,
                issued_at=issued_at,
            )
        except StoreError as exc:
            logger.error("Voucher update failed for %s: %s", voucher.voucher_code, exc)
            return
        if claimed is None:
            logger.error(
                "Voucher %s was no longer Available when marking it Used; "
                "it may have been issued twice",
                voucher.voucher_code,
            )

    async def _log_distribution(self, distribution: Distribution) -> None:
        try:
            await self._store.record_distribution(distribution)
        except StoreError as exc:
            logger.error(
                "Distribution record for voucher %s failed: %s",
                distribution.voucher_code,
                exc,
            )
