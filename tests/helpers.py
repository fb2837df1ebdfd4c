"""Shared fakes and row builders for the voucher service tests.

:class:`FakeStore` and :class:`FakeMailer` implement the same async methods
as :class:`~certvoucher.store.client.SupabaseStore` and
:class:`~certvoucher.mail.resend.ResendMailer` over plain in-memory lists,
and record every call so tests can assert which external calls were made.
No network access happens anywhere in the suite.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from fastapi.testclient import TestClient

from certvoucher.api.main import create_app
from certvoucher.config import AppConfig
from certvoucher.mail.resend import EmailMessage, EmailSendError
from certvoucher.store.client import StoreError, SupabaseStore, _parse
from certvoucher.store.records import (
    CLASSES_TABLE,
    DISTRIBUTIONS_TABLE,
    VOUCHERS_TABLE,
    ClassSession,
    Distribution,
    Voucher,
)

#: Fixed "current time" used throughout the suite.
NOW: datetime = datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)

ADMIN_EMAIL: str = "ops@example.com"


def fixed_clock() -> datetime:
    return NOW


class FakeStore:
    """In-memory stand-in for :class:`SupabaseStore`.

    Parameters
    ----------
    classes / vouchers / distributions:
        Initial rows.  Rows are plain dicts, as the real store returns them.
    fail:
        Names of methods that raise :exc:`StoreError` when called.
    """

    def __init__(
        self,
        *,
        classes: list[dict[str, Any]] | None = None,
        vouchers: list[dict[str, Any]] | None = None,
        distributions: list[dict[str, Any]] | None = None,
        fail: set[str] | None = None,
    ) -> None:
        self.classes = list(classes or [])
        self.vouchers = list(vouchers or [])
        self.distributions = list(distributions or [])
        self.fail = set(fail or ())
        self.calls: list[str] = []
        self.closed = False

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise StoreError(f"{name} exploded")

    @property
    def mutations(self) -> list[str]:
        writes = {"claim_voucher", "record_distribution", "create_class", "create_voucher"}
        return [c for c in self.calls if c in writes]

    async def aclose(self) -> None:
        self.closed = True

    # ---- workflow ----

    async def next_class(self, certification_type: str, on_or_after: date) -> ClassSession | None:
        self._enter("next_class")
        rows = sorted(
            (
                r
                for r in self.classes
                if r["certification_type"] == certification_type
                and str(r["class_date"]) >= on_or_after.isoformat()
            ),
            key=lambda r: str(r["class_date"]),
        )
        return _parse(ClassSession, rows[0], CLASSES_TABLE) if rows else None

    async def available_voucher(self, certification_type: str) -> Voucher | None:
        self._enter("available_voucher")
        for row in self.vouchers:
            if row["certification_type"] == certification_type and row["status"] == "Available":
                return _parse(Voucher, row, VOUCHERS_TABLE)
        return None

    async def claim_voucher(
        self,
        voucher_id: int | str,
        *,
        winner_name: str,
        winner_email: str,
        issued_at: datetime,
    ) -> Voucher | None:
        self._enter("claim_voucher")
        for row in self.vouchers:
            if row["id"] == voucher_id and row["status"] == "Available":
                row.update(
                    status="Used",
                    winner_name=winner_name,
                    winner_email=winner_email,
                    date_issued=issued_at.isoformat(),
                )
                return _parse(Voucher, row, VOUCHERS_TABLE)
        return None

    async def record_distribution(self, distribution: Distribution) -> Distribution:
        self._enter("record_distribution")
        row = {"id": len(self.distributions) + 1, **distribution.to_row()}
        self.distributions.append(row)
        return _parse(Distribution, row, DISTRIBUTIONS_TABLE)

    async def find_distribution(
        self, contact_id: str, certification_type: str
    ) -> Distribution | None:
        self._enter("find_distribution")
        for row in self.distributions:
            if (
                row.get("ghl_contact_id") == contact_id
                and row["certification_type"] == certification_type
            ):
                return _parse(Distribution, row, DISTRIBUTIONS_TABLE)
        return None

    # ---- passthroughs ----

    async def list_classes(self) -> list[dict[str, Any]]:
        self._enter("list_classes")
        return sorted(self.classes, key=lambda r: str(r["class_date"]))

    async def create_class(self, row: dict[str, Any]) -> dict[str, Any]:
        self._enter("create_class")
        created = {"id": len(self.classes) + 1, **row}
        self.classes.append(created)
        return created

    async def list_vouchers(self) -> list[dict[str, Any]]:
        self._enter("list_vouchers")
        return sorted(self.vouchers, key=lambda r: r["certification_type"])

    async def create_voucher(self, row: dict[str, Any]) -> dict[str, Any]:
        self._enter("create_voucher")
        created = {"id": len(self.vouchers) + 1, **row, "status": "Available"}
        self.vouchers.append(created)
        return created

    async def list_distributions(self) -> list[dict[str, Any]]:
        self._enter("list_distributions")
        return sorted(self.distributions, key=lambda r: r["date_issued"], reverse=True)

    # ---- statistics ----

    async def voucher_statuses(self) -> list[str | None]:
        self._enter("voucher_statuses")
        return [r.get("status") for r in self.vouchers]

    async def class_dates(self) -> list[str | None]:
        self._enter("class_dates")
        return [str(r["class_date"]) for r in self.classes]

    async def count_distributions(self) -> int:
        self._enter("count_distributions")
        return len(self.distributions)


class FakeMailer:
    """In-memory stand-in for :class:`ResendMailer`.

    Parameters
    ----------
    fail_for:
        Recipient addresses whose sends raise :exc:`EmailSendError`.
    """

    def __init__(self, *, fail_for: set[str] | None = None) -> None:
        self.fail_for = set(fail_for or ())
        self.sent: list[tuple[EmailMessage, str | None]] = []
        self.attempts: list[EmailMessage] = []
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    async def send(self, message: EmailMessage, *, idempotency_key: str | None = None) -> str:
        self.attempts.append(message)
        if message.to in self.fail_for:
            raise EmailSendError("validation_error: rejected")
        self.sent.append((message, idempotency_key))
        return f"email-{len(self.sent)}"

    def sent_to(self, address: str) -> list[EmailMessage]:
        return [m for m, _ in self.sent if m.to == address]

    def attempted_to(self, address: str) -> list[EmailMessage]:
        return [m for m in self.attempts if m.to == address]


def make_class(
    id: int = 1,
    certification_type: str = "CPR",
    class_date: str = "2026-10-24",
    **extra: Any,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": id,
        "certification_type": certification_type,
        "class_date": class_date,
        "class_time": "9:00 AM",
        "location_format": "Online",
        "instructor_name": "Dana Reyes",
        "registration_link": "https://example.com/register",
    }
    row.update(extra)
    return row


def make_voucher(
    id: int = 1,
    certification_type: str = "CPR",
    voucher_code: str = "CPR-0001",
    status: str = "Available",
    **extra: Any,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": id,
        "certification_type": certification_type,
        "voucher_code": voucher_code,
        "status": status,
        "winner_name": None,
        "winner_email": None,
        "date_issued": None,
    }
    row.update(extra)
    return row


def make_config(**overrides: Any) -> AppConfig:
    values: dict[str, Any] = {
        "supabase_url": "https://store.test",
        "supabase_key": "store-key",
        "resend_api_key": "mail-key",
        "from_email": None,
        "admin_email": ADMIN_EMAIL,
    }
    values.update(overrides)
    return AppConfig(**values)


def make_client(
    store: FakeStore | SupabaseStore | None = None,
    mailer: FakeMailer | None = None,
    config: AppConfig | None = None,
    *,
    raise_server_exceptions: bool = True,
) -> TestClient:
    app = create_app(
        store=store if store is not None else FakeStore(),  # type: ignore[arg-type]
        mailer=mailer if mailer is not None else FakeMailer(),  # type: ignore[arg-type]
        config=config if config is not None else make_config(),
        clock=fixed_clock,
    )
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)

