"""Async client for the hosted data store's REST interface.

:class:`SupabaseStore` wraps one :class:`httpx.AsyncClient` bound to
``{SUPABASE_URL}/rest/v1`` and exposes one method per query the service
needs.  Every call is a fresh request; nothing is cached.

Typical usage::

    store = SupabaseStore("https://project.supabase.co", "service-key")
    session = await store.next_class("CPR", date.today())
    await store.aclose()

Query conventions (PostgREST)
------------------------------
- Filters are passed as ``column=op.value`` query parameters (``eq``, ``gte``).
- Ordering uses ``order=column.asc`` / ``order=column.desc``.
- Inserts and updates send ``Prefer: return=representation`` so the written
  rows come back in the response body.

Any non-2xx response or transport failure raises :exc:`StoreError` carrying
the store's own ``message`` text, which the API surfaces verbatim.  A 2xx
response whose body is not JSON rows, or a row that does not fit its record
model, raises :exc:`StoreError` as well.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from certvoucher.store.records import (
    CLASSES_TABLE,
    DISTRIBUTIONS_TABLE,
    VOUCHERS_TABLE,
    ClassSession,
    Distribution,
    Voucher,
    VoucherStatus,
)

logger = logging.getLogger(__name__)

Filters = Sequence[tuple[str, str]]

_RETURN_REPRESENTATION: str = "return=representation"

_RowT = TypeVar("_RowT", bound=BaseModel)


class StoreError(RuntimeError):
    """Raised when the data store rejects a request or cannot be reached.

    Attributes
    ----------
    status_code:
        HTTP status returned by the store, or ``None`` for transport errors.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SupabaseStore:
    """Query and write the ``classes``, ``vouchers`` and ``distributions`` tables.

    Parameters
    ----------
    base_url:
        Project URL (``SUPABASE_URL``).  ``/rest/v1`` is appended.
    api_key:
        Project key (``SUPABASE_KEY``), sent as both ``apikey`` and bearer
        token.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional transport override.  Tests pass an
        :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            logger.warning("SUPABASE_URL is not set; data store requests will fail")
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Generic table access
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Filters = (),
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows of *table* matching every filter.

        Parameters
        ----------
        table:
            Table name.
        columns:
            PostgREST ``select`` list.
        filters:
            ``(column, "op.value")`` pairs, e.g. ``("status", "eq.Available")``.
        order:
            PostgREST ordering, e.g. ``"class_date.asc"``.
        limit:
            Maximum number of rows.
        """
        params: list[tuple[str, str]] = [("select", columns), *filters]
        if order is not None:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        rows = await self._request(
            "POST", table, json=row, prefer=_RETURN_REPRESENTATION
        )
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(
        self, table: str, values: dict[str, Any], *, filters: Filters
    ) -> list[dict[str, Any]]:
        """Update every row matching *filters*; return the updated rows.

        An empty list means no row matched.
        """
        if not filters:
            raise ValueError("update() requires at least one filter")
        return await self._request(
            "PATCH",
            table,
            params=list(filters),
            json=values,
            prefer=_RETURN_REPRESENTATION,
        )

    # ------------------------------------------------------------------
    # Distribution workflow queries
    # ------------------------------------------------------------------

    async def next_class(
        self, certification_type: str, on_or_after: date
    ) -> ClassSession | None:
        """Return the earliest class of *certification_type* on or after *on_or_after*."""
        rows = await self.select(
            CLASSES_TABLE,
            filters=[
                ("certification_type", f"eq.{certification_type}"),
                ("class_date", f"gte.{on_or_after.isoformat()}"),
            ],
            order="class_date.asc",
            limit=1,
        )
        return _parse(ClassSession, rows[0], CLASSES_TABLE) if rows else None

    async def available_voucher(self, certification_type: str) -> Voucher | None:
        """Return any Available voucher for *certification_type*.

        No ordering is requested; whichever row the store returns first is
        used.
        """
        rows = await self.select(
            VOUCHERS_TABLE,
            filters=[
                ("certification_type", f"eq.{certification_type}"),
                ("status", f"eq.{VoucherStatus.AVAILABLE.value}"),
            ],
            limit=1,
        )
        return _parse(Voucher, rows[0], VOUCHERS_TABLE) if rows else None

    async def claim_voucher(
        self,
        voucher_id: int | str,
        *,
        winner_name: str,
        winner_email: str,
        issued_at: datetime,
    ) -> Voucher | None:
        """Mark a voucher Used, but only while it is still Available.

        Returns the updated voucher, or ``None`` when the voucher was no
        longer Available (another request consumed it first).
        """
        rows = await self.update(
            VOUCHERS_TABLE,
            {
                "status": VoucherStatus.USED.value,
                "winner_name": winner_name,
                "winner_email": winner_email,
                "date_issued": issued_at.isoformat(),
            },
            filters=[
                ("id", f"eq.{voucher_id}"),
                ("status", f"eq.{VoucherStatus.AVAILABLE.value}"),
            ],
        )
        return _parse(Voucher, rows[0], VOUCHERS_TABLE) if rows else None

    async def record_distribution(self, distribution: Distribution) -> Distribution:
        """Append a distribution record."""
        row = await self.insert(DISTRIBUTIONS_TABLE, distribution.to_row())
        return _parse(Distribution, row, DISTRIBUTIONS_TABLE)

    async def find_distribution(
        self, contact_id: str, certification_type: str
    ) -> Distribution | None:
        """Return the distribution already recorded for a contact, if any."""
        rows = await self.select(
            DISTRIBUTIONS_TABLE,
            filters=[
                ("ghl_contact_id", f"eq.{contact_id}"),
                ("certification_type", f"eq.{certification_type}"),
            ],
            order="date_issued.desc",
            limit=1,
        )
        return _parse(Distribution, rows[0], DISTRIBUTIONS_TABLE) if rows else None

    # ------------------------------------------------------------------
    # Administrative passthroughs
    # ------------------------------------------------------------------

    async def list_classes(self) -> list[dict[str, Any]]:
        return await self.select(CLASSES_TABLE, order="class_date.asc")

    async def create_class(self, row: dict[str, Any]) -> dict[str, Any]:
        return await self.insert(CLASSES_TABLE, row)

    async def list_vouchers(self) -> list[dict[str, Any]]:
        return await self.select(VOUCHERS_TABLE, order="certification_type.asc")

    async def create_voucher(self, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a voucher; the status column is always written as Available."""
        return await self.insert(
            VOUCHERS_TABLE, {**row, "status": VoucherStatus.AVAILABLE.value}
        )

    async def list_distributions(self) -> list[dict[str, Any]]:
        return await self.select(DISTRIBUTIONS_TABLE, order="date_issued.desc")

    # ------------------------------------------------------------------
    # Statistics reads
    # ------------------------------------------------------------------

    async def voucher_statuses(self) -> list[str | None]:
        rows = await self.select(VOUCHERS_TABLE, columns="status")
        return [row.get("status") for row in rows]

    async def class_dates(self) -> list[str | None]:
        rows = await self.select(CLASSES_TABLE, columns="class_date")
        return [row.get("class_date") for row in rows]

    async def count_distributions(self) -> int:
        rows = await self.select(DISTRIBUTIONS_TABLE, columns="id")
        return len(rows)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {table} failed: {exc}") from exc

        if response.is_error:
            raise StoreError(
                _error_message(response), status_code=response.status_code
            )
        if not response.content:
            return []
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError(
                f"{method} {table} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
        if isinstance(payload, dict):
            return [payload]
        if isinstance(payload, list) and all(isinstance(row, dict) for row in payload):
            return payload
        raise StoreError(
            f"{method} {table} returned an unexpected body",
            status_code=response.status_code,
        )


def _parse(model: type[_RowT], row: dict[str, Any], table: str) -> _RowT:
    """Validate a store row, reporting a malformed row as :exc:`StoreError`."""
    try:
        return model.model_validate(row)
    except ValidationError as exc:
        raise StoreError(
            f"Malformed {table} row {row.get('id')!r}: {exc.error_count()} invalid field(s)"
        ) from exc


def _error_message(response: httpx.Response) -> str:
    """Extract the store's ``message`` field, falling back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or f"Data store returned HTTP {response.status_code}"
