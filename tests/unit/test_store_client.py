"""Unit tests for :class:`certvoucher.store.client.SupabaseStore`.

Requests are captured by an :class:`httpx.MockTransport`; the tests assert on
the PostgREST query each method issues and on how responses and errors are
translated.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

import httpx
import pytest

from certvoucher.store.client import StoreError, SupabaseStore
from certvoucher.store.records import Distribution, VoucherStatus

BASE = "https://project.supabase.test"


class _Recorder:
    """Mock transport handler that records requests and replays canned responses."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._respond = respond

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def _json(payload: Any, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=payload)


def _store(recorder: _Recorder) -> SupabaseStore:
    return SupabaseStore(BASE, "secret", transport=httpx.MockTransport(recorder))


def _params(request: httpx.Request) -> list[tuple[str, str]]:
    return list(request.url.params.multi_items())


class TestRequestShape:
    def test_auth_headers_and_path(self) -> None:
        rec = _Recorder(_json([]))
        asyncio.run(_store(rec).list_classes())
        assert rec.last.url.path == "/rest/v1/classes"
        assert rec.last.headers["apikey"] == "secret"
        assert rec.last.headers["authorization"] == "Bearer secret"

    def test_next_class_query(self) -> None:
        row = {
            "id": 7,
            "certification_type": "CPR",
            "class_date": "2026-10-24",
            "class_time": "9:00 AM",
        }
        rec = _Recorder(_json([row]))
        session = asyncio.run(_store(rec).next_class("CPR", date(2026, 10, 17)))
        assert session is not None
        assert session.id == 7
        assert session.class_date == date(2026, 10, 24)
        assert _params(rec.last) == [
            ("select", "*"),
            ("certification_type", "eq.CPR"),
            ("class_date", "gte.2026-10-17"),
            ("order", "class_date.asc"),
            ("limit", "1"),
        ]

    def test_next_class_none_when_empty(self) -> None:
        rec = _Recorder(_json([]))
        assert asyncio.run(_store(rec).next_class("CPR", date(2026, 10, 17))) is None

    def test_available_voucher_query(self) -> None:
        row = {"id": 3, "certification_type": "CPR", "voucher_code": "V-1", "status": "Available"}
        rec = _Recorder(_json([row]))
        voucher = asyncio.run(_store(rec).available_voucher("CPR"))
        assert voucher is not None and voucher.status is VoucherStatus.AVAILABLE
        assert ("status", "eq.Available") in _params(rec.last)
        assert ("limit", "1") in _params(rec.last)
        assert "order" not in dict(_params(rec.last))

    def test_claim_voucher_is_conditional_on_available(self) -> None:
        updated = {
            "id": 3,
            "certification_type": "CPR",
            "voucher_code": "V-1",
            "status": "Used",
            "winner_name": "Ada Lovelace",
            "winner_email": "ada@example.com",
            "date_issued": "2026-10-17T15:00:00+00:00",
        }
        rec = _Recorder(_json([updated]))
        issued = datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)
        voucher = asyncio.run(
            _store(rec).claim_voucher(
                3, winner_name="Ada Lovelace", winner_email="ada@example.com", issued_at=issued
            )
        )
        request = rec.last
        assert request.method == "PATCH"
        assert _params(request) == [("id", "eq.3"), ("status", "eq.Available")]
        assert request.headers["prefer"] == "return=representation"
        assert json.loads(request.content) == {
            "status": "Used",
            "winner_name": "Ada Lovelace",
            "winner_email": "ada@example.com",
            "date_issued": "2026-10-17T15:00:00+00:00",
        }
        assert voucher is not None and voucher.status is VoucherStatus.USED

    def test_claim_voucher_none_when_no_row_matched(self) -> None:
        rec = _Recorder(_json([]))
        issued = datetime(2026, 10, 17, tzinfo=timezone.utc)
        result = asyncio.run(
            _store(rec).claim_voucher(3, winner_name="A", winner_email="a@x", issued_at=issued)
        )
        assert result is None

    def test_record_distribution_writes_contact_column(self) -> None:
        rec = _Recorder(lambda request: httpx.Response(201, json=[{"id": 1, **json.loads(request.content)}]))
        distribution = Distribution(
            winner_name="Ada Lovelace",
            winner_email="ada@example.com",
            certification_type="CPR",
            voucher_code="V-1",
            class_date=date(2026, 10, 24),
            date_issued=datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc),
            external_contact_id="ghl-42",
        )
        stored = asyncio.run(_store(rec).record_distribution(distribution))
        body = json.loads(rec.last.content)
        assert rec.last.method == "POST"
        assert body["ghl_contact_id"] == "ghl-42"
        assert body["status"] == "Sent"
        assert body["class_date"] == "2026-10-24"
        assert "id" not in body
        assert stored.external_contact_id == "ghl-42"

    def test_create_voucher_forces_available(self) -> None:
        rec = _Recorder(lambda request: httpx.Response(201, json=[json.loads(request.content)]))
        asyncio.run(
            _store(rec).create_voucher(
                {"certification_type": "CPR", "voucher_code": "X", "status": "Used"}
            )
        )
        assert json.loads(rec.last.content)["status"] == "Available"

    @pytest.mark.parametrize(
        ("method", "table", "order"),
        [
            ("list_classes", "classes", "class_date.asc"),
            ("list_vouchers", "vouchers", "certification_type.asc"),
            ("list_distributions", "distributions", "date_issued.desc"),
        ],
    )
    def test_list_ordering(self, method: str, table: str, order: str) -> None:
        rec = _Recorder(_json([]))
        asyncio.run(getattr(_store(rec), method)())
        assert rec.last.url.path == f"/rest/v1/{table}"
        assert ("order", order) in _params(rec.last)

    def test_statistics_reads_select_single_columns(self) -> None:
        rec = _Recorder(_json([{"status": "Available"}, {"status": "Used"}]))
        store = _store(rec)
        assert asyncio.run(store.voucher_statuses()) == ["Available", "Used"]
        assert ("select", "status") in _params(rec.last)
        assert asyncio.run(store.count_distributions()) == 2


class TestErrors:
    def test_error_status_raises_with_store_message(self) -> None:
        rec = _Recorder(_json({"code": "42P01", "message": 'relation "classes" does not exist'}, 404))
        with pytest.raises(StoreError) as excinfo:
            asyncio.run(_store(rec).list_classes())
        assert str(excinfo.value) == 'relation "classes" does not exist'
        assert excinfo.value.status_code == 404

    def test_non_json_error_body(self) -> None:
        rec = _Recorder(lambda request: httpx.Response(502, text="Bad gateway"))
        with pytest.raises(StoreError, match="Bad gateway"):
            asyncio.run(_store(rec).list_vouchers())

    def test_transport_failure_raises_store_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StoreError) as excinfo:
            asyncio.run(_store(_Recorder(refuse)).list_classes())
        assert excinfo.value.status_code is None

    def test_non_json_success_body_raises_store_error(self) -> None:
        rec = _Recorder(
            lambda request: httpx.Response(
                200, text="<html>gateway</html>", headers={"Content-Type": "text/html"}
            )
        )
        with pytest.raises(StoreError, match="GET classes returned a non-JSON body") as excinfo:
            asyncio.run(_store(rec).list_classes())
        assert excinfo.value.status_code == 200

    def test_scalar_success_body_raises_store_error(self) -> None:
        with pytest.raises(StoreError, match="unexpected body"):
            asyncio.run(_store(_Recorder(_json("ok"))).list_vouchers())

    def test_malformed_row_raises_store_error(self) -> None:
        rec = _Recorder(_json([{"id": 7, "ghl_contact_id": "ghl-42", "winner_name": None}]))
        with pytest.raises(StoreError, match="Malformed distributions row 7"):
            asyncio.run(_store(rec).find_distribution("ghl-42", "CPR"))

    def test_insert_without_representation_raises(self) -> None:
        rec = _Recorder(lambda request: httpx.Response(201))
        with pytest.raises(StoreError):
            asyncio.run(_store(rec).create_class({"certification_type": "CPR"}))

    def test_update_requires_filter(self) -> None:
        rec = _Recorder(_json([]))
        with pytest.raises(ValueError):
            asyncio.run(_store(rec).update("vouchers", {"status": "Used"}, filters=[]))
        assert rec.requests == []
