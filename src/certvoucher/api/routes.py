"""FastAPI router for the voucher distribution API.

Endpoints (all under ``/api``):

- ``GET  /health``         : liveness check
- ``POST /webhook/winner`` : process a winner event from the CRM
- ``GET  /classes``        : classes, soonest first
- ``POST /classes``        : add a class
- ``GET  /vouchers``       : vouchers, ordered by certification type
- ``POST /vouchers``       : add a voucher (always Available)
- ``GET  /distributions``  : distribution history, newest first
- ``GET  /stats``          : dashboard counters

Dependencies (attached to ``app.state`` by :func:`~certvoucher.api.main.create_app`):

- :class:`~certvoucher.workflow.distribution.DistributionWorkflow`
- :class:`~certvoucher.store.client.SupabaseStore`
- ``clock``: callable returning the current UTC time

Error rendering lives in :mod:`certvoucher.api.errors`.  Workflow errors and
:exc:`~certvoucher.store.client.StoreError` propagate out of the handlers
and are turned into JSON there.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from certvoucher.api.models import (
    ClassCreate,
    HealthResponse,
    StatsResponse,
    VoucherCreate,
    WinnerResponse,
    WinnerResult,
    WinnerWebhook,
)
from certvoucher.store.client import SupabaseStore
from certvoucher.workflow.distribution import DistributionWorkflow, WorkflowError
from certvoucher.workflow.stats import collect_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Dependency accessor helpers
# ---------------------------------------------------------------------------


def _get_workflow(request: Request) -> DistributionWorkflow:
    return request.app.state.workflow  # type: ignore[no-any-return]


def _get_store(request: Request) -> SupabaseStore:
    return request.app.state.store  # type: ignore[no-any-return]


def _get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock  # type: ignore[no-any-return]


# ---------------------------------------------------------------------------
# GET /api/health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, tags=["service"])
def get_health(
    clock: Annotated[Callable[[], datetime], Depends(_get_clock)],
) -> HealthResponse:
    """Liveness check.  Makes no external call."""
    return HealthResponse(status="healthy", timestamp=clock().isoformat())


# ---------------------------------------------------------------------------
# POST /api/webhook/winner
# ---------------------------------------------------------------------------


@router.post(
    "/webhook/winner",
    response_model=WinnerResponse,
    summary="Distribute a voucher to a seminar winner",
    tags=["distribution"],
)
async def post_winner(
    body: WinnerWebhook,
    workflow: Annotated[DistributionWorkflow, Depends(_get_workflow)],
) -> WinnerResponse | JSONResponse:
    """Run the distribution workflow for one winner event.

    Responses
    ---------
    200
        Voucher emailed (or already emailed for this contact).
    400
        ``email`` or ``certification_type`` missing.
    404
        No upcoming class or no Available voucher for the certification type.
    500
        The winner email failed, or any unexpected error (message in
        ``details``).
    """
    try:
        outcome = await workflow.process(body.to_event())
    except WorkflowError:
        raise
    except Exception as exc:  # noqa: BLE001 unexpected failures become a generic 500
        logger.exception("Webhook processing error")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )

    return WinnerResponse(
        data=WinnerResult(
            voucher_code=outcome.voucher_code,
            class_date=outcome.class_date,
            email_sent=outcome.email_sent,
            replayed=outcome.replayed,
        )
    )


# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------


@router.get("/classes", tags=["classes"])
async def list_classes(
    store: Annotated[SupabaseStore, Depends(_get_store)],
) -> list[dict[str, Any]]:
    return await store.list_classes()


@router.post("/classes", status_code=201, tags=["classes"])
async def create_class(
    body: ClassCreate,
    store: Annotated[SupabaseStore, Depends(_get_store)],
) -> dict[str, Any]:
    row = body.to_row()
    created = await store.create_class(row)
    logger.info("Class added for %s on %s", row.get("certification_type"), row.get("class_date"))
    return created


# ---------------------------------------------------------------------------
# Vouchers
# ---------------------------------------------------------------------------


@router.get("/vouchers", tags=["vouchers"])
async def list_vouchers(
    store: Annotated[SupabaseStore, Depends(_get_store)],
) -> list[dict[str, Any]]:
    return await store.list_vouchers()


@router.post("/vouchers", status_code=201, tags=["vouchers"])
async def create_voucher(
    body: VoucherCreate,
    store: Annotated[SupabaseStore, Depends(_get_store)],
) -> dict[str, Any]:
    """Add a voucher.  The stored status is always ``Available``."""
    row = body.to_row()
    created = await store.create_voucher(row)
    logger.info("Voucher added for %s", row.get("certification_type"))
    return created


# ---------------------------------------------------------------------------
# Distributions and statistics
# ---------------------------------------------------------------------------


@router.get("/distributions", tags=["distribution"])
async def list_distributions(
    store: Annotated[SupabaseStore, Depends(_get_store)],
) -> list[dict[str, Any]]:
    return await store.list_distributions()


@router.get("/stats", response_model=StatsResponse, tags=["distribution"])
async def get_stats(
    store: Annotated[SupabaseStore, Depends(_get_store)],
    clock: Annotated[Callable[[], datetime], Depends(_get_clock)],
) -> StatsResponse:
    stats = await collect_stats(store, clock())
    return StatsResponse(
        availableVouchers=stats.available_vouchers,
        usedVouchers=stats.used_vouchers,
        upcomingClasses=stats.upcoming_classes,
        totalDistributions=stats.total_distributions,
    )
