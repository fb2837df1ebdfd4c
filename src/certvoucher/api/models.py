"""Pydantic models for the voucher distribution HTTP API.

Request bodies and the fixed-shape responses are defined here.  List routes
return store rows unchanged, so they have no response model.

Models
------
- :class:`WinnerWebhook`    : ``POST /api/webhook/winner`` request body
- :class:`WinnerResult`     : ``data`` member of the webhook success body
- :class:`WinnerResponse`   : ``POST /api/webhook/winner`` success body
- :class:`ClassCreate`      : ``POST /api/classes`` request body
- :class:`VoucherCreate`    : ``POST /api/vouchers`` request body
- :class:`StatsResponse`    : ``GET /api/stats`` response body
- :class:`HealthResponse`   : ``GET /api/health`` response body
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from certvoucher.workflow.distribution import WinnerEvent

# ---------------------------------------------------------------------------
# POST /api/webhook/winner
# ---------------------------------------------------------------------------


class WinnerWebhook(BaseModel):
    """Winner notification posted by the CRM.

    Every field is optional at this layer; the workflow reports missing
    ``email`` / ``certification_type`` itself so the error body matches the
    rest of the API.  Additional CRM fields are accepted and ignored.
    """

    model_config = ConfigDict(extra="ignore")

    contact_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    certification_type: str | None = None

    @field_validator("contact_id", mode="before")
    @classmethod
    def _coerce_contact_id(cls, v: Any) -> Any:
        """Accept numeric contact ids by converting them to strings."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def to_event(self) -> WinnerEvent:
        return WinnerEvent(
            contact_id=self.contact_id,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            certification_type=self.certification_type,
        )


class WinnerResult(BaseModel):
    voucher_code: str
    class_date: date
    email_sent: bool
    replayed: bool = False


class WinnerResponse(BaseModel):
    """Success body for ``POST /api/webhook/winner``."""

    success: bool = True
    message: str = "Voucher processed successfully"
    data: WinnerResult


# ---------------------------------------------------------------------------
# POST /api/classes, POST /api/vouchers
# ---------------------------------------------------------------------------


class ClassCreate(BaseModel):
    """New class row.  Every column is passed to the store unchanged."""

    model_config = ConfigDict(extra="allow")

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class VoucherCreate(BaseModel):
    """New voucher row.  Any ``status`` supplied by the caller is discarded."""

    model_config = ConfigDict(extra="allow")

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json")
        row.pop("status", None)
        return row


# ---------------------------------------------------------------------------
# GET /api/stats, GET /api/health
# ---------------------------------------------------------------------------


class StatsResponse(BaseModel):
    """Dashboard counters.  Field names are camelCase on the wire."""

    availableVouchers: int = Field(ge=0)
    usedVouchers: int = Field(ge=0)
    upcomingClasses: int = Field(ge=0)
    totalDistributions: int = Field(ge=0)


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str
