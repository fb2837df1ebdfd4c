"""Pydantic models for rows of the ``classes``, ``vouchers`` and ``distributions`` tables.

The hosted data store owns these tables; this module only describes the
columns the service reads and writes.  Every model allows extra columns so
rows round-trip without losing fields the service does not know about
(``created_at``, notes, and so on).

Design notes
-------------
- ``class_date`` is a calendar date; ``date_issued`` is a timezone-aware
  timestamp.  Both serialise to ISO 8601 strings via
  ``model_dump(mode="json")``.
- The distribution's external contact id is stored in the ``ghl_contact_id``
  column.  The model exposes it as ``external_contact_id`` and dumps it under
  the column name when ``by_alias=True``.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Table names
# ---------------------------------------------------------------------------

CLASSES_TABLE: str = "classes"
VOUCHERS_TABLE: str = "vouchers"
DISTRIBUTIONS_TABLE: str = "distributions"

#: Fixed status written on every distribution record.
DISTRIBUTION_SENT: str = "Sent"


class VoucherStatus(str, Enum):
    """Lifecycle states of a voucher.  The only transition is Available → Used."""

    AVAILABLE = "Available"
    USED = "Used"


class ClassSession(BaseModel):
    """A scheduled certification class.

    Attributes
    ----------
    id:
        Store-assigned row identifier.
    certification_type:
        Certification tag the class prepares for (e.g. ``"CPR"``).
    class_date:
        Calendar date of the session.
    class_time:
        Free-form start time (e.g. ``"9:00 AM"``).
    location_format:
        Venue or delivery format (e.g. ``"Online"``).
    instructor_name:
        Instructor display name.
    registration_link:
        URL the winner uses to register.
    """

    model_config = ConfigDict(extra="allow")

    id: int | str | None = None
    certification_type: str
    class_date: date
    class_time: str | None = None
    location_format: str | None = None
    instructor_name: str | None = None
    registration_link: str | None = None


class Voucher(BaseModel):
    """A single-use certification voucher.

    Attributes
    ----------
    id:
        Store-assigned row identifier.
    certification_type:
        Certification tag the voucher redeems.
    status:
        :class:`VoucherStatus` value.
    voucher_code:
        The redeemable secret.  Unique across the table.
    winner_name / winner_email:
        Populated when the voucher is issued.
    date_issued:
        Issuance timestamp, ``None`` while available.
    """

    model_config = ConfigDict(extra="allow")

    id: int | str | None = None
    certification_type: str
    status: VoucherStatus = VoucherStatus.AVAILABLE
    voucher_code: str
    winner_name: str | None = None
    winner_email: str | None = None
    date_issued: datetime | None = None


class Distribution(BaseModel):
    """Append-only audit record of one voucher sent to one winner."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int | str | None = None
    winner_name: str
    winner_email: str
    certification_type: str
    voucher_code: str
    class_date: date
    date_issued: datetime
    status: str = DISTRIBUTION_SENT
    external_contact_id: str | None = Field(default=None, alias="ghl_contact_id")

    def to_row(self) -> dict[str, Any]:
        """Return the JSON-ready column mapping used for inserts."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})
