"""Dashboard counters derived from the three tables.

The three reads have no ordering dependency, so they are issued together
with :func:`asyncio.gather`.  A failed read is logged and counted as an
empty result rather than failing the whole response.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any

from certvoucher.store.client import SupabaseStore
from certvoucher.store.records import VoucherStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoucherStats:
    available_vouchers: int
    used_vouchers: int
    upcoming_classes: int
    total_distributions: int


def _parse_class_moment(value: Any) -> datetime | None:
    """Interpret a ``class_date`` value as a UTC instant.

    A bare date means midnight UTC on that day.  Unparseable values yield
    ``None``.
    """
    if value is None:
        return None
    text = str(value)
    try:
        if len(text) == 10:
            return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _result_or_empty(result: Any, what: str, empty: Any) -> Any:
    if isinstance(result, BaseException):
        logger.warning("Statistics read for %s failed: %s", what, result)
        return empty
    return result


async def collect_stats(store: SupabaseStore, now: datetime) -> VoucherStats:
    """Read voucher statuses, class dates and the distribution count concurrently.

    Parameters
    ----------
    store:
        Data store client.
    now:
        Reference instant; a class is upcoming when it starts strictly after it.
    """
    statuses, class_dates, distributions = await asyncio.gather(
        store.voucher_statuses(),
        store.class_dates(),
        store.count_distributions(),
        return_exceptions=True,
    )
    statuses = _result_or_empty(statuses, "vouchers", [])
    class_dates = _result_or_empty(class_dates, "classes", [])
    distributions = _result_or_empty(distributions, "distributions", 0)

    upcoming = 0
    for value in class_dates:
        moment = _parse_class_moment(value)
        if moment is not None and moment > now:
            upcoming += 1

    return VoucherStats(
        available_vouchers=sum(1 for s in statuses if s == VoucherStatus.AVAILABLE.value),
        used_vouchers=sum(1 for s in statuses if s == VoucherStatus.USED.value),
        upcoming_classes=upcoming,
        total_distributions=distributions,
    )
