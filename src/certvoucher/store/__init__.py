"""Data store subpackage for the voucher distribution service.

Talks to the hosted relational backend through its REST interface and
describes the rows of the ``classes``, ``vouchers`` and ``distributions``
tables.
"""

from certvoucher.store.client import StoreError, SupabaseStore
from certvoucher.store.records import (
    ClassSession,
    Distribution,
    Voucher,
    VoucherStatus,
)

__all__: list[str] = [
    "ClassSession",
    "Distribution",
    "StoreError",
    "SupabaseStore",
    "Voucher",
    "VoucherStatus",
]
