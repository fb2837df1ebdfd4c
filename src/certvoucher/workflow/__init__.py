"""Workflow subpackage: voucher distribution, operator alerts and statistics.

Public API
----------
DistributionWorkflow
    Runs the class → voucher → email → consume → log sequence for one
    winner event.
OperatorAlerter
    Best-effort operator alerts; never raises.
collect_stats
    Concurrent read of the dashboard counters.
"""

from certvoucher.workflow.alerts import OperatorAlerter
from certvoucher.workflow.distribution import (
    DistributionOutcome,
    DistributionWorkflow,
    EmailDeliveryError,
    MissingFieldsError,
    NoClassAvailableError,
    NoVoucherAvailableError,
    WinnerEvent,
    WorkflowError,
)
from certvoucher.workflow.stats import VoucherStats, collect_stats

__all__: list[str] = [
    "DistributionOutcome",
    "DistributionWorkflow",
    "EmailDeliveryError",
    "MissingFieldsError",
    "NoClassAvailableError",
    "NoVoucherAvailableError",
    "OperatorAlerter",
    "VoucherStats",
    "WinnerEvent",
    "WorkflowError",
    "collect_stats",
]
