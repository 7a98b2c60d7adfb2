"""Sync engine: transfer, retention and the scan loop."""

from .retention import RetentionEnforcer, select_for_deletion
from .scheduler import ScanScheduler, SchedulerState
from .service import UploaderService
from .transfer import TransferEngine

__all__ = [
    "RetentionEnforcer",
    "ScanScheduler",
    "SchedulerState",
    "TransferEngine",
    "UploaderService",
    "select_for_deletion",
]
