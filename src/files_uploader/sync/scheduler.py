"""Periodic, single-flight scan loop."""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from ..config.settings import UploaderConfig
from ..models import CycleReport
from ..utils.logging import TimedOperation
from .retention import RetentionEnforcer
from .transfer import TransferEngine

logger = logging.getLogger(__name__)

BANNER = "=" * 27


class SchedulerState(str, Enum):
    """Lifecycle of the scan loop."""
    IDLE = "idle"
    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ScanScheduler:
    """Runs upload-then-prune cycles on a fixed interval, one cycle at a time."""

    def __init__(
        self,
        config: UploaderConfig,
        transfer: TransferEngine,
        retention: RetentionEnforcer,
        interval_seconds: Optional[float] = None,
    ):
        """Initialize the scheduler.

        Args:
            config: Validated, immutable configuration
            transfer: Engine used for the upload step
            retention: Enforcer used for the prune step
            interval_seconds: Override of the configured interval
        """
        self.config = config
        self.transfer = transfer
        self.retention = retention
        self.interval_seconds = (
            config.scan_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.state = SchedulerState.IDLE
        self.cycles_run = 0
        self.last_report: Optional[CycleReport] = None
        # Capacity-1 gate: cycles never overlap, callers queue instead of skipping
        self._gate = asyncio.Lock()

    def _set_state(self, state: SchedulerState) -> None:
        if state != self.state:
            logger.debug(f"Scheduler state {self.state.value} -> {state.value}")
            self.state = state

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run cycles until ``stop_event`` is set.

        Errors inside a cycle never end the loop; only the stop event does.
        """
        logger.info("ScanScheduler is starting.")
        self._log_settings()

        try:
            while not stop_event.is_set():
                await self.run_cycle(stop_event)
                if stop_event.is_set():
                    break
                self._set_state(SchedulerState.SLEEPING)
                await self._sleep(stop_event)
                if not stop_event.is_set():
                    self._set_state(SchedulerState.IDLE)
        finally:
            self._set_state(SchedulerState.STOPPING)
            logger.info("ScanScheduler task is stopping.")
            self._set_state(SchedulerState.STOPPED)
            logger.info("ScanScheduler background task is stopped.")

    async def run_cycle(self, stop_event: asyncio.Event) -> Optional[CycleReport]:
        """Run one gated upload-then-prune cycle.

        Waits for any cycle already in progress. Returns ``None`` when a stop
        was requested before the cycle could start.
        """
        if stop_event.is_set():
            return None

        async with self._gate:
            if stop_event.is_set():
                return None

            self._set_state(SchedulerState.RUNNING)
            self.cycles_run += 1
            report = CycleReport(number=self.cycles_run, started_at=datetime.now())
            logger.info(f"{BANNER} SCAN STARTED {BANNER}")

            try:
                try:
                    with TimedOperation(logger, "folder scan and upload"):
                        report.scan = await self.transfer.scan_and_upload(
                            self.config.scan_folder, self.config.container, stop_event
                        )
                except Exception as e:
                    logger.exception(f"Cycle {report.number}: upload step failed unexpectedly")
                    report.errors.append(f"upload: {e}")

                # Retention runs even when the upload step had failures
                try:
                    with TimedOperation(logger, "retention cleanup"):
                        report.prune = await self.retention.prune(
                            self.config.container, self.config.max_files_to_store, stop_event
                        )
                except Exception as e:
                    logger.exception(f"Cycle {report.number}: retention step failed unexpectedly")
                    report.errors.append(f"retention: {e}")
            finally:
                report.finished_at = datetime.now()
                self.last_report = report
                if self.state == SchedulerState.RUNNING:
                    self._set_state(SchedulerState.IDLE)

            logger.info(f"{BANNER} SCAN FINISHED {BANNER}")
            return report

    async def _sleep(self, stop_event: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass

    def _log_settings(self) -> None:
        config = self.config
        logger.info(
            f"Scanning {config.scan_folder} into container {config.container} "
            f"every {config.scan_interval_minutes} minute(s)"
        )
        if config.max_files_to_store is None:
            logger.info("Retention disabled (max_files_to_store not set)")
        elif config.max_files_to_store == 0:
            logger.warning(
                "max_files_to_store is 0: every uploaded object will be deleted on each cycle"
            )
        else:
            logger.info(f"Retention: keeping newest {config.max_files_to_store} files per folder")
