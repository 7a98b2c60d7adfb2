"""Uploader service wiring configuration, store and scan loop together."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..auth.cloud_auth import AzureAuth
from ..config.settings import CredentialsConfig, UploaderConfig
from ..destinations.azure_blob import AzureBlobDestination
from ..destinations.base import ObjectStore
from ..models import CycleReport
from .retention import RetentionEnforcer
from .scheduler import ScanScheduler
from .transfer import TransferEngine

logger = logging.getLogger(__name__)


class UploaderService:
    """Owns the object store client and the scan loop built on top of it."""

    def __init__(self, config: UploaderConfig, store: Optional[ObjectStore] = None):
        """Initialize the service.

        Args:
            config: Validated uploader configuration
            store: Object store to use; ``initialize_auth`` builds the Azure
                one when omitted
        """
        self.config = config
        self.store = store
        self._scheduler: Optional[ScanScheduler] = None

    def initialize_auth(self, credentials: CredentialsConfig) -> None:
        """Build the Azure Blob Storage client from credentials.

        Raises:
            ConfigurationError: If no usable credentials were supplied
        """
        auth = AzureAuth.from_credentials(credentials)
        self.store = AzureBlobDestination(auth)
        logger.info("Azure authentication initialized")

    @property
    def scheduler(self) -> ScanScheduler:
        if self._scheduler is None:
            if self.store is None:
                raise RuntimeError("Object store not initialized; call initialize_auth first")
            self._scheduler = ScanScheduler(
                self.config,
                TransferEngine(self.store, parallel_uploads=self.config.parallel_uploads),
                RetentionEnforcer(self.store),
            )
        return self._scheduler

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run the periodic loop until ``stop_event`` is set."""
        await self.scheduler.run(stop_event)

    async def run_once(self, stop_event: Optional[asyncio.Event] = None) -> Optional[CycleReport]:
        """Run a single cycle."""
        return await self.scheduler.run_cycle(stop_event or asyncio.Event())

    async def test_connections(self) -> Dict[str, bool]:
        """Test the configured store.

        Returns:
            Dictionary mapping service names to connection status
        """
        results = {}
        test_connection = getattr(self.store, 'test_connection', None)
        if test_connection is not None:
            results[f'azure_blob_{self.config.container}'] = await test_connection(self.config.container)
        return results

    async def close(self) -> None:
        close = getattr(self.store, 'close', None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "UploaderService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @staticmethod
    def get_cycle_summary(reports: List[CycleReport]) -> Dict[str, Any]:
        """Generate summary of cycle results.

        Args:
            reports: Cycle reports to summarize

        Returns:
            Summary dictionary
        """
        scans = [r.scan for r in reports if r.scan is not None]
        prunes = [r.prune for r in reports if r.prune is not None]

        return {
            'total_cycles': len(reports),
            'failed_cycles': len([r for r in reports if r.errors]),
            'files_found': sum(s.files_found for s in scans),
            'files_uploaded': sum(s.files_uploaded for s in scans),
            'files_failed': sum(s.files_failed for s in scans),
            'bytes_transferred': sum(s.bytes_transferred for s in scans),
            'objects_pruned': sum(len(p.deleted) for p in prunes),
            'prune_failures': sum(len(p.failed) for p in prunes),
            'total_errors': (
                sum(len(r.errors) for r in reports)
                + len([s for s in scans if s.enumeration_error])
                + len([p for p in prunes if p.listing_error])
            ),
            'summary_time': datetime.now().isoformat(),
        }
