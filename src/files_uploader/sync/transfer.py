"""Move files from the local staging folder to the object store."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Union

from ..destinations.base import ObjectStore
from ..exceptions import EnumerationError, OperationCancelled
from ..models import FailureReason, FileTransferResult, LocalFileEntry, ScanReport
from ..utils.file_utils import FileHelper
from .cancellation import run_cancellable

logger = logging.getLogger(__name__)


class TransferEngine:
    """Uploads staged files and removes each local copy once its upload succeeded."""

    def __init__(self, store: ObjectStore, parallel_uploads: int = 1):
        """Initialize transfer engine.

        Args:
            store: Object store to upload into
            parallel_uploads: Maximum number of files in flight at once
        """
        if parallel_uploads < 1:
            raise ValueError("parallel_uploads must be at least 1")
        self.store = store
        self.parallel_uploads = parallel_uploads

    async def scan_and_upload(
        self,
        root_path: Union[str, Path],
        container: str,
        stop_event: asyncio.Event,
    ) -> ScanReport:
        """Upload every file under ``root_path`` to ``container``.

        The file's path relative to the root becomes its key. Each file is
        handled on its own: a failure is logged and recorded in the report
        and never stops the other files. A file that cannot be enumerated
        abandons the whole step.

        Args:
            root_path: Local staging folder, created if missing
            container: Target container name
            stop_event: Set to request shutdown

        Returns:
            ScanReport with one result per discovered file
        """
        root = Path(root_path)
        report = ScanReport(root=str(root), container=container)
        start_time = datetime.now()
        logger.info(f"Starting folder scan in: {root}")

        try:
            if FileHelper.ensure_directory(root):
                logger.warning(f"Scan folder did not exist. Created: {root}")
            entries = FileHelper.list_files(root)
        except EnumerationError as e:
            logger.error(f"Folder scan aborted: {e}")
            report.enumeration_error = str(e)
            report.duration = (datetime.now() - start_time).total_seconds()
            return report

        report.files_found = len(entries)
        logger.info(f"Found {len(entries)} files to upload.")

        if entries:
            semaphore = asyncio.Semaphore(self.parallel_uploads)

            async def _bounded(entry: LocalFileEntry) -> FileTransferResult:
                async with semaphore:
                    return await self._transfer_file(entry, container, stop_event)

            report.results = list(await asyncio.gather(*(_bounded(entry) for entry in entries)))

        report.duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Folder scan and upload completed: {report.files_uploaded} uploaded, "
            f"{report.files_failed} failed, {FileHelper.format_file_size(report.bytes_transferred)} "
            f"in {report.duration:.2f}s"
        )
        return report

    async def _transfer_file(
        self,
        entry: LocalFileEntry,
        container: str,
        stop_event: asyncio.Event,
    ) -> FileTransferResult:
        """Read, upload, then delete one file. Never raises for per-file problems."""
        key = entry.relative_path
        result = FileTransferResult(relative_path=key)

        if stop_event.is_set():
            result.failure = FailureReason.CANCELLED
            result.error = "stop requested before upload"
            return result

        try:
            data = entry.path.read_bytes()
        except OSError as e:
            logger.error(f"Failed to read local file {key}: {e}")
            result.failure = FailureReason.READ
            result.error = str(e)
            return result

        result.size = len(data)
        logger.info(f"Uploading file: {key} ({FileHelper.format_file_size(result.size)})")
        try:
            await run_cancellable(self.store.upload(container, key, data), stop_event)
        except OperationCancelled:
            logger.warning(f"Upload of {key} interrupted by shutdown; local file kept")
            result.failure = FailureReason.CANCELLED
            result.error = "stop requested during upload"
            return result
        except Exception as e:
            logger.error(f"Error occurred while uploading file {key} to container {container}: {e}")
            result.failure = FailureReason.UPLOAD
            result.error = str(e)
            return result

        result.uploaded = True
        logger.info(f"Successfully uploaded file: {key}")

        try:
            entry.path.unlink()
        except OSError as e:
            # Already safe in the store; a leftover copy is re-uploaded next cycle
            logger.error(f"Failed to delete local file {key}: {e}")
            result.failure = FailureReason.DELETE
            result.error = str(e)
            return result

        result.local_deleted = True
        logger.info(f"Deleted local file: {key}")
        return result
