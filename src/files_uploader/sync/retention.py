"""Per-folder retention for objects in the store."""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from ..destinations.base import ObjectStore
from ..exceptions import OperationCancelled
from ..models import PruneReport, RemoteObjectRecord
from .cancellation import run_cancellable

logger = logging.getLogger(__name__)


def _newest_first(record: RemoteObjectRecord):
    return (record.sort_time, record.name)


def select_for_deletion(
    records: Iterable[RemoteObjectRecord],
    max_per_folder: int,
) -> List[RemoteObjectRecord]:
    """Pick the objects that fall outside the newest ``max_per_folder`` of their folder.

    Objects are ranked by creation time, newest first, with the name as a
    tie breaker so the choice is stable between runs. Objects without a
    creation time rank as the oldest. A folder holding exactly
    ``max_per_folder`` objects is left alone.

    Args:
        records: Every object in the container
        max_per_folder: Number of objects to keep in each folder

    Returns:
        Objects to delete, grouped by folder in folder order
    """
    if max_per_folder < 0:
        raise ValueError("max_per_folder must not be negative")

    folders: Dict[str, List[RemoteObjectRecord]] = defaultdict(list)
    for record in records:
        folders[record.folder].append(record)

    marked = []
    for folder in sorted(folders):
        objects = folders[folder]
        if len(objects) <= max_per_folder:
            continue
        objects.sort(key=_newest_first, reverse=True)
        marked.extend(objects[max_per_folder:])
    return marked


class RetentionEnforcer:
    """Deletes the oldest objects of every folder that exceeds the retention limit."""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def prune(
        self,
        container: str,
        max_per_folder: Optional[int],
        stop_event: asyncio.Event,
    ) -> PruneReport:
        """Enforce the retention limit on ``container``.

        Nothing happens when ``max_per_folder`` is ``None``. A listing
        failure skips the step without deleting anything; individual delete
        failures are logged and do not affect the other deletions.

        Returns:
            PruneReport describing what was marked and deleted
        """
        report = PruneReport(container=container, max_per_folder=max_per_folder)
        if max_per_folder is None:
            logger.debug("Retention limit not configured, skipping cleanup")
            return report

        logger.info(f"Cleaning outdated files in container {container} (keeping {max_per_folder} per folder)")

        try:
            records = await run_cancellable(self._list_all(container), stop_event)
        except OperationCancelled:
            logger.warning("Retention cleanup interrupted by shutdown before listing finished")
            report.cancelled = True
            return report
        except Exception as e:
            logger.error(f"Failed to list objects in container {container}, skipping cleanup: {e}")
            report.listing_error = str(e)
            return report

        report.objects_listed = len(records)
        marked = select_for_deletion(records, max_per_folder)
        if not marked:
            logger.info(f"No outdated files found among {len(records)} objects")
            return report

        report.folders_over_limit = len({record.folder for record in marked})
        report.marked = [record.key for record in marked]
        for record in marked:
            logger.debug(f"Marked for deletion: {record.key} (created {record.created_at})")
        logger.info(
            f"Deleting {len(marked)} outdated files from {report.folders_over_limit} folders"
        )

        try:
            outcome = await run_cancellable(
                self.store.delete_objects(container, report.marked), stop_event
            )
        except OperationCancelled:
            logger.warning("Retention cleanup interrupted by shutdown during deletion")
            report.cancelled = True
            return report
        except Exception as e:
            logger.error(f"Batch delete in container {container} failed: {e}")
            report.failed = {key: str(e) for key in report.marked}
            return report

        for key in report.marked:
            error = outcome.get(key)
            if error is None:
                report.deleted.append(key)
            else:
                logger.error(f"Failed to delete outdated file {key}: {error}")
                report.failed[key] = error

        logger.info(f"Deleted {len(report.deleted)} outdated files, {len(report.failed)} failures")
        return report

    async def _list_all(self, container: str) -> List[RemoteObjectRecord]:
        return [record async for record in self.store.list_objects(container)]
