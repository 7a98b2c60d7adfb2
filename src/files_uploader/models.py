"""Data records shared by the transfer and retention steps."""

import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

# Objects without a creation time rank below everything else
OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class RemoteObjectRecord:
    """An object already present in the store."""
    name: str
    folder: str = ""
    created_at: Optional[datetime] = None
    # Exact store key; folder and name are only used for grouping
    raw_key: Optional[str] = None

    @property
    def key(self) -> str:
        if self.raw_key is not None:
            return self.raw_key
        return f"{self.folder}/{self.name}" if self.folder else self.name

    @property
    def sort_time(self) -> datetime:
        return self.created_at or OLDEST

    @classmethod
    def from_key(cls, key: str, created_at: Optional[datetime] = None) -> "RemoteObjectRecord":
        """Build a record from a store key such as ``photos/2024/a.jpg``.

        The folder is everything before the last ``/``; keys without one
        live in the root folder (``""``). Naive timestamps are taken as UTC.
        """
        folder, name = posixpath.split(key)
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(name=name, folder=folder, created_at=created_at, raw_key=key)


@dataclass(frozen=True)
class LocalFileEntry:
    """A file discovered under the scan root."""
    path: Path
    relative_path: str


class FailureReason(str, Enum):
    """Why a single file transfer did not complete."""
    READ = "read"
    UPLOAD = "upload"
    DELETE = "delete"
    CANCELLED = "cancelled"


@dataclass
class FileTransferResult:
    """Outcome of moving one file to the store."""
    relative_path: str
    uploaded: bool = False
    local_deleted: bool = False
    failure: Optional[FailureReason] = None
    error: Optional[str] = None
    size: int = 0

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass
class ScanReport:
    """Aggregate of one transfer step."""
    root: str
    container: str
    files_found: int = 0
    results: List[FileTransferResult] = field(default_factory=list)
    enumeration_error: Optional[str] = None
    duration: float = 0.0

    @property
    def files_uploaded(self) -> int:
        return len([r for r in self.results if r.uploaded])

    @property
    def files_failed(self) -> int:
        return len([r for r in self.results if not r.uploaded])

    @property
    def bytes_transferred(self) -> int:
        return sum(r.size for r in self.results if r.uploaded)

    def failures(self, reason: Optional[FailureReason] = None) -> List[FileTransferResult]:
        return [
            r for r in self.results
            if r.failure is not None and (reason is None or r.failure == reason)
        ]


@dataclass
class PruneReport:
    """Aggregate of one retention step."""
    container: str
    max_per_folder: Optional[int] = None
    objects_listed: int = 0
    folders_over_limit: int = 0
    marked: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    listing_error: Optional[str] = None
    cancelled: bool = False

    @property
    def enabled(self) -> bool:
        return self.max_per_folder is not None


@dataclass
class CycleReport:
    """Everything that happened in one upload-then-prune cycle."""
    number: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    scan: Optional[ScanReport] = None
    prune: Optional[PruneReport] = None
    errors: List[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
