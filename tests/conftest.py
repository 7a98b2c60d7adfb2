"""Shared fixtures: an in-memory object store and a staging folder."""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import pytest

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from files_uploader.config.settings import UploaderConfig
from files_uploader.exceptions import StoreError
from files_uploader.models import RemoteObjectRecord

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryObjectStore:
    """Object store double keeping blobs in a dict per container."""

    def __init__(self):
        self.containers: Dict[str, Dict[str, bytes]] = {}
        self.created: Dict[str, Dict[str, Optional[datetime]]] = {}
        self.upload_calls: List[str] = []
        self.delete_calls: List[List[str]] = []
        self.fail_uploads: Set[str] = set()
        self.fail_deletes: Set[str] = set()
        self.fail_listing = False
        self.upload_delay = 0.0
        self._clock = BASE_TIME

    def add_object(self, container: str, key: str, created_at: Optional[datetime], data: bytes = b"x"):
        self.containers.setdefault(container, {})[key] = data
        self.created.setdefault(container, {})[key] = created_at

    def keys(self, container: str) -> List[str]:
        return sorted(self.containers.get(container, {}))

    async def upload(self, container: str, key: str, data: bytes) -> None:
        self.upload_calls.append(key)
        if self.upload_delay:
            await asyncio.sleep(self.upload_delay)
        if key in self.fail_uploads:
            raise StoreError(f"simulated network error for {key}")
        self._clock += timedelta(seconds=1)
        self.add_object(container, key, self._clock, data)

    async def list_objects(self, container: str):
        if self.fail_listing:
            raise StoreError("simulated listing failure")
        for key in sorted(self.containers.get(container, {})):
            yield RemoteObjectRecord.from_key(key, self.created[container][key])

    async def delete_objects(self, container: str, keys: Sequence[str]) -> Dict[str, Optional[str]]:
        self.delete_calls.append(list(keys))
        results: Dict[str, Optional[str]] = {}
        for key in keys:
            if key in self.fail_deletes:
                results[key] = "simulated delete failure"
                continue
            self.containers.get(container, {}).pop(key, None)
            self.created.get(container, {}).pop(key, None)
            results[key] = None
        return results


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def staging(tmp_path):
    root = tmp_path / "staging"
    root.mkdir()
    return root


@pytest.fixture
def make_config(staging, monkeypatch):
    for name in ('SCAN_INTERVAL_MINUTES', 'SCAN_FOLDER', 'CONTAINER',
                 'MAX_FILES_TO_STORE', 'PARALLEL_UPLOADS'):
        monkeypatch.delenv(f"FILES_UPLOADER_{name}", raising=False)

    def _make(**overrides):
        data = {
            'scan_interval_minutes': 1,
            'scan_folder': str(staging),
            'container': 'uploads',
        }
        data.update(overrides)
        return UploaderConfig.from_dict(data, apply_env=False)

    return _make


def write_file(root: Path, relative: str, content: str = "data") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def local_files(root: Path) -> List[str]:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())
