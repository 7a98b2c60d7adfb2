"""File utility functions."""

import mimetypes
import os
from pathlib import Path
from typing import List

from ..exceptions import EnumerationError
from ..models import LocalFileEntry


class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def ensure_directory(path: Path) -> bool:
        """Create ``path`` if missing.

        Returns:
            True if the directory had to be created
        """
        if path.is_dir():
            return False
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EnumerationError(f"Cannot create scan folder {path}: {e}") from e
        return True

    @staticmethod
    def list_files(root: Path) -> List[LocalFileEntry]:
        """Get all files in ``root`` and its subdirectories.

        Any error while walking the tree (permissions, vanished mount) fails
        the whole enumeration rather than silently returning a partial list.

        Args:
            root: The directory to scan

        Returns:
            Entries sorted by relative path
        """
        def _raise(error: OSError):
            raise error

        entries = []
        try:
            for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
                for filename in filenames:
                    file_path = Path(dirpath) / filename
                    if not file_path.is_file():
                        continue
                    entries.append(LocalFileEntry(
                        path=file_path,
                        relative_path=FileHelper.to_remote_key(file_path, root),
                    ))
        except OSError as e:
            raise EnumerationError(f"Error accessing files in {root}: {e}") from e

        entries.sort(key=lambda entry: entry.relative_path)
        return entries

    @staticmethod
    def to_remote_key(file_path: Path, root: Path) -> str:
        """Relative path of ``file_path`` under ``root`` with ``/`` separators.

        ``root/2024/jan/a.jpg`` becomes ``2024/jan/a.jpg`` on every platform.
        """
        return file_path.relative_to(root).as_posix()

    @staticmethod
    def guess_content_type(name: str) -> str:
        return mimetypes.guess_type(name)[0] or 'application/octet-stream'

    @staticmethod
    def format_file_size(size_bytes: int) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        i = 0
        size = float(size_bytes)

        while size >= 1024 and i < len(size_names) - 1:
            size /= 1024.0
            i += 1

        return f"{size:.1f} {size_names[i]}"
