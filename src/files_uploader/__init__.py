"""
Files Uploader

Periodically drains a local staging folder into Azure Blob Storage and
keeps only the newest files of each remote folder.
"""

__version__ = "1.0.0"
__author__ = "Files Uploader"
__description__ = "Drain a local staging folder into Azure Blob Storage with per-folder retention"

from .config.settings import CredentialsConfig, UploaderConfig
from .sync.service import UploaderService

__all__ = ["CredentialsConfig", "UploaderConfig", "UploaderService"]
