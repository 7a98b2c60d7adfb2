"""Object store destinations."""

from .azure_blob import AzureBlobDestination
from .base import ObjectStore

__all__ = ["AzureBlobDestination", "ObjectStore"]
