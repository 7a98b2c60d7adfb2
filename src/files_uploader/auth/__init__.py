"""Authentication for the Azure Blob Storage account."""

from .cloud_auth import AzureAuth

__all__ = ["AzureAuth"]
