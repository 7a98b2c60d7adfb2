"""Cloud storage authentication handling."""

import logging
from typing import Optional

from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import BlobServiceClient

from ..config.settings import CredentialsConfig

logger = logging.getLogger(__name__)


class AzureAuth:
    """Handle Azure Blob Storage authentication."""

    def __init__(
        self,
        account_name: Optional[str] = None,
        account_key: Optional[str] = None,
        connection_string: Optional[str] = None,
        use_default_credential: bool = False
    ):
        """Initialize Azure Blob Storage authentication.

        Args:
            account_name: Storage account name
            account_key: Storage account key
            connection_string: Storage connection string or SAS URL
            use_default_credential: Use DefaultAzureCredential
        """
        self.account_name = account_name
        self.account_key = account_key
        self.connection_string = connection_string
        self.use_default_credential = use_default_credential
        self._blob_service_client: Optional[BlobServiceClient] = None
        self._credential: Optional[DefaultAzureCredential] = None
        self._sas_url = None

        # Check if connection_string is actually a SAS URL
        if connection_string and connection_string.startswith('https://'):
            self._sas_url = connection_string
            self.connection_string = None

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    def get_blob_service_client(self) -> BlobServiceClient:
        """Get authenticated async Blob Service client.

        Returns:
            Azure BlobServiceClient
        """
        if self._blob_service_client is None:
            if self._sas_url:
                # Account-level SAS URL: https://<account>.blob.core.windows.net/?sv=...
                self._blob_service_client = BlobServiceClient(account_url=self._sas_url)
            elif self.connection_string:
                self._blob_service_client = BlobServiceClient.from_connection_string(
                    self.connection_string
                )
            elif self.account_key:
                self._blob_service_client = BlobServiceClient(
                    account_url=self.account_url,
                    credential=self.account_key
                )
            elif self.use_default_credential:
                # Managed identity, service principal, az login, ...
                self._credential = DefaultAzureCredential()
                self._blob_service_client = BlobServiceClient(
                    account_url=self.account_url,
                    credential=self._credential
                )
            else:
                raise ValueError(
                    "Must provide either connection_string, account_key, or set use_default_credential=True"
                )
            logger.debug("Azure BlobServiceClient created")

        return self._blob_service_client

    async def close(self) -> None:
        """Release the HTTP session and credential."""
        if self._blob_service_client is not None:
            await self._blob_service_client.close()
            self._blob_service_client = None
        if self._credential is not None:
            await self._credential.close()
            self._credential = None

    @classmethod
    def from_credentials(cls, credentials: CredentialsConfig) -> "AzureAuth":
        """Create Azure auth from a validated credentials config."""
        credentials.validate_for_azure()
        return cls(
            account_name=credentials.azure_storage_account_name,
            account_key=credentials.azure_storage_account_key,
            connection_string=credentials.azure_storage_connection_string,
            use_default_credential=credentials.use_default_credential,
        )
