"""Object store interface consumed by the transfer and retention steps."""

from typing import AsyncIterator, Dict, Optional, Protocol, Sequence

from ..models import RemoteObjectRecord


class ObjectStore(Protocol):
    """
    Container-scoped blob operations.

    Keys are ``folder/name`` paths using ``/`` separators. Tests provide an
    in-memory implementation; production uses ``AzureBlobDestination``.
    """

    async def upload(self, container: str, key: str, data: bytes) -> None:
        """Store ``data`` at ``key``, creating the container if needed and
        overwriting any existing object."""
        ...

    def list_objects(self, container: str) -> AsyncIterator[RemoteObjectRecord]:
        """Stream every object in the container."""
        ...

    async def delete_objects(self, container: str, keys: Sequence[str]) -> Dict[str, Optional[str]]:
        """Delete each key if it exists.

        Returns:
            Mapping of key to error message, ``None`` when the delete
            succeeded or the object was already gone
        """
        ...
