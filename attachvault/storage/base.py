"""
Object store port.
Binary blobs addressed by keys; callers keep only the opaque locator
returned by put/copy and hand it back for get/delete.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from attachvault.core.exceptions import StorageException


class ObjectStore(ABC):
    """
    Durable blob storage used by the attachment orchestrator.

    Implementations raise ObjectNotFoundException from get() when the
    object is gone and StorageException for every other failure.
    """

    scheme: str = "store"

    def __init__(self, bucket: str = "task-attachments") -> None:
        self.bucket = bucket

    def locator_for(self, key: str) -> str:
        """Return the locator under which `key` is (or would be) retrievable."""
        return f"{self.scheme}://{self.bucket}/{key}"

    def key_for(self, locator: str) -> str:
        prefix = f"{self.scheme}://{self.bucket}/"
        if not locator.startswith(prefix) or len(locator) == len(prefix):
            raise StorageException(f"Invalid file locator: {locator}")
        return locator[len(prefix):]

    @abstractmethod
    async def put(self, key: str, content: bytes, media_type: str) -> str:
        """Store bytes under a new key and return the locator. Never overwrites."""

    @abstractmethod
    async def get(self, locator: str) -> bytes:
        """Return the bytes stored at `locator`."""

    @abstractmethod
    async def delete(self, locator: str) -> None:
        """Remove the object. Deleting a missing object is not an error."""

    async def copy(self, source_locator: str, destination_key: str, media_type: str) -> str:
        """
        Copy an object to a new key and return the new locator.
        Falls back to download-then-reupload; stores with a native copy override this.
        """
        content = await self.get(source_locator)
        return await self.put(destination_key, content, media_type)
