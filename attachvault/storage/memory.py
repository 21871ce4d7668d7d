"""
In-process object store.
Used for local development without a storage volume and as the test double.
"""
from __future__ import annotations

from attachvault.core.exceptions import ObjectNotFoundException, StorageException
from attachvault.storage.base import ObjectStore


class InMemoryObjectStore(ObjectStore):
    scheme = "memory"

    def __init__(self, bucket: str = "task-attachments") -> None:
        super().__init__(bucket)
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, content: bytes, media_type: str) -> str:
        if key in self.objects:
            raise StorageException(f"Storage upload failed: {key} already exists")
        self.objects[key] = (bytes(content), media_type)
        return self.locator_for(key)

    async def get(self, locator: str) -> bytes:
        key = self.key_for(locator)
        if key not in self.objects:
            raise ObjectNotFoundException(locator)
        return self.objects[key][0]

    async def delete(self, locator: str) -> None:
        self.objects.pop(self.key_for(locator), None)

    def exists(self, locator: str) -> bool:
        return self.key_for(locator) in self.objects
