"""
Filesystem-backed object store.
Objects live under STORAGE_DIR using their key as relative path.
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path

from attachvault.core.exceptions import ObjectNotFoundException, StorageException
from attachvault.storage.base import ObjectStore

logger = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):
    scheme = "local"

    def __init__(self, root: str | Path, bucket: str = "task-attachments") -> None:
        super().__init__(bucket)
        self.root = Path(root)

    def _resolve_path(self, key: str) -> Path:
        base = self.root.resolve()
        path = (base / key.strip()).resolve()
        if path == base or not str(path).startswith(f"{base}{os.sep}"):
            raise StorageException(f"Invalid storage key: {key}")
        return path

    # ── Blocking helpers, run in a worker thread ──────────────────────────────

    @staticmethod
    def _publish(tmp_path: Path, path: Path) -> None:
        # link() fails on an existing target, so nothing is ever overwritten.
        try:
            os.link(tmp_path, path)
        finally:
            tmp_path.unlink()

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("wb", delete=False, dir=str(path.parent)) as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        self._publish(Path(tmp.name), path)

    def _copy(self, source: Path, destination: Path) -> None:
        with source.open("rb") as src:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb", delete=False, dir=str(destination.parent)
            ) as tmp:
                shutil.copyfileobj(src, tmp)
                tmp.flush()
                os.fsync(tmp.fileno())
        self._publish(Path(tmp.name), destination)

    # ── ObjectStore ───────────────────────────────────────────────────────────

    async def put(self, key: str, content: bytes, media_type: str) -> str:
        path = self._resolve_path(key)
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as exc:
            raise StorageException(f"Storage upload failed: {exc}") from exc
        logger.debug("Stored %d bytes at %s", len(content), path)
        return self.locator_for(key)

    async def get(self, locator: str) -> bytes:
        path = self._resolve_path(self.key_for(locator))
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ObjectNotFoundException(locator) from exc
        except OSError as exc:
            raise StorageException(f"Storage download failed: {exc}") from exc

    async def delete(self, locator: str) -> None:
        path = self._resolve_path(self.key_for(locator))
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageException(f"Storage deletion failed: {exc}") from exc

    async def copy(self, source_locator: str, destination_key: str, media_type: str) -> str:
        source = self._resolve_path(self.key_for(source_locator))
        destination = self._resolve_path(destination_key)
        try:
            await asyncio.to_thread(self._copy, source, destination)
        except FileNotFoundError as exc:
            raise ObjectNotFoundException(source_locator) from exc
        except OSError as exc:
            raise StorageException(f"Storage copy failed: {exc}") from exc
        return self.locator_for(destination_key)
