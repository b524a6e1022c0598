"""Directory-backed object store and the storage backend built on it."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

import aiofiles
import aiofiles.os

from models.image_record import BackendTag
from services.errors import NotFoundError, TransientError, UpstreamError
from services.storage.base import FetchedObject, StorageBackend, StoredObject
from utils.media_types import derive_extension, guess_content_type

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class LocalObjectStore:
    """Key-addressed blob store under a root directory.

    Each blob is written to `<root>/<key>` with a sidecar
    `<root>/<key>.meta.json` holding the content-type hint.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def is_valid_key(key: str) -> bool:
        return bool(_KEY_RE.match(key or ""))

    def _paths(self, key: str) -> Tuple[Path, Path]:
        if not self.is_valid_key(key):
            raise KeyError(key)
        return self.root / key, self.root / f"{key}.meta.json"

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None, filename: Optional[str] = None) -> None:
        """Write blob bytes and the metadata sidecar."""
        blob_path, meta_path = self._paths(key)
        async with aiofiles.open(blob_path, "wb") as f:
            await f.write(data)
        async with aiofiles.open(meta_path, "w") as f:
            await f.write(json.dumps({"content_type": content_type, "filename": filename}))

    async def head(self, key: str) -> Optional[str]:
        """Return the stored content-type hint, raising KeyError if the blob is absent."""
        blob_path, meta_path = self._paths(key)
        if not await aiofiles.os.path.exists(blob_path):
            raise KeyError(key)
        if not await aiofiles.os.path.exists(meta_path):
            return None
        async with aiofiles.open(meta_path, "r") as f:
            raw = await f.read()
        try:
            return json.loads(raw).get("content_type")
        except ValueError:
            LOGGER.warning("Unreadable metadata sidecar for %s", key)
            return None

    async def iter_bytes(self, key: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield blob bytes in chunks."""
        blob_path, _ = self._paths(key)
        async with aiofiles.open(blob_path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    async def delete(self, key: str) -> bool:
        """Remove blob and sidecar. Returns False if the blob did not exist."""
        blob_path, meta_path = self._paths(key)
        removed = False
        for path in (blob_path, meta_path):
            try:
                await aiofiles.os.remove(path)
                removed = removed or path == blob_path
            except FileNotFoundError:
                continue
        return removed


class ObjectStoreBackend(StorageBackend):
    """Storage backend keyed by locally generated UUIDs."""

    tag = BackendTag.OBJECT_STORE

    def __init__(self, store: LocalObjectStore, timeout: float = 30.0) -> None:
        self._store = store
        self._timeout = timeout

    async def _bounded(self, awaitable, action: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            LOGGER.error("Object store %s timed out", action)
            raise TransientError(f"Object store {action} timed out.") from exc

    async def store(self, data: bytes, filename: str) -> StoredObject:
        storage_key = str(uuid.uuid4())
        content_type = guess_content_type(derive_extension(filename))
        try:
            await self._bounded(self._store.put(storage_key, data, content_type, filename), "put")
        except TransientError:
            await self._discard_partial(storage_key)
            raise
        except OSError as exc:
            LOGGER.error("Object store write failed for %s: %s", filename, exc)
            await self._discard_partial(storage_key)
            raise UpstreamError("Object store write failed.", detail=str(exc)) from exc
        return StoredObject(storage_key=storage_key, backend=self.tag)

    async def _discard_partial(self, storage_key: str) -> None:
        """Drop whatever a failed `put` left behind."""
        try:
            await self._store.delete(storage_key)
        except OSError as exc:
            LOGGER.warning("Could not remove partial blob %s: %s", storage_key, exc)

    async def fetch(self, storage_key: str) -> FetchedObject:
        try:
            content_type = await self._bounded(self._store.head(storage_key), "get")
        except KeyError as exc:
            raise NotFoundError("Image Not Found in object store") from exc
        except OSError as exc:
            raise UpstreamError("Object store read failed.", detail=str(exc)) from exc
        return FetchedObject(chunks=self._store.iter_bytes(storage_key), content_type=content_type)

    async def delete(self, storage_key: str, relay_message_id: Optional[int] = None) -> None:
        try:
            removed = await self._bounded(self._store.delete(storage_key), "delete")
        except KeyError:
            removed = False
        if not removed:
            LOGGER.info("Object store key %s was already absent", storage_key)
