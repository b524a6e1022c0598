"""Storage backend capability shared by every backend variant."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

from models.image_record import BackendTag


@dataclass
class StoredObject:
    """Canonical result of a successful `store` call."""

    storage_key: str
    backend: BackendTag
    relay_message_id: Optional[int] = None


@dataclass
class FetchedObject:
    """Byte stream returned by `fetch`, plus the backend's declared content type."""

    chunks: AsyncIterator[bytes]
    content_type: Optional[str] = None
    on_close: Optional[Callable[[], Awaitable[None]]] = None

    async def aclose(self) -> None:
        """Release the underlying stream if it was not fully consumed."""
        aclose = getattr(self.chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        # A generator that never started skips its finally block.
        if self.on_close is not None:
            await self.on_close()

    async def read(self) -> bytes:
        """Collect the whole stream into memory."""
        parts = [chunk async for chunk in self.chunks]
        return b"".join(parts)


class StorageBackend(ABC):
    """Store, fetch and delete opaque image blobs.

    Implementations raise `services.errors.StorageError` subclasses:
    `UpstreamError` when the backend replies with a failure,
    `TransientError` when it cannot be reached in time, and
    `NotFoundError` from `fetch` when the key is unknown.
    """

    tag: BackendTag

    @abstractmethod
    async def store(self, data: bytes, filename: str) -> StoredObject:
        """Persist `data` and return the key it can later be fetched with."""

    @abstractmethod
    async def fetch(self, storage_key: str) -> FetchedObject:
        """Open a byte stream for `storage_key`."""

    @abstractmethod
    async def delete(self, storage_key: str, relay_message_id: Optional[int] = None) -> None:
        """Remove the bytes for `storage_key`; unknown keys are logged, not raised."""
