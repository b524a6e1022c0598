import asyncio
import uuid

import aiofiles
import pytest

from models.image_record import BackendTag
from services.errors import NotFoundError, TransientError
from services.storage.object_store_backend import LocalObjectStore, ObjectStoreBackend


@pytest.mark.asyncio
async def test_store_generates_uuid_key(object_store):
    backend = ObjectStoreBackend(object_store)

    stored = await backend.store(b"RIFF....WEBP", "cat.webp")

    assert uuid.UUID(stored.storage_key)
    assert stored.backend is BackendTag.OBJECT_STORE
    assert stored.relay_message_id is None


@pytest.mark.asyncio
async def test_fetch_returns_bytes_and_type_hint(object_store):
    backend = ObjectStoreBackend(object_store)
    payload = b"x" * 200_000
    stored = await backend.store(payload, "cat.webp")

    fetched = await backend.fetch(stored.storage_key)

    assert fetched.content_type == "image/webp"
    assert await fetched.read() == payload


@pytest.mark.asyncio
async def test_fetch_unknown_key(object_store):
    backend = ObjectStoreBackend(object_store)

    with pytest.raises(NotFoundError):
        await backend.fetch(str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_fetch_rejects_path_like_keys(object_store):
    backend = ObjectStoreBackend(object_store)

    with pytest.raises(NotFoundError):
        await backend.fetch("../app.db")


@pytest.mark.asyncio
async def test_delete_removes_blob(object_store):
    backend = ObjectStoreBackend(object_store)
    stored = await backend.store(b"data", "a.png")

    await backend.delete(stored.storage_key)

    assert not (object_store.root / stored.storage_key).exists()
    with pytest.raises(NotFoundError):
        await backend.fetch(stored.storage_key)


@pytest.mark.asyncio
async def test_delete_nonexistent_key_is_silent(object_store):
    backend = ObjectStoreBackend(object_store)

    await backend.delete(str(uuid.uuid4()))
    await backend.delete("not/a/key")


class _SlowStore(LocalObjectStore):
    """Object store whose writes stall after the first bytes reach disk."""

    async def put(self, key, data, content_type=None, filename=None):
        blob_path, _ = self._paths(key)
        async with aiofiles.open(blob_path, "wb") as f:
            await f.write(data[:2])
        await asyncio.sleep(1)

    async def head(self, key):
        await asyncio.sleep(1)


@pytest.mark.asyncio
async def test_store_timeout_leaves_no_partial_blob(tmp_path):
    store = _SlowStore(tmp_path / "slow")
    backend = ObjectStoreBackend(store, timeout=0.05)

    with pytest.raises(TransientError):
        await backend.store(b"partial-bytes", "a.png")

    assert list(store.root.iterdir()) == []


@pytest.mark.asyncio
async def test_fetch_timeout_is_transient(tmp_path):
    backend = ObjectStoreBackend(_SlowStore(tmp_path / "slow"), timeout=0.05)

    with pytest.raises(TransientError):
        await backend.fetch(str(uuid.uuid4()))
