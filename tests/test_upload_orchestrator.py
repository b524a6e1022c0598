import pytest

from models.image_record import BackendTag
from services.errors import ConfigError, UpstreamError
from services.storage.backend_factory import StorageBindings
from services.upload_orchestrator import ADMIN_UPLOAD, API_UPLOAD, UploadOrchestrator, image_url

from conftest import ORIGIN


@pytest.mark.asyncio
async def test_object_store_upload_records_metadata(image_dal, bindings, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)

    result = await orchestrator.handle_upload(b"webp-bytes", "cat.webp", API_UPLOAD)

    assert result.url == f"{ORIGIN}/image/{result.file_id}.webp"
    assert result.backend is BackendTag.OBJECT_STORE
    record = await image_dal.get_image_by_storage_key(result.file_id)
    assert record.id == result.id
    assert record.backend is BackendTag.OBJECT_STORE
    assert record.filename == "cat.webp"
    assert record.description == "API Upload (object_store)"
    assert record.relay_message_id is None


@pytest.mark.asyncio
async def test_relay_upload_uses_animation_descriptor(image_dal, bindings, fake_relay, make_config):
    fake_relay.reply_field = "animation"
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.TELEGRAM), bindings)

    result = await orchestrator.handle_upload(b"GIF89a", "spin.gif", ADMIN_UPLOAD)

    assert result.file_id == "BQACAgTEST100"
    assert result.url == f"{ORIGIN}/image/BQACAgTEST100.gif"
    record = await image_dal.get_image_by_storage_key("BQACAgTEST100")
    assert record.backend is BackendTag.TELEGRAM
    assert record.relay_message_id == 100
    assert record.description == "Admin Upload (telegram)"


@pytest.mark.asyncio
async def test_filename_without_extension_defaults_to_jpg(image_dal, bindings, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)

    result = await orchestrator.handle_upload(b"bytes", "noext", API_UPLOAD)

    assert result.url.endswith(".jpg")


@pytest.mark.asyncio
async def test_failed_store_leaves_no_record(image_dal, bindings, fake_relay, make_config):
    fake_relay.reject_uploads = True
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.TELEGRAM), bindings)

    with pytest.raises(UpstreamError):
        await orchestrator.handle_upload(b"bytes", "a.png", API_UPLOAD)

    assert await image_dal.list_images() == []


@pytest.mark.asyncio
async def test_missing_object_store_binding(image_dal, fake_relay, make_config):
    bindings = StorageBindings(http_client=fake_relay.client(), object_store=None)
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)

    with pytest.raises(ConfigError):
        await orchestrator.handle_upload(b"bytes", "a.png", API_UPLOAD)


@pytest.mark.asyncio
async def test_missing_relay_credentials(image_dal, bindings, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.TELEGRAM, with_relay=False), bindings)

    with pytest.raises(ConfigError):
        await orchestrator.handle_upload(b"bytes", "a.png", API_UPLOAD)


@pytest.mark.asyncio
async def test_empty_upload_rejected(image_dal, bindings, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)

    with pytest.raises(ValueError):
        await orchestrator.handle_upload(b"", "a.png", API_UPLOAD)


@pytest.mark.asyncio
async def test_delete_object_store_record_removes_blob(image_dal, bindings, object_store, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)
    result = await orchestrator.handle_upload(b"bytes", "a.png", API_UPLOAD)

    assert await orchestrator.delete_image(result.id) is True

    assert not (object_store.root / result.file_id).exists()
    assert await image_dal.get_image_by_id(result.id) is None


@pytest.mark.asyncio
async def test_delete_relay_record_retracts_message(image_dal, bindings, fake_relay, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.TELEGRAM), bindings)
    result = await orchestrator.handle_upload(b"bytes", "a.png", API_UPLOAD)

    # The active backend no longer matters for an existing record.
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)
    assert await orchestrator.delete_image(result.id) is True

    assert fake_relay.deleted_messages == [100]
    assert await image_dal.get_image_by_id(result.id) is None


@pytest.mark.asyncio
async def test_delete_is_best_effort_when_backend_unavailable(image_dal, bindings, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.TELEGRAM), bindings)
    result = await orchestrator.handle_upload(b"bytes", "a.png", API_UPLOAD)

    # Relay credentials were removed after the upload.
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE, with_relay=False), bindings)
    assert await orchestrator.delete_image(result.id) is True

    assert await image_dal.get_image_by_id(result.id) is None


@pytest.mark.asyncio
async def test_delete_unknown_id(image_dal, bindings, make_config):
    orchestrator = UploadOrchestrator(image_dal, make_config(BackendTag.OBJECT_STORE), bindings)

    assert await orchestrator.delete_image(4242) is False


def test_image_url_appends_filename_extension():
    assert image_url(ORIGIN + "/", "abc-123", "cat.webp") == f"{ORIGIN}/image/abc-123.webp"
    assert image_url(ORIGIN, "abc-123", "noext") == f"{ORIGIN}/image/abc-123.jpg"
