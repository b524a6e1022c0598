"""Store uploads through the configured backend and record them in the IMAGE table.

The orchestrator selects the active backend from the request's
`GatewayConfig`, stores the bytes, inserts the metadata row only after the
store succeeded, and builds the public `/image/{key}{ext}` URL. It also
owns the best-effort delete path: the backend is asked to drop the bytes
first, and the metadata row is removed even if that request fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from dal.image_dal import ImageDAL
from models.gateway_config import GatewayConfig
from models.image_record import BackendTag, ImageRecord
from services.errors import ConfigError, StorageError, UpstreamError
from services.retry import retry_transient
from services.storage.backend_factory import StorageBindings, build_backend
from utils.media_types import derive_extension

LOGGER = logging.getLogger(__name__)

API_UPLOAD = "API Upload"
ADMIN_UPLOAD = "Admin Upload"


def image_url(origin: str, storage_key: str, filename: str) -> str:
    """Return the public direct link for a stored image."""
    return f"{origin.rstrip('/')}/image/{storage_key}{derive_extension(filename)}"


@dataclass
class UploadResult:
    """Canonical result of an upload, whatever backend stored it."""

    url: str
    file_id: str
    id: int
    backend: BackendTag

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "url": self.url, "file_id": self.file_id}


class UploadOrchestrator:
    """Coordinate backend storage and metadata for uploads and deletes."""

    def __init__(self, image_dal: ImageDAL, config: GatewayConfig, bindings: StorageBindings) -> None:
        self._images = image_dal
        self._config = config
        self._bindings = bindings

    async def handle_upload(self, data: bytes, filename: str, provenance: str) -> UploadResult:
        """Store `data` with the active backend and record it.

        Args:
            data: Raw uploaded bytes.
            filename: Original upload name; only its extension matters for the URL.
            provenance: Label such as "API Upload" or "Admin Upload".

        Returns:
            UploadResult with the public URL and the backend storage key.

        Raises:
            ValueError: If `data` is empty.
            ConfigError: If the active backend cannot be built.
            UpstreamError: If the backend store call fails.
        """
        if not data:
            raise ValueError("Uploaded file is empty.")

        backend = build_backend(self._config.storage_backend, self._config, self._bindings)

        try:
            stored = await backend.store(data, filename)
        except UpstreamError:
            raise
        except StorageError as exc:
            raise UpstreamError(exc.message, detail=exc.detail) from exc

        record = ImageRecord(
            id=None,
            storage_key=stored.storage_key,
            backend=stored.backend,
            filename=filename,
            relay_message_id=stored.relay_message_id,
            description=f"{provenance} ({stored.backend.value})",
        )
        image_id = await self._images.create_image(record)
        LOGGER.info("Uploaded %s as %s via %s", filename, stored.storage_key, stored.backend.value)

        return UploadResult(
            url=image_url(self._config.origin, stored.storage_key, filename),
            file_id=stored.storage_key,
            id=image_id,
            backend=stored.backend,
        )

    async def delete_image(self, image_id: int) -> bool:
        """Delete an image's bytes (best effort) and its metadata row.

        Returns:
            False if no record exists for `image_id`, True otherwise.
        """
        record = await self._images.get_image_by_id(image_id)
        if record is None:
            return False

        try:
            # The record's own backend, not the active one.
            backend = build_backend(record.backend, self._config, self._bindings)
            await retry_transient(lambda: backend.delete(record.storage_key, record.relay_message_id))
        except (StorageError, ConfigError) as exc:
            LOGGER.warning(
                "Backend delete failed for image %s (%s on %s): %s",
                image_id,
                record.storage_key,
                record.backend.value,
                exc,
            )

        await self._images.delete_image(image_id)
        return True
