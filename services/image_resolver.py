"""Resolve public `/image/{key}{ext}` identifiers into byte streams."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict

from dal.image_dal import ImageDAL
from models.gateway_config import GatewayConfig
from models.image_record import BackendTag
from services.errors import ConfigError, NotFoundError
from services.retry import retry_transient
from services.storage.backend_factory import StorageBindings, build_backend
from services.storage.base import FetchedObject
from utils.media_types import resolve_content_type, split_identifier

LOGGER = logging.getLogger(__name__)

# Published images never change, so clients may cache them for a year.
CACHE_HEADERS = {
    "Cache-Control": "public, max-age=31536000",
    "Content-Disposition": "inline",
}


@dataclass
class ResolvedImage:
    """Open byte stream for an identifier, with the response content type and headers."""

    fetched: FetchedObject
    content_type: str
    backend: BackendTag
    headers: Dict[str, str] = field(default_factory=lambda: dict(CACHE_HEADERS))

    @property
    def chunks(self) -> AsyncIterator[bytes]:
        return self.fetched.chunks

    async def aclose(self) -> None:
        await self.fetched.aclose()


class ImageResolver:
    """Look up which backend holds an identifier and open its byte stream."""

    def __init__(self, image_dal: ImageDAL, config: GatewayConfig, bindings: StorageBindings) -> None:
        self._images = image_dal
        self._config = config
        self._bindings = bindings

    async def resolve(self, identifier: str) -> ResolvedImage:
        """Resolve `identifier` (storage key plus optional extension).

        Raises:
            NotFoundError: If no backend can locate the bytes.
            ConfigError: If the record's backend cannot be built.
        """
        storage_key, extension = split_identifier(identifier)
        if not storage_key:
            raise NotFoundError("Image Not Found")

        record = await self._images.get_image_by_storage_key(storage_key)
        if record is not None:
            tag = record.backend
            backend = build_backend(tag, self._config, self._bindings)
        else:
            # Links issued before metadata tracking are relay file ids.
            tag = BackendTag.TELEGRAM
            try:
                backend = build_backend(tag, self._config, self._bindings)
            except ConfigError as exc:
                raise NotFoundError("Image Not Found") from exc

        fetched = await retry_transient(lambda: backend.fetch(storage_key))
        content_type = resolve_content_type(extension, fetched.content_type)
        LOGGER.debug("Resolved %s via %s as %s", storage_key, tag.value, content_type)
        return ResolvedImage(fetched=fetched, content_type=content_type, backend=tag)
