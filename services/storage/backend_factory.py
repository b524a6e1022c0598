"""Build the storage backend for a backend tag from request config and process bindings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from models.gateway_config import GatewayConfig
from models.image_record import BackendTag
from services.errors import ConfigError
from services.storage.base import StorageBackend
from services.storage.object_store_backend import LocalObjectStore, ObjectStoreBackend
from services.storage.relay_backend import DEFAULT_API_BASE, TelegramRelayBackend


@dataclass
class StorageBindings:
    """Process-level handles created once at startup and shared by requests."""

    http_client: Optional[httpx.AsyncClient] = None
    object_store: Optional[LocalObjectStore] = None
    relay_api_base: str = DEFAULT_API_BASE
    timeout: float = 30.0


def build_backend(tag: BackendTag, config: GatewayConfig, bindings: StorageBindings) -> StorageBackend:
    """Return the backend variant for `tag`.

    Raises:
        ConfigError: If the binding or credentials the variant needs are missing.
    """
    if tag is BackendTag.OBJECT_STORE:
        if bindings.object_store is None:
            raise ConfigError("Object store is not bound; set OBJECT_STORE_DIR.")
        return ObjectStoreBackend(bindings.object_store, timeout=bindings.timeout)

    if tag is BackendTag.TELEGRAM:
        bot_token, chat_id = config.relay_credentials()
        if bindings.http_client is None:
            raise ConfigError("HTTP client for the relay backend is not initialized.")
        return TelegramRelayBackend(
            bindings.http_client,
            bot_token,
            chat_id,
            api_base=bindings.relay_api_base,
            timeout=bindings.timeout,
        )

    raise ConfigError(f"Unsupported storage backend {tag!r}.")
