from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from models.image_record import BackendTag
from services.errors import ConfigError


@dataclass(frozen=True)
class GatewayConfig:
    """Settings snapshot for a single request.

    Built from the SETTINGS table at the start of request handling and
    passed explicitly to the upload orchestrator and the resolver.

    Attributes:
        storage_backend: Backend used for new uploads.
        origin: Externally visible base URL without trailing slash.
        tg_bot_token: Relay bot token, if configured.
        tg_chat_id: Relay destination channel, if configured.
    """

    storage_backend: BackendTag
    origin: str
    tg_bot_token: Optional[str] = None
    tg_chat_id: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Mapping[str, Optional[str]], request_origin: str) -> "GatewayConfig":
        """Validate raw settings rows and build a config.

        Raises:
            ConfigError: If `storage_backend` is missing or not a known backend.
        """
        raw_backend = (settings.get("storage_backend") or "").strip()
        if not raw_backend:
            raise ConfigError("Setting 'storage_backend' is not configured.")
        try:
            backend = BackendTag(raw_backend)
        except ValueError as exc:
            raise ConfigError(f"Unknown storage backend {raw_backend!r}.") from exc

        origin = (settings.get("public_base_url") or "").strip() or request_origin
        return cls(
            storage_backend=backend,
            origin=origin.rstrip("/"),
            tg_bot_token=(settings.get("tg_bot_token") or "").strip() or None,
            tg_chat_id=(settings.get("tg_chat_id") or "").strip() or None,
        )

    def relay_credentials(self) -> Tuple[str, str]:
        """Return `(bot_token, chat_id)` or raise ConfigError if either is missing."""
        if not self.tg_bot_token or not self.tg_chat_id:
            raise ConfigError("Relay backend requires 'tg_bot_token' and 'tg_chat_id' settings.")
        return self.tg_bot_token, self.tg_chat_id
