"""Telegram bot relay used as blob storage.

Files are sent to a fixed chat as documents and later retrieved through
the bot API's two-step file resolution (file id -> file path -> bytes).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from models.image_record import BackendTag
from services.errors import NotFoundError, TransientError, UpstreamError
from services.storage.base import FetchedObject, StorageBackend, StoredObject

LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"

AttachmentRule = Tuple[str, Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]]


def _last_photo_size(result: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    sizes = result.get("photo")
    if isinstance(sizes, list) and sizes:
        return sizes[-1]
    return None


# Only the field matching the media type the relay inferred is populated,
# so these are tried in order and the first hit wins.
ATTACHMENT_RULES: List[AttachmentRule] = [
    ("document", lambda result: result.get("document")),
    ("animation", lambda result: result.get("animation")),
    ("video", lambda result: result.get("video")),
    ("photo", _last_photo_size),
]


def extract_attachment(result: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Return `(field_name, descriptor)` for the first attachment rule that matches.

    Raises:
        UpstreamError: If no rule yields a descriptor with a `file_id`.
    """
    for name, rule in ATTACHMENT_RULES:
        descriptor = rule(result)
        if isinstance(descriptor, dict) and descriptor.get("file_id"):
            return name, descriptor
    raise UpstreamError("Relay reply did not contain an attachment descriptor.", detail=result)


class TelegramRelayBackend(StorageBackend):
    """Storage backend that keeps image bytes as Telegram documents."""

    tag = BackendTag.TELEGRAM

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot_token: str,
        chat_id: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            http_client: Shared async HTTP client.
            bot_token: Bot token used in the API path.
            chat_id: Destination chat that holds uploaded documents.
            api_base: Bot API origin.
            timeout: Per-call timeout in seconds.
        """
        self._client = http_client
        self._chat_id = chat_id
        self._timeout = timeout
        api_base = api_base.rstrip("/")
        self._method_base = f"{api_base}/bot{bot_token}"
        self._file_base = f"{api_base}/file/bot{bot_token}"

    async def _call(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        """Call a bot API method and return the decoded JSON reply."""
        try:
            response = await self._client.post(f"{self._method_base}/{method}", timeout=self._timeout, **kwargs)
        except httpx.TimeoutException as exc:
            LOGGER.error("Relay %s timed out: %s", method, exc)
            raise TransientError(f"Relay {method} timed out.") from exc
        except httpx.TransportError as exc:
            LOGGER.error("Relay %s failed: %s", method, exc)
            raise TransientError(f"Relay {method} unreachable.") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Relay {method} returned a non-JSON reply.",
                detail={"status": response.status_code, "body": response.text[:500]},
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamError(f"Relay {method} returned an unexpected reply.", detail=payload)
        return payload

    async def store(self, data: bytes, filename: str) -> StoredObject:
        # Sent as a document so the relay keeps the original bytes.
        payload = await self._call(
            "sendDocument",
            data={"chat_id": self._chat_id},
            files={"document": (filename, data)},
        )
        if not payload.get("ok"):
            LOGGER.error("Relay sendDocument rejected upload %s: %s", filename, payload.get("description"))
            raise UpstreamError("Telegram API Error", detail=payload)

        result = payload.get("result") or {}
        field, descriptor = extract_attachment(result)
        LOGGER.info("Stored %s on relay as %s attachment", filename, field)
        return StoredObject(
            storage_key=descriptor["file_id"],
            backend=self.tag,
            relay_message_id=result.get("message_id"),
        )

    async def _resolve_file_path(self, storage_key: str) -> str:
        try:
            response = await self._client.get(
                f"{self._method_base}/getFile",
                params={"file_id": storage_key},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransientError("Relay getFile timed out.") from exc
        except httpx.TransportError as exc:
            raise TransientError("Relay getFile unreachable.") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError("Relay getFile returned a non-JSON reply.") from exc

        if not isinstance(payload, dict) or not payload.get("ok"):
            raise NotFoundError("Image Not Found in Telegram")
        file_path = (payload.get("result") or {}).get("file_path")
        if not file_path:
            raise NotFoundError("Image Not Found in Telegram")
        return file_path

    async def fetch(self, storage_key: str) -> FetchedObject:
        file_path = await self._resolve_file_path(storage_key)

        request = self._client.build_request("GET", f"{self._file_base}/{file_path}", timeout=self._timeout)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise TransientError("Relay file download timed out.") from exc
        except httpx.TransportError as exc:
            raise TransientError("Relay file download unreachable.") from exc

        if response.status_code == 404:
            await response.aclose()
            raise NotFoundError("Image Not Found in Telegram")
        if response.is_error:
            await response.aclose()
            raise UpstreamError(
                "Relay file download failed.", detail={"status": response.status_code}
            )

        async def _chunks():
            try:
                async for chunk in response.aiter_bytes():
                    yield chunk
            finally:
                await response.aclose()

        return FetchedObject(
            chunks=_chunks(),
            content_type=response.headers.get("content-type"),
            on_close=response.aclose,
        )

    async def delete(self, storage_key: str, relay_message_id: Optional[int] = None) -> None:
        if not relay_message_id:
            LOGGER.warning("No relay message reference for %s; nothing to retract", storage_key)
            return
        payload = await self._call(
            "deleteMessage",
            json={"chat_id": self._chat_id, "message_id": relay_message_id},
        )
        if not payload.get("ok"):
            LOGGER.warning(
                "Relay refused to retract message %s for %s: %s",
                relay_message_id,
                storage_key,
                payload.get("description"),
            )
