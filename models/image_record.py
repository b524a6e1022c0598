from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class BackendTag(str, Enum):
    """Storage backend that owns the bytes of a record."""

    TELEGRAM = "telegram"
    OBJECT_STORE = "object_store"


@dataclass
class ImageRecord:
    """In-memory representation of a row in the IMAGE table.

    Attributes:
        id: Primary key (None for new records).
        storage_key: Opaque handle issued by the backend (relay file id or UUID).
        backend: Backend that holds the bytes; fixed at creation time.
        filename: Original upload name, used for extension and display.
        relay_message_id: Relay message reference, only set for relay records.
        description: Optional free-text annotation.
        upload_time: Unix timestamp (seconds) when the row was inserted.
    """

    id: Optional[int]
    storage_key: str
    backend: BackendTag
    filename: str
    relay_message_id: Optional[int] = None
    description: Optional[str] = None
    upload_time: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the admin listing, using the public `file_id` / `message_id` names."""
        return {
            "id": self.id,
            "file_id": self.storage_key,
            "backend": self.backend.value,
            "message_id": self.relay_message_id,
            "filename": self.filename,
            "description": self.description,
            "upload_time": self.upload_time,
        }
