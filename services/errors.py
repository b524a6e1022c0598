"""Error taxonomy shared by the storage backends, orchestrator and resolver."""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_detail(self) -> Any:
        if self.detail is None:
            return self.message
        return {"error": self.message, "details": self.detail}


class ConfigError(GatewayError):
    """A required setting or process binding is missing."""

    status_code = 500


class NotFoundError(GatewayError):
    """The identifier does not resolve to any bytes."""

    status_code = 404


class StorageError(GatewayError):
    """A storage backend operation failed."""

    status_code = 502


class UpstreamError(StorageError):
    """The backend answered, but with a failure or an unusable reply."""

    status_code = 502


class TransientError(StorageError):
    """The backend could not be reached or did not answer in time."""

    status_code = 504
