"""Extension and content-type helpers for uploaded and served images."""

import re
from typing import Optional, Tuple

DEFAULT_EXTENSION = ".jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"
GENERIC_CONTENT_TYPE = "application/octet-stream"

_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]+$")

EXTENSION_TO_MIME = {
    ".gif": "image/gif",
    ".png": "image/png",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".bmp": "image/bmp",
    ".ico": "image/x-icon",
    ".tiff": "image/tiff",
    ".avif": "image/avif",
    ".heic": "image/heic",
}


def derive_extension(filename: Optional[str]) -> str:
    """Return the lower-cased extension of `filename`, or `.jpg` when it has none."""
    match = _EXTENSION_RE.search(filename or "")
    return match.group(0).lower() if match else DEFAULT_EXTENSION


def split_identifier(identifier: str) -> Tuple[str, str]:
    """Split a public identifier into `(storage_key, extension)`.

    The extension is lower-cased and empty when the identifier carries none.
    """
    match = _EXTENSION_RE.search(identifier)
    if not match:
        return identifier, ""
    return identifier[: match.start()], match.group(0).lower()


def guess_content_type(extension: str) -> Optional[str]:
    """Look up the MIME type for a known image extension."""
    return EXTENSION_TO_MIME.get(extension.lower())


def resolve_content_type(extension: str, declared: Optional[str]) -> str:
    """Pick the response content type for a served image.

    The extension table wins; a declared type is used unless it is empty or
    the generic octet-stream placeholder; otherwise `image/jpeg`.
    """
    from_table = guess_content_type(extension)
    if from_table:
        return from_table
    if declared:
        base_type = declared.split(";", 1)[0].strip().lower()
        if base_type and base_type != GENERIC_CONTENT_TYPE:
            return declared.strip()
    return DEFAULT_CONTENT_TYPE
