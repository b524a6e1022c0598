from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from dal.image_dal import ImageDAL
from dal.settings_dal import SettingsDAL
from models.gateway_config import GatewayConfig
from services.errors import GatewayError
from services.image_resolver import ImageResolver
from services.storage.backend_factory import StorageBindings
from services.upload_orchestrator import UploadOrchestrator, image_url


def get_db_initializer(request: Request):
    """Retrieve the shared database initializer from the app state."""
    db_initializer = getattr(request.app.state, "db_initializer", None)
    if db_initializer is None:
        raise HTTPException(status_code=500, detail="Database binding missing.")
    return db_initializer


def _get_bindings(request: Request) -> StorageBindings:
    bindings = getattr(request.app.state, "storage_bindings", None)
    if bindings is None:
        raise HTTPException(status_code=500, detail="Storage bindings not initialized.")
    return bindings


def http_error(exc: GatewayError) -> HTTPException:
    """Translate a gateway error into the matching HTTPException."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


async def load_gateway_config(request: Request) -> GatewayConfig:
    """Read settings fresh for this request and validate them.

    Raises:
        HTTPException(500) if the settings are incomplete.
    """
    settings = await SettingsDAL(get_db_initializer(request)).get_settings()
    try:
        return GatewayConfig.from_settings(settings, str(request.base_url))
    except GatewayError as exc:
        raise http_error(exc) from exc


async def upload_image(request: Request, file: UploadFile, provenance: str, default_filename: str) -> Dict[str, Any]:
    """Handle an upload from either the external API or the admin panel.

    Args:
        request: FastAPI Request object (used to access app.state for shared clients).
        file: Uploaded image.
        provenance: Label stored in the record description.
        default_filename: Name used when the client did not send one.

    Returns:
        `{"success": True, "url": ..., "file_id": ...}`
    """
    config = await load_gateway_config(request)
    data = await file.read()
    filename = file.filename or default_filename

    orchestrator = UploadOrchestrator(ImageDAL(get_db_initializer(request)), config, _get_bindings(request))
    try:
        result = await orchestrator.handle_upload(data, filename, provenance)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GatewayError as exc:
        raise http_error(exc) from exc
    return result.to_dict()


async def list_public_images(request: Request) -> List[Dict[str, Any]]:
    """Return `{file_id, filename, url}` for every image, newest first."""
    config = await load_gateway_config(request)
    records = await ImageDAL(get_db_initializer(request)).list_images()
    return [
        {
            "file_id": record.storage_key,
            "filename": record.filename,
            "url": image_url(config.origin, record.storage_key, record.filename),
        }
        for record in records
    ]


async def list_admin_images(request: Request) -> List[Dict[str, Any]]:
    """Return full image records with their public URL, newest first."""
    config = await load_gateway_config(request)
    records = await ImageDAL(get_db_initializer(request)).list_images()
    return [
        {**record.to_dict(), "url": image_url(config.origin, record.storage_key, record.filename)}
        for record in records
    ]


async def edit_image(
    request: Request,
    file_id: str,
    filename: Optional[str],
    description: Optional[str],
) -> Dict[str, Any]:
    """Update filename and description of the image stored under `file_id`."""
    image_dal = ImageDAL(get_db_initializer(request))
    updated = await image_dal.update_image(file_id, filename=filename, description=description)
    return {"success": True, "updated": updated}


async def delete_image(request: Request, image_id: int) -> Dict[str, Any]:
    """Delete an image's bytes (best effort) and its record."""
    config = await load_gateway_config(request)
    orchestrator = UploadOrchestrator(ImageDAL(get_db_initializer(request)), config, _get_bindings(request))
    deleted = await orchestrator.delete_image(int(image_id))
    return {"success": True, "deleted": deleted}


async def serve_image(request: Request, identifier: str) -> StreamingResponse:
    """Stream the bytes behind a public identifier with long-lived caching."""
    config = await load_gateway_config(request)
    resolver = ImageResolver(ImageDAL(get_db_initializer(request)), config, _get_bindings(request))
    try:
        resolved = await resolver.resolve(identifier)
    except GatewayError as exc:
        raise http_error(exc) from exc

    return StreamingResponse(
        resolved.chunks,
        media_type=resolved.content_type,
        headers=resolved.headers,
        background=BackgroundTask(resolved.aclose),
    )
