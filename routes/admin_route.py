"""FastAPI routes for the admin panel: listing, uploads, deletes and settings."""

from typing import Any, Dict

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.image_controller import delete_image, list_admin_images, upload_image
from controllers.settings_controller import get_settings, update_settings
from services.upload_orchestrator import ADMIN_UPLOAD

router = APIRouter(prefix="/api/admin", tags=["admin"])


class DeletePayload(BaseModel):
	id: int


@router.get("/images")
async def admin_images_route(request: Request):
	try:
		return await list_admin_images(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/upload")
async def admin_upload_route(request: Request, file: UploadFile = File(...)):
	try:
		return await upload_image(request, file, ADMIN_UPLOAD, "admin_upload.png")
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/delete")
async def admin_delete_route(request: Request, payload: DeletePayload):
	try:
		return await delete_image(request, payload.id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/settings")
async def admin_get_settings_route(request: Request):
	try:
		return await get_settings(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/settings")
async def admin_update_settings_route(request: Request, payload: Dict[str, Any]):
	try:
		return await update_settings(request, payload)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
