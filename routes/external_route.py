"""FastAPI routes for third-party clients uploading through the API."""

from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.image_controller import edit_image, upload_image
from services.upload_orchestrator import API_UPLOAD

router = APIRouter(prefix="/api/external", tags=["external"])


class EditPayload(BaseModel):
	file_id: str
	filename: Optional[str] = None
	description: Optional[str] = None


@router.post("/upload")
async def external_upload_route(request: Request, file: UploadFile = File(...)):
	try:
		return await upload_image(request, file, API_UPLOAD, "api_upload.png")
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/edit")
async def external_edit_route(request: Request, payload: EditPayload):
	try:
		return await edit_image(request, payload.file_id, payload.filename, payload.description)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
