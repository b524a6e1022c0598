from fastapi import APIRouter, HTTPException, Request

from controllers.image_controller import list_public_images, serve_image

router = APIRouter()


@router.get("/image/{identifier}")
async def get_image(request: Request, identifier: str):
	"""Stream the image behind a direct link such as `/image/<file_id>.png`."""
	try:
		return await serve_image(request, identifier)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/api/public/images")
async def get_public_images(request: Request):
	"""Return the public gallery, newest upload first."""
	try:
		return await list_public_images(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
