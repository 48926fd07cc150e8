"""FastAPI routes for minting realtime credentials."""

from fastapi import APIRouter, HTTPException, Request

from controllers.session_controller import create_session_credential

router = APIRouter(prefix="/session")


@router.post("/create")
async def create_session_route(request: Request):
	try:
		return await create_session_credential(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
