from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse

from services import Services, player_stats
from .dependencies import get_services, require_game, device_or_401
from .errors import http_error

router = APIRouter()


@router.get("")
async def get_my_stats(
	request: Request,
	game: dict = Depends(require_game("async")),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	try:
		stats = await player_stats(
			services.stores.identities, services.stores.battles, game["slug"], device["device_id"]
		)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content={"stats": stats})
