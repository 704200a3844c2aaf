from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from models import PutDataRequest
from services import Services
from .dependencies import get_services, require_game, device_or_401, device_or_none
from .errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()

data_game = require_game("data")


@router.get("")
async def list_keys(
	request: Request,
	prefix: str = "",
	limit: int = 100,
	cursor: Optional[str] = None,
	scope: Optional[str] = None,
	game: dict = Depends(data_game),
	services: Services = Depends(get_services),
):
	device = await device_or_none(request, game, services)
	try:
		page = await services.stores.data.list(
			game["slug"], prefix=prefix, limit=limit, cursor=cursor, scope=scope, caller=device
		)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content=page)


# Registered before the catch-all key routes so ".../delete" is not read as part of a key.
@router.post("/{key:path}/delete")
async def delete_key_post(
	request: Request,
	key: str,
	game: dict = Depends(data_game),
	services: Services = Depends(get_services),
):
	return await _delete(request, key, game, services)


@router.delete("/{key:path}")
async def delete_key(
	request: Request,
	key: str,
	game: dict = Depends(data_game),
	services: Services = Depends(get_services),
):
	return await _delete(request, key, game, services)


async def _delete(request: Request, key: str, game: dict, services: Services) -> JSONResponse:
	device = await device_or_401(request, game, services)
	try:
		deleted = await services.stores.data.delete(game["slug"], key, device)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content={"deleted_key": deleted})


@router.get("/{key:path}")
async def get_key(
	request: Request,
	key: str,
	scope: Optional[str] = None,
	game: dict = Depends(data_game),
	services: Services = Depends(get_services),
):
	device = await device_or_none(request, game, services)
	try:
		record = await services.stores.data.get(game["slug"], key, scope=scope, caller=device)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content=record)


@router.put("/{key:path}")
@router.post("/{key:path}")
async def put_key(
	request: Request,
	key: str,
	body: PutDataRequest,
	game: dict = Depends(data_game),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	try:
		record, created = await services.stores.data.put(
			game["slug"], key, body.value, body.scope, caller=device
		)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(status_code=201 if created else 200, content=record)
