"""Maintenance endpoints, guarded by the `X-Admin-Key` header."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging

from services import Services, reconcile_counters
from .dependencies import get_services, require_admin
from .errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


async def _game_slug(game_slug: str, services: Services) -> str:
	try:
		game = await services.stores.identities.get_game(game_slug)
	except Exception as e:
		raise http_error(e)
	return game["slug"]


@router.post("/reconcile")
async def reconcile(game_slug: str, services: Services = Depends(get_services)):
	slug = await _game_slug(game_slug, services)
	try:
		result = await reconcile_counters(services.stores.identities, services.stores.battles, slug)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content=result)


@router.delete("/battles/{battle_id}")
async def delete_battle(game_slug: str, battle_id: str, services: Services = Depends(get_services)):
	slug = await _game_slug(game_slug, services)
	try:
		await services.stores.battles.delete_battle(slug, battle_id)
	except Exception as e:
		raise http_error(e)
	logger.warning(f"[ADMIN] Deleted battle {battle_id} in {slug}")
	return JSONResponse(content={"deleted": battle_id})


@router.post("/battles/reset")
async def reset_battles(game_slug: str, services: Services = Depends(get_services)):
	slug = await _game_slug(game_slug, services)
	try:
		count = await services.stores.battles.reset_open_battles(slug)
	except Exception as e:
		raise http_error(e)
	logger.warning(f"[ADMIN] Reset {count} open battles in {slug}")
	return JSONResponse(content={"reset": count})
