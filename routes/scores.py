from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from models import SubmitScoreRequest
from services import Services
from .dependencies import get_services, require_game, device_or_401
from .errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()

leaderboard_game = require_game("leaderboard")


@router.get("")
async def list_scores(
	filter: Optional[str] = None,
	category: Optional[str] = None,
	period: Optional[str] = None,
	limit: Optional[int] = None,
	offset: int = 0,
	game: dict = Depends(leaderboard_game),
	services: Services = Depends(get_services),
):
	try:
		if filter == "top":
			groups = await services.leaderboard.list(
				game["slug"], limit or 10, category=category, period=period
			)
			content = {
				"game": {"slug": game["slug"], "name": game["name"]},
				"filter": "top",
				"category": category,
				"scores": groups,
				"total": len(groups),
			}
		else:
			page = await services.leaderboard.page(
				game["slug"], category=category, period=period, limit=limit or 100, offset=offset
			)
			content = {"game": {"slug": game["slug"], "name": game["name"]}, "category": category, **page}
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content=content)


@router.post("", status_code=201)
async def submit_score(
	request: Request,
	body: SubmitScoreRequest,
	game: dict = Depends(leaderboard_game),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	try:
		result = await services.stores.scores.submit_score(
			game["slug"],
			device["device_id"],
			device.get("display_name") or "Unknown Player",
			body.score,
			category=body.category or "default",
			metadata=body.metadata,
		)
	except Exception as e:
		raise http_error(e)
	message = "New personal best!" if result["is_personal_best"] else "Score submitted successfully"
	return JSONResponse(status_code=201, content={"score": result, "message": message})


@router.get("/{score_id}")
async def get_score(
	score_id: str,
	game: dict = Depends(leaderboard_game),
	services: Services = Depends(get_services),
):
	try:
		score = await services.stores.scores.get_score(game["slug"], score_id)
		info = await services.stores.identities.get_player_info(game["slug"], [score["device_id"]])
	except Exception as e:
		raise http_error(e)
	current = info.get(score["device_id"])
	score = dict(score)
	if current:
		score["display_name"] = current["display_name"]
		score["avatar"] = current["avatar"]
	return JSONResponse(content=score)
