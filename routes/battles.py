from fastapi import APIRouter, Request, Response, Depends, Header
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from models import CreateBattleRequest, SubmitTurnRequest
from services import Services
from utils.time import to_epoch_ms
from .dependencies import get_services, require_game, device_or_401, device_or_none
from .errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()

battle_game = require_game("async")


def poll_etag(poll: dict) -> str:
	return f'"{to_epoch_ms(poll["updated_at"])}-{poll["current_turn"]}"'


@router.get("")
async def list_battles(
	request: Request,
	limit: int = 20,
	cursor: Optional[str] = None,
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	device = await device_or_none(request, game, services)
	try:
		page = await services.battles.list_public(
			game["slug"],
			limit=limit,
			cursor=cursor,
			caller_device_id=device["device_id"] if device else None,
		)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content=page)


@router.post("", status_code=201)
async def create_battle(
	request: Request,
	body: CreateBattleRequest,
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	try:
		battle = await services.battles.create(
			game["slug"], device["device_id"], body.map_data, body.is_private
		)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(
		status_code=201,
		content={
			"battle_id": battle["battle_id"],
			"display_name": battle["display_name"],
			"status": battle["status"],
			"is_private": battle["is_private"],
			"created_at": battle["created_at"],
		},
	)


@router.get("/{battle_id}")
async def get_battle(
	battle_id: str,
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	try:
		battle = await services.battles.get(game["slug"], battle_id)
		detail = await services.battles.describe(battle)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content=detail)


@router.post("/{battle_id}/join")
async def join_battle(
	request: Request,
	battle_id: str,
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	try:
		battle = await services.battles.join(game["slug"], battle_id, device["device_id"])
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content={
		"battle_id": battle["battle_id"],
		"status": battle["status"],
		"player1_device_id": battle["player1_device_id"],
		"player2_device_id": battle["player2_device_id"],
		"current_player_index": battle["current_player_index"],
		"current_state": battle["current_state"],
	})


@router.post("/{battle_id}/turns")
async def submit_turn(
	request: Request,
	battle_id: str,
	body: SubmitTurnRequest,
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	actions = [a.model_dump(by_alias=True, exclude_none=True) for a in body.actions]
	try:
		battle, turn = await services.battles.submit_turn(
			game["slug"],
			battle_id,
			device["device_id"],
			actions,
			game_state=body.game_state,
			game_over=body.game_over.model_dump() if body.game_over else None,
			expected_turn=body.expected_turn,
		)
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content={
		"turn": turn,
		"status": battle["status"],
		"current_turn": battle["current_turn"],
		"current_player_index": battle["current_player_index"],
		"current_state": battle["current_state"],
		"winner_id": battle["winner_id"],
		"end_reason": battle["end_reason"],
	})


@router.post("/{battle_id}/forfeit")
async def forfeit_battle(
	request: Request,
	battle_id: str,
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	device = await device_or_401(request, game, services)
	try:
		battle = await services.battles.forfeit(game["slug"], battle_id, device["device_id"])
	except Exception as e:
		raise http_error(e)
	return JSONResponse(content={
		"battle_id": battle["battle_id"],
		"status": battle["status"],
		"winner_id": battle["winner_id"],
		"end_reason": battle["end_reason"],
	})


@router.get("/{battle_id}/poll")
async def poll_battle(
	battle_id: str,
	last_known_turn: int = 0,
	if_none_match: Optional[str] = Header(default=None),
	game: dict = Depends(battle_game),
	services: Services = Depends(get_services),
):
	try:
		poll = await services.battles.poll(game["slug"], battle_id, last_known_turn)
	except Exception as e:
		raise http_error(e)
	etag = poll_etag(poll)
	if if_none_match and if_none_match == etag:
		return Response(status_code=304, headers={"ETag": etag})
	return JSONResponse(content=poll, headers={"ETag": etag, "Cache-Control": "no-cache"})
