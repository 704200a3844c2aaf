"""FastAPI dependencies shared by the routers.

Services live on `app.state.services` (set in the app lifespan); nothing
here reaches for module-level globals.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

import config
from services import Services
from stores import NotFound
from utils.auth import UnauthorizedException, authenticate_device, require_device

from .errors import error_detail, http_error


def get_services(request: Request) -> Services:
	return request.app.state.services


def require_game(capability: str):
	"""Dependency factory: resolve `{game_slug}` and require one capability (404 otherwise)."""

	async def dependency(game_slug: str, services: Services = Depends(get_services)) -> dict:
		try:
			return await services.stores.identities.require_capability(game_slug, capability)
		except NotFound as e:
			raise http_error(e)

	return dependency


async def device_or_401(request: Request, game: dict, services: Services) -> dict:
	try:
		return await require_device(request, game["slug"], services.stores.identities)
	except UnauthorizedException as e:
		raise http_error(e)


async def device_or_none(request: Request, game: dict, services: Services) -> Optional[dict]:
	return await authenticate_device(request, game["slug"], services.stores.identities)


def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
	if not config.ADMIN_API_KEY:
		raise HTTPException(status_code=503, detail=error_detail("AdminDisabled", "Admin API is not configured"))
	if not x_admin_key or not secrets.compare_digest(x_admin_key, config.ADMIN_API_KEY):
		raise HTTPException(status_code=403, detail=error_detail("Forbidden", "Invalid admin key"))
