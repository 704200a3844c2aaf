"""Bearer-token helpers for FastAPI request handling.

Credentials are issued elsewhere; this module only turns an
`Authorization: Bearer <token>` header into the device identity it was
issued for within one game.
"""
import hashlib
from typing import Any, Dict, Optional

from fastapi import Request


class UnauthorizedException(Exception):
	"""Raised when credentials are missing or fail validation."""
	pass


def hash_token(token: str) -> str:
	"""Tokens are stored only as their sha256 hex digest."""
	return hashlib.sha256(token.encode()).hexdigest()


def get_bearer_token(request: Request) -> Optional[str]:
	"""Return the bearer token from the request, or `None` if missing."""
	header = request.headers.get("authorization")
	if not header or not header.startswith("Bearer "):
		return None
	token = header[len("Bearer "):].strip()
	return token or None


async def authenticate_device(
	request: Request,
	game_slug: str,
	identity_store: Any,
) -> Optional[Dict[str, str]]:
	"""
	Resolve the request's bearer token to a device within `game_slug`.

	Returns:
		{"device_id": ..., "display_name": ...} or None when the header is
		absent or the token is unknown/inactive. Callers that require a
		device use `require_device` instead.
	"""
	token = get_bearer_token(request)
	if token is None:
		return None
	return await identity_store.resolve_token(game_slug, hash_token(token))


async def require_device(
	request: Request,
	game_slug: str,
	identity_store: Any,
) -> Dict[str, str]:
	"""Like `authenticate_device` but raises `UnauthorizedException` on any failure."""
	auth = await authenticate_device(request, game_slug, identity_store)
	if auth is None:
		# same outcome for missing, malformed or revoked credentials
		raise UnauthorizedException("Player authentication required")
	return auth
