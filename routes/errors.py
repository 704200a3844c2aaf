"""Translate store/service exceptions into HTTP errors.

Error bodies look like {"detail": {"error": <code>, "message": <text>}}.
"""
import logging

from fastapi import HTTPException

from stores import (
	StoreError,
	NotFound,
	InvalidState,
	SelfJoin,
	ValidationError,
	NotParticipant,
	NotOwner,
	CapacityExceeded,
	OutOfTurn,
	Conflict,
)
from utils.auth import UnauthorizedException

logger = logging.getLogger(__name__)

# checked in order; first matching class wins
STATUS_BY_ERROR = [
	(NotFound, 404),
	(InvalidState, 400),
	(SelfJoin, 400),
	(ValidationError, 400),
	(NotParticipant, 403),
	(NotOwner, 403),
	(CapacityExceeded, 403),
	(OutOfTurn, 409),
	(Conflict, 409),
]


def error_detail(code: str, message: str) -> dict:
	return {"error": code, "message": message}


def http_error(exc: Exception) -> HTTPException:
	"""Map a known exception to an HTTPException; anything else becomes a 500."""
	if isinstance(exc, UnauthorizedException):
		return HTTPException(
			status_code=401,
			detail=error_detail("Unauthorized", str(exc) or "Authentication required"),
			headers={"WWW-Authenticate": "Bearer"},
		)
	if isinstance(exc, StoreError):
		for cls, status in STATUS_BY_ERROR:
			if isinstance(exc, cls):
				if status >= 409 or status == 403:
					logger.warning(f"[API] {type(exc).__name__}: {exc}")
				else:
					logger.info(f"[API] {type(exc).__name__}: {exc}")
				return HTTPException(status_code=status, detail=error_detail(type(exc).__name__, str(exc)))
	logger.error(f"[API] Unhandled {type(exc).__name__}: {exc}", exc_info=exc)
	return HTTPException(
		status_code=500,
		detail=error_detail("InternalError", "Internal server error; the request may be retried"),
	)
