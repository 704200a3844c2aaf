"""Utility helpers used across the project.

Make commonly used helpers available at the package level for convenience.

Exports:
- auth helpers: `hash_token`, `get_bearer_token`, `authenticate_device`, `require_device`
- time helpers: `now_utc`, `now_iso`, `to_iso`, `parse_iso`
- validation helpers: `is_valid_key`, `validate_key`, `sanitize_json`, `VALID_KEY_RE`
- cursor helpers: `encode_cursor`, `decode_cursor`
"""

from .auth import (
	UnauthorizedException,
	hash_token,
	get_bearer_token,
	authenticate_device,
	require_device,
)
from .time import now_utc, now_iso, to_iso, parse_iso
from .validation import is_valid_key, validate_key, sanitize_json, VALID_KEY_RE
from .cursors import encode_cursor, decode_cursor
from .names import battle_display_name, new_battle_id

__all__ = [
	"UnauthorizedException",
	"hash_token",
	"get_bearer_token",
	"authenticate_device",
	"require_device",
	"now_utc",
	"now_iso",
	"to_iso",
	"parse_iso",
	"is_valid_key",
	"validate_key",
	"sanitize_json",
	"VALID_KEY_RE",
	"encode_cursor",
	"decode_cursor",
	"battle_display_name",
	"new_battle_id",
]
