"""Validation and sanitization helpers.

Lightweight input checks shared by stores and route handlers. Failures
raise `ValueError`; stores re-raise them as their own `ValidationError`.
"""
import json
from typing import Any

import regex as re


# Logical data keys: any Unicode letter/number plus a few separators.
# ':' is reserved for the owner namespace of player-scoped keys.
VALID_KEY_RE = re.compile(r"^[\p{L}\p{N}_.\-/]+$", flags=re.UNICODE)
MAX_KEY_LENGTH = 200

GAME_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9\-]{0,63}$")


def is_valid_key(s: str) -> bool:
	"""Return True if `s` can be used as a logical data-store key."""
	if not s or len(s) > MAX_KEY_LENGTH:
		return False
	return bool(VALID_KEY_RE.match(s))


def validate_key(s: str) -> str:
	key = (s or "").strip()
	if not is_valid_key(key):
		raise ValueError(
			f"Invalid key {s!r}: use 1-{MAX_KEY_LENGTH} letters, digits or _ . - / characters"
		)
	return key


def is_valid_slug(s: str) -> bool:
	return bool(s) and bool(GAME_SLUG_RE.match(s))


def sanitize_json(obj: Any, *, _depth: int = 0, _max_depth: int = 10) -> Any:
	"""Recursively sanitize an input JSON-like structure.

	- Drops keys that start with '$' or contain '..'.
	- Enforces max depth to avoid excessive recursion.
	- Returns a cleaned structure containing only dict/list/primitives.
	"""
	if _depth > _max_depth:
		raise ValueError("Input too deeply nested")

	if isinstance(obj, dict):
		clean = {}
		for k, v in obj.items():
			if not isinstance(k, str):
				continue
			if k.startswith("$") or ".." in k:
				continue
			clean[k] = sanitize_json(v, _depth=_depth + 1, _max_depth=_max_depth)
		return clean
	elif isinstance(obj, list):
		return [sanitize_json(v, _depth=_depth + 1, _max_depth=_max_depth) for v in obj]
	elif isinstance(obj, (str, int, float, bool)) or obj is None:
		return obj
	else:
		raise ValueError("Unsupported JSON value type")


def encode_json_limited(obj: Any, max_bytes: int) -> str:
	"""Serialise `obj` compactly, rejecting payloads larger than `max_bytes`."""
	text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
	if len(text.encode("utf-8")) > max_bytes:
		raise ValueError(f"Value exceeds maximum size of {max_bytes // 1024}KB")
	return text


def validate_limit(limit: int, *, maximum: int, name: str = "limit") -> int:
	if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1 or limit > maximum:
		raise ValueError(f"{name} must be between 1 and {maximum}")
	return limit
