"""Opaque pagination cursors.

A cursor wraps one integer row id in URL-safe base64 JSON so clients
cannot mistake it for an offset. Decoding failures raise `ValueError`.
"""
import base64
import binascii
import json


def encode_cursor(field: str, row_id: int) -> str:
	raw = json.dumps({field: row_id}, separators=(",", ":")).encode()
	return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(token: str, field: str) -> int:
	padded = token + "=" * (-len(token) % 4)
	try:
		payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
	except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
		raise ValueError("Invalid cursor") from exc
	if not isinstance(payload, dict):
		raise ValueError("Invalid cursor")
	row_id = payload.get(field)
	if not isinstance(row_id, int) or isinstance(row_id, bool) or row_id < 0:
		raise ValueError("Invalid cursor")
	return row_id
