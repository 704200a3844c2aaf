"""Time utilities: timezone-aware helpers and ISO formatting/parsing.

Timestamps are stored as ISO8601 text in UTC so that lexical order in
SQLite matches chronological order.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


def now_utc() -> datetime:
	"""Return current UTC datetime with tzinfo set."""
	return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
	"""Serialize a datetime to a fixed-width UTC ISO8601 string."""
	return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_iso() -> str:
	return to_iso(now_utc())


def iso_days_ago(days: int) -> str:
	return to_iso(now_utc() - timedelta(days=days))


def parse_iso(s: str) -> Optional[datetime]:
	"""Parse an ISO8601 string into a timezone-aware datetime when possible.

	Returns None on obvious parse failures.
	"""
	if not s:
		return None
	try:
		if s.endswith("Z"):
			s = s[:-1] + "+00:00"
		return datetime.fromisoformat(s)
	except ValueError:
		return None


def to_epoch_ms(s: Optional[str]) -> int:
	dt = parse_iso(s) if s else None
	return int(dt.timestamp() * 1000) if dt else 0
