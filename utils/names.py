"""Deterministic display names for battles.

The same battle id always yields the same name, so names can be shown
before the battle row is read back.
"""
import secrets


BATTLE_ADJECTIVES = [
	"Molting", "Brooding", "Plucked", "Flightless", "Migratory",
	"Territorial", "Peckish", "Hollow", "Grounded", "Soaring",
]

BATTLE_NOUNS = [
	"Skirmish", "Siege", "Sortie", "Standoff", "Offensive",
	"Ambush", "Retreat", "Stalemate", "Incursion", "Blitz",
]


def new_battle_id() -> str:
	"""16 hex characters of randomness."""
	return secrets.token_hex(8)


def battle_display_name(battle_id: str) -> str:
	"""Return e.g. 'Peckish-Siege-42' derived from the leading hex digits of `battle_id`."""
	try:
		numeric_id = int(battle_id[:8], 16)
	except ValueError:
		numeric_id = sum(ord(c) for c in battle_id)

	adjective = BATTLE_ADJECTIVES[numeric_id % len(BATTLE_ADJECTIVES)]
	noun = BATTLE_NOUNS[(numeric_id // len(BATTLE_ADJECTIVES)) % len(BATTLE_NOUNS)]
	suffix = (numeric_id // (len(BATTLE_ADJECTIVES) * len(BATTLE_NOUNS))) % 100
	return f"{adjective}-{noun}-{suffix}"
