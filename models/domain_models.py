"""Domain-level typed models used by services and stores.

Prefer `TypedDict` for lightweight structural typing that maps directly to
the JSON-like dicts stored in the database. Stores return these shapes;
routes serialise them unchanged.
"""
from __future__ import annotations

from typing import Any, Literal, TypedDict


BattleStatus = Literal["pending", "active", "completed", "abandoned"]
EndReason = Literal["victory", "forfeit", "draw", "cancelled"]
DataScope = Literal["global", "player", "public"]
Capability = Literal["async", "data", "leaderboard"]

OPEN_STATUSES: tuple[str, ...] = ("pending", "active")
TERMINAL_STATUSES: tuple[str, ...] = ("completed", "abandoned")
DATA_SCOPES: tuple[str, ...] = ("global", "player", "public")
CAPABILITIES: tuple[str, ...] = ("async", "data", "leaderboard")


class Unit(TypedDict):
	unit_id: str
	type: str
	x: int
	y: int
	hp: int
	owner: str


class BlockedTile(TypedDict):
	x: int
	y: int
	item_type: str


class CurrentState(TypedDict):
	units: list[Unit]
	blocked_tiles: list[BlockedTile]


class Turn(TypedDict, total=False):
	turn_id: str
	device_id: str
	turn_number: int
	actions: list[dict[str, Any]]
	game_state: dict[str, Any]
	is_valid: bool
	validation_errors: list[str]
	timestamp: str


class Battle(TypedDict, total=False):
	game_slug: str
	battle_id: str
	display_name: str
	player1_device_id: str
	player2_device_id: str | None
	status: BattleStatus
	current_turn: int
	current_player_index: int
	winner_id: str | None
	end_reason: EndReason | None
	map_data: dict[str, Any]
	current_state: CurrentState
	is_private: bool
	last_turn_at: str | None
	created_at: str
	updated_at: str


class TurnResolution(TypedDict, total=False):
	"""What a rules implementation decided about one submitted turn."""
	state: CurrentState
	winner_id: str | None
	end_reason: EndReason | None
	validation_errors: list[str]


class DataRecord(TypedDict, total=False):
	key: str
	value: dict[str, Any]
	scope: DataScope
	owner_id: str | None
	owner_display_name: str | None
	created_at: str
	updated_at: str


class Score(TypedDict, total=False):
	id: str
	device_id: str
	display_name: str
	score: int
	category: str
	metadata: dict[str, Any]
	created_at: str


class Identity(TypedDict, total=False):
	device_id: str
	display_name: str
	avatar: str
	is_active: bool
	created_at: str
	last_seen: str
	wins: int
	losses: int
	draws: int
	total_turns: int
	total_battles: int


class Game(TypedDict):
	slug: str
	name: str
	capabilities: list[Capability]
	active: bool


__all__ = [
	"BattleStatus",
	"EndReason",
	"DataScope",
	"Capability",
	"OPEN_STATUSES",
	"TERMINAL_STATUSES",
	"DATA_SCOPES",
	"CAPABILITIES",
	"Unit",
	"BlockedTile",
	"CurrentState",
	"Turn",
	"Battle",
	"TurnResolution",
	"DataRecord",
	"Score",
	"Identity",
	"Game",
]
