"""Pydantic request/response models for the FastAPI endpoints.

Keep transport concerns (validation, docs) here and keep business/domain
types in `models.domain_models`.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


TurnActionType = Literal[
	"move", "attack", "build", "capture", "wait", "end_turn",
	"take_off", "land", "supply", "load", "unload", "combine",
]


class GridPoint(BaseModel):
	x: int
	y: int


class CreateBattleRequest(BaseModel):
	map_data: dict[str, Any] = Field(default_factory=dict)
	is_private: bool = False


class TurnAction(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	type: TurnActionType
	unit_id: str | None = None
	from_: GridPoint | None = Field(default=None, alias="from")
	to: GridPoint | None = None
	target_id: str | None = None
	data: dict[str, Any] | None = None


class GameOverClaim(BaseModel):
	reason: Literal["victory", "draw"]
	winner_id: str | None = None


class SubmitTurnRequest(BaseModel):
	actions: list[TurnAction] = Field(default_factory=list, max_length=200)
	game_state: dict[str, Any] | None = None
	game_over: GameOverClaim | None = None
	# client's view of current_turn; a stale view is rejected as a conflict
	expected_turn: int | None = Field(default=None, ge=0)


class PutDataRequest(BaseModel):
	value: dict[str, Any]
	scope: Literal["global", "player", "public"] = "global"


class SubmitScoreRequest(BaseModel):
	score: int = Field(ge=0, le=999_999_999)
	category: str | None = Field(default=None, min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
	metadata: dict[str, Any] = Field(default_factory=dict)


__all__ = [
	"TurnActionType",
	"GridPoint",
	"CreateBattleRequest",
	"TurnAction",
	"GameOverClaim",
	"SubmitTurnRequest",
	"PutDataRequest",
	"SubmitScoreRequest",
]
