"""Schema for the placement entries inside a battle's `map_data`.

`map_data` is produced by game clients and stored verbatim; only the two
placement lists are interpreted, once, when a battle becomes active. The
field names follow the client's own format (camelCase).
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class UnitPlacement(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	bird_type: str = Field(default="BIRD1", alias="birdType", min_length=1)
	grid_x: StrictInt = Field(alias="gridX")
	grid_z: StrictInt = Field(alias="gridZ")
	# 1 or 2; absent means player 1
	player: Literal[1, 2] | None = None


class ItemPlacement(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	item_type: str = Field(alias="itemType", min_length=1)
	grid_x: StrictInt = Field(alias="gridX")
	grid_z: StrictInt = Field(alias="gridZ")
	can_move_on: bool | None = Field(default=None, alias="canMoveOn")


class MapPlacements(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	unit_placement: list[UnitPlacement] = Field(default_factory=list, alias="unitPlacement")
	item_placement: list[ItemPlacement] = Field(default_factory=list, alias="itemPlacement")


__all__ = ["UnitPlacement", "ItemPlacement", "MapPlacements"]
