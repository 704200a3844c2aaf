"""Data models used by the application.

Split into:
- `api_models`: Pydantic models used for request validation
- `map_models`: Pydantic schema for placement entries inside `map_data`
- `domain_models`: typed dicts used in business logic and returned by stores

Import submodules to make them available as `models.api_models`.
"""

from . import api_models, domain_models, map_models

from .api_models import (
	GridPoint,
	CreateBattleRequest,
	TurnAction,
	GameOverClaim,
	SubmitTurnRequest,
	PutDataRequest,
	SubmitScoreRequest,
)

from .map_models import (
	UnitPlacement,
	ItemPlacement,
	MapPlacements,
)

from .domain_models import (
	Unit,
	BlockedTile,
	CurrentState,
	Turn,
	Battle,
	TurnResolution,
	DataRecord,
	Score,
	Identity,
	Game,
	OPEN_STATUSES,
	TERMINAL_STATUSES,
	DATA_SCOPES,
	CAPABILITIES,
)

__all__ = [
	# submodules
	"api_models",
	"domain_models",
	"map_models",
	# api models
	"GridPoint",
	"CreateBattleRequest",
	"TurnAction",
	"GameOverClaim",
	"SubmitTurnRequest",
	"PutDataRequest",
	"SubmitScoreRequest",
	# map placements
	"UnitPlacement",
	"ItemPlacement",
	"MapPlacements",
	# domain models
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
	"OPEN_STATUSES",
	"TERMINAL_STATUSES",
	"DATA_SCOPES",
	"CAPABILITIES",
]
