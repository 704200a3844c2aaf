"""Services package: business logic layered over the stores.

Import submodules to make them available as `services.battle_machine`,
etc. `open_services` builds the whole stack for code running outside the
web app (Celery tasks, scripts).
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from db import Database
from stores import Stores

from .turn_rules import TurnRules, DefaultTurnRules
from .battle_machine import (
	BattleStateMachine,
	derive_initial_state,
	parse_placements,
	outcome_deltas,
)
from .leaderboard import LeaderboardView, rank_scores
from .stats import player_stats, reconcile_counters

__all__ = [
	"TurnRules",
	"DefaultTurnRules",
	"BattleStateMachine",
	"derive_initial_state",
	"parse_placements",
	"outcome_deltas",
	"LeaderboardView",
	"rank_scores",
	"player_stats",
	"reconcile_counters",
	"Services",
	"open_services",
]


class Services:
	"""Stores plus the services built on them, sharing one `Database`."""

	def __init__(self, stores, *, rules=None):
		self.stores = stores
		self.battles = BattleStateMachine(stores.battles, stores.identities, rules=rules)
		self.leaderboard = LeaderboardView(stores.scores)


@asynccontextmanager
async def open_services(db_path: str) -> AsyncIterator[Services]:
	"""Open a private `Database` for the duration of the block."""
	database = Database(db_path)
	await database.init()
	try:
		yield Services(Stores(database))
	finally:
		await database.close()
