"""Battle lifecycle: pending -> active -> completed | abandoned.

`BattleStateMachine` validates each request against a fresh snapshot of
the battle and commits through one conditional store write, so the rules
below hold even when both players (or two would-be joiners) race:

- a pending battle is joined at most once
- each turn number is accepted at most once, by the player to move
- terminal battles never change again

Counter updates (wins, losses, turns) run after the authoritative commit.
A failed counter write is logged and left for `reconcile_counters`.
"""
import logging
import secrets
from typing import Any, Optional

import pydantic

import config
from models.domain_models import OPEN_STATUSES, Battle, CurrentState
from models.map_models import MapPlacements
from stores import (
    BattleStore,
    IdentityStore,
    InvalidState,
    NotParticipant,
    OutOfTurn,
    SelfJoin,
    Conflict,
    ValidationError,
)
from utils.names import battle_display_name, new_battle_id

from .turn_rules import DefaultTurnRules, TurnRules

logger = logging.getLogger(__name__)

UNIT_START_HP = 10


def parse_placements(map_data: dict[str, Any]) -> MapPlacements:
    """Validate the placement lists of `map_data`.

    Raises:
        ValidationError: If any placement entry is malformed.
    """
    try:
        return MapPlacements.model_validate(map_data or {})
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        raise ValidationError(f"Invalid map_data at {where}: {first['msg']}") from exc


def derive_initial_state(map_data: dict[str, Any], player1: str, player2: str) -> CurrentState:
    placements = parse_placements(map_data)
    units = []
    for index, p in enumerate(placements.unit_placement):
        owner = player2 if p.player == 2 else player1
        units.append({
            "unit_id": f"{owner}_u{index}",
            "type": p.bird_type,
            "x": p.grid_x,
            "y": p.grid_z,
            "hp": UNIT_START_HP,
            "owner": owner,
        })
    # only items explicitly marked impassable block a tile
    blocked = [
        {"x": i.grid_x, "y": i.grid_z, "item_type": i.item_type}
        for i in placements.item_placement
        if i.can_move_on is False
    ]
    return {"units": units, "blocked_tiles": blocked}


def player_index(battle: Battle, device_id: str) -> Optional[int]:
    if device_id == battle["player1_device_id"]:
        return 0
    if device_id == battle.get("player2_device_id"):
        return 1
    return None


def winner_index(battle: Battle) -> Optional[int]:
    winner = battle.get("winner_id")
    return player_index(battle, winner) if winner else None


def outcome_deltas(battle: dict) -> dict[str, dict[str, int]]:
    """Counter changes implied by a completed battle; empty for any other status."""
    if battle["status"] != "completed":
        return {}
    p1, p2 = battle["player1_device_id"], battle["player2_device_id"]
    if battle["end_reason"] == "draw":
        return {p1: {"draws": 1}, p2: {"draws": 1}}
    winner = battle["winner_id"]
    if winner is None:
        return {}
    loser = p2 if winner == p1 else p1
    return {winner: {"wins": 1}, loser: {"losses": 1}}


class BattleStateMachine:

    def __init__(
        self,
        battles: BattleStore,
        identities: IdentityStore,
        *,
        rules: Optional[TurnRules] = None,
        max_active: int = config.MAX_ACTIVE_BATTLES,
    ):
        self.battles = battles
        self.identities = identities
        self.rules = rules or DefaultTurnRules()
        self.max_active = max_active

    # -------------------------------------------------
    # Registry
    # -------------------------------------------------

    async def create(
        self,
        game_slug: str,
        creator_device_id: str,
        map_data: Optional[dict[str, Any]] = None,
        is_private: bool = False,
    ) -> Battle:
        # Raises: ValidationError, CapacityExceeded
        map_data = map_data or {}
        parse_placements(map_data)
        battle_id = new_battle_id()
        battle = await self.battles.create_battle(
            game_slug,
            battle_id,
            creator_device_id,
            display_name=battle_display_name(battle_id),
            map_data=map_data,
            is_private=is_private,
            max_active=self.max_active,
        )
        await self._bump_counters(game_slug, {creator_device_id: {"total_battles": 1}})
        return battle

    async def get(self, game_slug: str, battle_id: str) -> Battle:
        return await self.battles.get_battle(game_slug, battle_id)

    async def describe(self, battle: Battle) -> dict:
        """Battle plus participant names and the winner's player index."""
        info = await self.identities.get_player_info(
            battle["game_slug"], [battle["player1_device_id"], battle.get("player2_device_id")]
        )
        out = dict(battle)
        out["winner"] = winner_index(battle)
        out["player1"] = info.get(battle["player1_device_id"])
        out["player2"] = info.get(battle["player2_device_id"]) if battle.get("player2_device_id") else None
        return out

    async def list_public(
        self,
        game_slug: str,
        *,
        limit: int = 20,
        cursor: Optional[str] = None,
        caller_device_id: Optional[str] = None,
    ) -> dict:
        # Raises: ValidationError
        page = await self.battles.list_battles(game_slug, limit=limit, cursor=cursor)
        ids = []
        for b in page["battles"]:
            ids += [b["player1_device_id"], b["player2_device_id"]]
        info = await self.identities.get_player_info(game_slug, ids)

        summaries = []
        for b in page["battles"]:
            summaries.append({
                "battle_id": b["battle_id"],
                "display_name": b["display_name"],
                "status": b["status"],
                "current_turn": b["current_turn"],
                "player1": info.get(b["player1_device_id"]),
                "player2": info.get(b["player2_device_id"]) if b["player2_device_id"] else None,
                "winner": winner_index(b),
                "end_reason": b["end_reason"],
                "created_at": b["created_at"],
                "updated_at": b["updated_at"],
            })
        result = {
            "battles": summaries,
            "next_cursor": page["next_cursor"],
            "total": page["total"],
            "counts": page["counts"],
        }
        if caller_device_id:
            result["my_active_count"] = await self.battles.count_active_for(game_slug, caller_device_id)
            result["max_active"] = self.max_active
        return result

    # -------------------------------------------------
    # Transitions
    # -------------------------------------------------

    async def join(self, game_slug: str, battle_id: str, device_id: str) -> Battle:
        # Raises: BattleNotFound, InvalidState, SelfJoin, CapacityExceeded, Conflict, ValidationError
        battle = await self.battles.get_battle(game_slug, battle_id)
        if battle["status"] != "pending":
            raise InvalidState(f"Battle {battle_id} is {battle['status']}, not open for joining")
        if battle["player1_device_id"] == device_id:
            raise SelfJoin("Cannot join your own battle")

        initial = derive_initial_state(battle["map_data"], battle["player1_device_id"], device_id)
        battle = await self.battles.activate_battle(
            game_slug, battle_id, device_id, initial_state=initial, max_active=self.max_active
        )
        logger.info(
            f"[BATTLE] {battle_id} active: {len(initial['units'])} units, "
            f"{len(initial['blocked_tiles'])} blocked tiles"
        )
        await self._bump_counters(game_slug, {device_id: {"total_battles": 1}})
        return battle

    async def submit_turn(
        self,
        game_slug: str,
        battle_id: str,
        device_id: str,
        actions: list[dict[str, Any]],
        *,
        game_state: Optional[dict[str, Any]] = None,
        game_over: Optional[dict[str, Any]] = None,
        expected_turn: Optional[int] = None,
    ) -> tuple[Battle, dict]:
        """Accept the next turn from the player to move.

        Returns the updated battle and the stored turn.

        Raises:
            BattleNotFound, InvalidState, NotParticipant, OutOfTurn, Conflict
        """
        battle = await self.battles.get_battle(game_slug, battle_id)
        if battle["status"] != "active":
            raise InvalidState(f"Battle {battle_id} is {battle['status']}, not active")
        index = player_index(battle, device_id)
        if index is None:
            raise NotParticipant("You are not a participant in this battle")
        if index != battle["current_player_index"]:
            raise OutOfTurn("It is not your turn")
        if expected_turn is not None and expected_turn != battle["current_turn"]:
            raise Conflict(
                f"Battle is at turn {battle['current_turn']}, client expected {expected_turn}"
            )

        resolution = self.rules.resolve(battle, device_id, actions, game_over)
        notes = list(resolution.get("validation_errors") or [])
        turn = {
            "turn_id": secrets.token_hex(8),
            "device_id": device_id,
            "turn_number": battle["current_turn"] + 1,
            "actions": actions,
            "game_state": game_state or {},
            "is_valid": not notes,
            "validation_errors": notes,
        }
        end_reason = resolution.get("end_reason")
        winner_id = resolution.get("winner_id")

        updated = await self.battles.append_turn(
            game_slug,
            battle_id,
            turn,
            expected_turn=battle["current_turn"],
            expected_player_index=battle["current_player_index"],
            new_state=resolution["state"],
            winner_id=winner_id,
            end_reason=end_reason,
        )
        turn["timestamp"] = updated["last_turn_at"]

        increments: dict[str, dict[str, int]] = {device_id: {"total_turns": 1}}
        if end_reason:
            for player, delta in outcome_deltas(updated).items():
                for field, n in delta.items():
                    increments.setdefault(player, {})
                    increments[player][field] = increments[player].get(field, 0) + n
            logger.info(f"[BATTLE] {battle_id} completed ({end_reason}), winner={winner_id}")
        await self._bump_counters(game_slug, increments)
        return updated, turn

    async def forfeit(self, game_slug: str, battle_id: str, device_id: str) -> Battle:
        # Raises: BattleNotFound, NotParticipant, InvalidState, Conflict
        battle = await self.battles.get_battle(game_slug, battle_id)
        index = player_index(battle, device_id)
        if index is None:
            raise NotParticipant("You are not a participant in this battle")
        if battle["status"] not in OPEN_STATUSES:
            raise InvalidState(f"Battle {battle_id} is already {battle['status']}")

        if battle["status"] == "pending":
            updated = await self.battles.finish_battle(
                game_slug, battle_id,
                expected_status="pending", expected_turn=battle["current_turn"],
                status="abandoned", winner_id=None, end_reason="cancelled",
            )
            return updated

        winner = battle["player2_device_id"] if index == 0 else battle["player1_device_id"]
        updated = await self.battles.finish_battle(
            game_slug, battle_id,
            expected_status="active", expected_turn=battle["current_turn"],
            status="completed", winner_id=winner, end_reason="forfeit",
        )
        logger.info(f"[BATTLE] {battle_id} forfeited by {device_id}; winner {winner}")
        await self._bump_counters(game_slug, {winner: {"wins": 1}, device_id: {"losses": 1}})
        return updated

    # -------------------------------------------------
    # Poll
    # -------------------------------------------------

    async def poll(self, game_slug: str, battle_id: str, last_known_turn: int = 0) -> dict:
        # Raises: BattleNotFound, ValidationError
        if last_known_turn < 0:
            raise ValidationError("last_known_turn must not be negative")
        battle = await self.battles.get_battle(game_slug, battle_id)
        turns = []
        if battle["current_turn"] > last_known_turn:
            turns = await self.battles.get_turns_since(game_slug, battle_id, last_known_turn)
            # turns committed after the battle row was read belong to the next poll
            turns = [t for t in turns if t["turn_number"] <= battle["current_turn"]]
        return {
            "battle_id": battle["battle_id"],
            "status": battle["status"],
            "current_turn": battle["current_turn"],
            "current_player_index": battle["current_player_index"],
            "current_state": battle["current_state"],
            "winner_id": battle["winner_id"],
            "winner": winner_index(battle),
            "end_reason": battle["end_reason"],
            "player2_device_id": battle["player2_device_id"],
            "last_turn_at": battle["last_turn_at"],
            "updated_at": battle["updated_at"],
            "has_new_turns": bool(turns),
            "new_turns": turns,
        }

    # -------------------------------------------------
    # Counters
    # -------------------------------------------------

    async def _bump_counters(self, game_slug: str, increments: dict[str, dict[str, int]]) -> None:
        try:
            await self.identities.increment_counters(game_slug, increments)
        except Exception as e:
            # the battle transition is already committed
            logger.error(f"[BATTLE] Counter update failed for {game_slug}: {increments}: {e}", exc_info=True)
