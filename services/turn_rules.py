"""Game rules applied to each accepted turn.

The battle state machine owns ordering and lifecycle; what a turn does to
the board, and whether it ends the match, is decided by a `TurnRules`
implementation injected into it. `DefaultTurnRules` covers the common
move/attack vocabulary and trusts the client's game-over claim.
"""
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from models.domain_models import Battle, CurrentState, TurnResolution

logger = logging.getLogger(__name__)


class TurnRules(ABC):

    @abstractmethod
    def resolve(
        self,
        battle: Battle,
        device_id: str,
        actions: list[dict[str, Any]],
        game_over: Optional[dict[str, Any]] = None,
    ) -> TurnResolution:
        """Return the board after `actions` and any terminal outcome.

        Must not mutate `battle`. Problems that should not reject the turn
        go into `validation_errors`; raising rejects the turn outright.
        """


def _opponent(battle: Battle, device_id: str) -> Optional[str]:
    if device_id == battle["player1_device_id"]:
        return battle["player2_device_id"]
    return battle["player1_device_id"]


class DefaultTurnRules(TurnRules):
    """move/attack bookkeeping plus last-player-standing victory."""

    def resolve(self, battle, device_id, actions, game_over=None):
        state: CurrentState = copy.deepcopy(battle["current_state"])
        units = {u["unit_id"]: u for u in state.get("units", [])}
        blocked = {(t["x"], t["y"]) for t in state.get("blocked_tiles", [])}
        opponent = _opponent(battle, device_id)
        opponent_had_units = any(u["owner"] == opponent for u in units.values())
        notes: list[str] = []

        for i, action in enumerate(actions):
            kind = action.get("type")
            if kind == "move":
                note = self._move(units, blocked, device_id, action)
            elif kind == "attack":
                note = self._attack(units, device_id, action)
            else:
                note = None
            if note:
                notes.append(f"action {i} ({kind}): {note}")

        state["units"] = [u for u in state.get("units", []) if u["unit_id"] in units]

        winner_id = end_reason = None
        participants = (battle["player1_device_id"], battle["player2_device_id"])
        if game_over:
            if game_over.get("reason") == "draw":
                end_reason = "draw"
            else:
                claimed = game_over.get("winner_id") or device_id
                if claimed in participants:
                    winner_id, end_reason = claimed, "victory"
                else:
                    notes.append(f"game_over: {claimed} is not a participant")
        if end_reason is None and opponent_had_units:
            if not any(u["owner"] == opponent for u in units.values()):
                winner_id, end_reason = device_id, "victory"

        return {
            "state": state,
            "winner_id": winner_id,
            "end_reason": end_reason,
            "validation_errors": notes,
        }

    @staticmethod
    def _own_unit(units: dict, device_id: str, unit_id: Optional[str]):
        unit = units.get(unit_id) if unit_id else None
        if unit is None:
            return None, f"unknown unit {unit_id}"
        if unit["owner"] != device_id:
            return None, f"unit {unit_id} belongs to the opponent"
        return unit, None

    def _move(self, units, blocked, device_id, action) -> Optional[str]:
        unit, note = self._own_unit(units, device_id, action.get("unit_id"))
        if note:
            return note
        to = action.get("to") or {}
        x, y = to.get("x"), to.get("y")
        if x is None or y is None:
            return "missing destination"
        if (x, y) in blocked:
            return f"tile ({x}, {y}) is blocked"
        unit["x"], unit["y"] = x, y
        return None

    def _attack(self, units, device_id, action) -> Optional[str]:
        _, note = self._own_unit(units, device_id, action.get("unit_id"))
        if note:
            return note
        target = units.get(action.get("target_id") or "")
        if target is None:
            return f"unknown target {action.get('target_id')}"
        if target["owner"] == device_id:
            return "cannot attack own unit"
        damage = (action.get("data") or {}).get("damage", 0)
        if not isinstance(damage, int) or isinstance(damage, bool) or damage < 0:
            return f"invalid damage {damage!r}"
        target["hp"] -= damage
        if target["hp"] <= 0:
            del units[target["unit_id"]]
        return None
