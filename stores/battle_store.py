from abc import ABC, abstractmethod
from typing import Any, Optional

from models.domain_models import Battle, CurrentState, EndReason, Turn


# =========================
# BattleStore Interface
# =========================

class BattleStore(ABC):
    """
    Persistence for battles and their turn logs.

    Every state-changing method is a single conditional write: the row is
    updated only if it still matches the caller's expected pre-state, and
    `Conflict` is raised otherwise. Callers validate business rules against
    a snapshot from `get_battle` and then commit through these methods, so
    a stale snapshot can never overwrite a newer transition.

    Invariants:
    - `player2_device_id` is NULL iff status is pending (abandoned excepted)
    - Turn numbers per battle are 1..current_turn with no gaps
    - Terminal battles (completed/abandoned) are never transitioned again
    """

    # -------------------------------------------------
    # Registry
    # -------------------------------------------------

    @abstractmethod
    async def create_battle(
        self,
        game_slug: str,
        battle_id: str,
        creator_device_id: str,
        *,
        display_name: str,
        map_data: dict[str, Any],
        is_private: bool,
        max_active: int,
    ) -> Battle:
        """Insert a pending battle.

        The cap check and the insert share one transaction.

        Raises:
            CapacityExceeded: If the creator already has `max_active` open battles.
        """

    @abstractmethod
    async def get_battle(self, game_slug: str, battle_id: str) -> Battle:
        """Raises BattleNotFound."""

    @abstractmethod
    async def count_active_for(self, game_slug: str, device_id: str) -> int:
        """Battles in pending/active where the device is either participant."""

    @abstractmethod
    async def list_battles(
        self,
        game_slug: str,
        *,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> dict:
        """Public listing, newest first. Private and abandoned battles are excluded.

        Returns:
            {"battles": [...], "next_cursor": str | None,
             "total": int, "counts": {"pending": n, "active": n, "completed": n}}

        Raises:
            ValidationError: If `limit` is out of range or `cursor` is malformed.
        """

    # -------------------------------------------------
    # Transitions
    # -------------------------------------------------

    @abstractmethod
    async def activate_battle(
        self,
        game_slug: str,
        battle_id: str,
        joining_device_id: str,
        *,
        initial_state: CurrentState,
        max_active: int,
    ) -> Battle:
        """Claim the second seat of a pending battle.

        Raises:
            CapacityExceeded: If the joiner already has `max_active` open battles.
            Conflict: If the battle is no longer pending or the seat is taken.
        """

    @abstractmethod
    async def append_turn(
        self,
        game_slug: str,
        battle_id: str,
        turn: Turn,
        *,
        expected_turn: int,
        expected_player_index: int,
        new_state: CurrentState,
        winner_id: Optional[str] = None,
        end_reason: Optional[EndReason] = None,
    ) -> Battle:
        """Record turn `expected_turn + 1` and advance the battle.

        With an `end_reason` the battle moves to completed in the same write.

        Raises:
            Conflict: If the battle is no longer active at `expected_turn`
                with `expected_player_index` to move.
        """

    @abstractmethod
    async def finish_battle(
        self,
        game_slug: str,
        battle_id: str,
        *,
        expected_status: str,
        expected_turn: int,
        status: str,
        winner_id: Optional[str],
        end_reason: EndReason,
    ) -> Battle:
        """Move an open battle to a terminal status.

        Raises:
            Conflict: If the battle changed since the caller's snapshot.
        """

    # -------------------------------------------------
    # Turn log
    # -------------------------------------------------

    @abstractmethod
    async def get_turns_since(self, game_slug: str, battle_id: str, after_turn: int) -> list[Turn]:
        """Turns with turn_number > after_turn, ascending."""

    # -------------------------------------------------
    # History (stats and reconciliation)
    # -------------------------------------------------

    @abstractmethod
    async def outcome_rows(self, game_slug: str, device_id: Optional[str] = None) -> list[dict]:
        """{player1_device_id, player2_device_id, status, winner_id, end_reason} per battle."""

    @abstractmethod
    async def turn_counts(self, game_slug: str) -> dict[str, int]:
        """device_id -> number of accepted turns."""

    # -------------------------------------------------
    # Administration
    # -------------------------------------------------

    @abstractmethod
    async def delete_battle(self, game_slug: str, battle_id: str) -> None:
        """Delete a battle and its turns. Raises BattleNotFound."""

    @abstractmethod
    async def reset_open_battles(self, game_slug: str) -> int:
        """Abandon every pending/active battle of the game. Returns the count."""

    @abstractmethod
    async def abandon_stale_pending(self, older_than: str, game_slug: Optional[str] = None) -> int:
        """Abandon pending battles created before `older_than` (ISO timestamp)."""
