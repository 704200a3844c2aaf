import json
import logging
from typing import Any, Optional

import aiosqlite

from db import Database
from models.domain_models import Battle, CurrentState, EndReason, Turn
from utils.cursors import decode_cursor, encode_cursor
from utils.time import now_iso
from utils.validation import validate_limit

from .battle_store import BattleStore
from .exceptions import (
    BattleNotFound,
    CapacityExceeded,
    Conflict,
    UnexpectedResult,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 50
CURSOR_FIELD = "bid"

_OPEN_SQL = "status IN ('pending', 'active')"


def _battle_from_row(r: aiosqlite.Row) -> Battle:
    return {
        "game_slug": r["game_slug"],
        "battle_id": r["battle_id"],
        "display_name": r["display_name"],
        "player1_device_id": r["player1_device_id"],
        "player2_device_id": r["player2_device_id"],
        "status": r["status"],
        "current_turn": r["current_turn"],
        "current_player_index": r["current_player_index"],
        "winner_id": r["winner_id"],
        "end_reason": r["end_reason"],
        "map_data": json.loads(r["map_data"]),
        "current_state": json.loads(r["current_state"]),
        "is_private": bool(r["is_private"]),
        "last_turn_at": r["last_turn_at"],
        "created_at": r["created_at"],
        "updated_at": r["updated_at"],
    }


def _turn_from_row(r: aiosqlite.Row) -> Turn:
    return {
        "turn_id": r["turn_id"],
        "device_id": r["device_id"],
        "turn_number": r["turn_number"],
        "actions": json.loads(r["actions"]),
        "game_state": json.loads(r["game_state"]),
        "is_valid": bool(r["is_valid"]),
        "validation_errors": json.loads(r["validation_errors"]),
        "timestamp": r["timestamp"],
    }


async def _count_open(db: aiosqlite.Connection, game_slug: str, device_id: str) -> int:
    cur = await db.execute(
        f"""
        SELECT COUNT(*) FROM battles
        WHERE game_slug = ? AND {_OPEN_SQL}
          AND (player1_device_id = ? OR player2_device_id = ?)
        """,
        (game_slug, device_id, device_id),
    )
    (count,) = await cur.fetchone()
    return count


async def _fetch_battle(db: aiosqlite.Connection, game_slug: str, battle_id: str) -> Battle:
    cur = await db.execute(
        "SELECT * FROM battles WHERE game_slug = ? AND battle_id = ?",
        (game_slug, battle_id),
    )
    row = await cur.fetchone()
    if row is None:
        raise BattleNotFound(f"Battle {battle_id} not found in {game_slug}")
    return _battle_from_row(row)


class SqliteBattleStore(BattleStore):
    """SQLite-based implementation of BattleStore."""

    def __init__(self, database: Database):
        self.database = database

    # -------------------------------------------------
    # Registry
    # -------------------------------------------------

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
        # Raises: CapacityExceeded
        now = now_iso()
        async with self.database.transaction() as db:
            active = await _count_open(db, game_slug, creator_device_id)
            if active >= max_active:
                raise CapacityExceeded(
                    f"Maximum {max_active} active battles allowed; {creator_device_id} has {active}"
                )
            await db.execute(
                """
                INSERT INTO battles (
                    game_slug, battle_id, display_name, player1_device_id, status,
                    map_data, is_private, created_at, updated_at
                ) VALUES (?, ?, ?, ?, 'pending', ?, ?, ?, ?)
                """,
                (
                    game_slug, battle_id, display_name, creator_device_id,
                    json.dumps(map_data), int(is_private), now, now,
                ),
            )
            battle = await _fetch_battle(db, game_slug, battle_id)
        logger.info(f"[STORE] Battle {battle_id} created in {game_slug} by {creator_device_id}")
        return battle

    async def get_battle(self, game_slug: str, battle_id: str) -> Battle:
        # Raises: BattleNotFound
        async with self.database.reader() as db:
            return await _fetch_battle(db, game_slug, battle_id)

    async def count_active_for(self, game_slug: str, device_id: str) -> int:
        async with self.database.reader() as db:
            return await _count_open(db, game_slug, device_id)

    async def list_battles(
        self,
        game_slug: str,
        *,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> dict:
        # Raises: ValidationError
        try:
            validate_limit(limit, maximum=MAX_LIST_LIMIT)
            before_id = decode_cursor(cursor, CURSOR_FIELD) if cursor else None
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        visible = "game_slug = ? AND is_private = 0 AND status != 'abandoned'"
        params: list[Any] = [game_slug]
        page_sql = f"SELECT * FROM battles WHERE {visible}"
        if before_id is not None:
            page_sql += " AND id < ?"
            params.append(before_id)
        page_sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit + 1)

        async with self.database.reader() as db:
            cur = await db.execute(page_sql, params)
            rows = await cur.fetchall()
            cur = await db.execute(
                f"SELECT status, COUNT(*) AS n FROM battles WHERE {visible} GROUP BY status",
                (game_slug,),
            )
            count_rows = await cur.fetchall()

        has_more = len(rows) > limit
        rows = rows[:limit]
        counts = {"pending": 0, "active": 0, "completed": 0}
        for r in count_rows:
            counts[r["status"]] = r["n"]
        return {
            "battles": [_battle_from_row(r) for r in rows],
            "next_cursor": encode_cursor(CURSOR_FIELD, rows[-1]["id"]) if has_more else None,
            "total": sum(counts.values()),
            "counts": counts,
        }

    # -------------------------------------------------
    # Transitions
    # -------------------------------------------------

    async def activate_battle(
        self,
        game_slug: str,
        battle_id: str,
        joining_device_id: str,
        *,
        initial_state: CurrentState,
        max_active: int,
    ) -> Battle:
        # Raises: CapacityExceeded, Conflict
        now = now_iso()
        async with self.database.transaction() as db:
            active = await _count_open(db, game_slug, joining_device_id)
            if active >= max_active:
                raise CapacityExceeded(
                    f"Maximum {max_active} active battles allowed; {joining_device_id} has {active}"
                )
            cur = await db.execute(
                """
                UPDATE battles
                SET player2_device_id = ?, status = 'active', current_state = ?,
                    last_turn_at = ?, updated_at = ?
                WHERE game_slug = ? AND battle_id = ?
                  AND status = 'pending' AND player2_device_id IS NULL
                  AND player1_device_id != ?
                """,
                (
                    joining_device_id, json.dumps(initial_state), now, now,
                    game_slug, battle_id, joining_device_id,
                ),
            )
            if cur.rowcount == 0:
                raise Conflict(f"Battle {battle_id} is no longer open for joining")
            battle = await _fetch_battle(db, game_slug, battle_id)
        logger.info(f"[STORE] Battle {battle_id} activated; player2={joining_device_id}")
        return battle

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
        # Raises: Conflict, UnexpectedResult
        now = now_iso()
        status = "completed" if end_reason else "active"
        async with self.database.transaction() as db:
            cur = await db.execute(
                """
                UPDATE battles
                SET current_turn = current_turn + 1,
                    current_player_index = 1 - current_player_index,
                    current_state = ?, status = ?, winner_id = ?, end_reason = ?,
                    last_turn_at = ?, updated_at = ?
                WHERE game_slug = ? AND battle_id = ? AND status = 'active'
                  AND current_turn = ? AND current_player_index = ?
                """,
                (
                    json.dumps(new_state), status, winner_id, end_reason, now, now,
                    game_slug, battle_id, expected_turn, expected_player_index,
                ),
            )
            if cur.rowcount == 0:
                raise Conflict(
                    f"Battle {battle_id} moved past turn {expected_turn}; re-fetch and retry"
                )
            cur = await db.execute(
                """
                INSERT INTO battle_turns (
                    battle_pk, turn_id, device_id, turn_number, actions, game_state,
                    is_valid, validation_errors, timestamp
                )
                SELECT id, ?, ?, ?, ?, ?, ?, ?, ? FROM battles
                WHERE game_slug = ? AND battle_id = ?
                """,
                (
                    turn["turn_id"], turn["device_id"], expected_turn + 1,
                    json.dumps(turn.get("actions", [])),
                    json.dumps(turn.get("game_state", {})),
                    int(turn.get("is_valid", True)),
                    json.dumps(turn.get("validation_errors", [])),
                    now, game_slug, battle_id,
                ),
            )
            if cur.rowcount != 1:
                raise UnexpectedResult(f"Turn insert for battle {battle_id} wrote {cur.rowcount} rows")
            battle = await _fetch_battle(db, game_slug, battle_id)
        logger.info(
            f"[STORE] Battle {battle_id} turn {expected_turn + 1} by {turn['device_id']}"
            + (f" ended ({end_reason})" if end_reason else "")
        )
        return battle

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
        # Raises: Conflict
        now = now_iso()
        async with self.database.transaction() as db:
            cur = await db.execute(
                """
                UPDATE battles
                SET status = ?, winner_id = ?, end_reason = ?, updated_at = ?
                WHERE game_slug = ? AND battle_id = ? AND status = ? AND current_turn = ?
                """,
                (
                    status, winner_id, end_reason, now,
                    game_slug, battle_id, expected_status, expected_turn,
                ),
            )
            if cur.rowcount == 0:
                raise Conflict(f"Battle {battle_id} changed state; re-fetch and retry")
            battle = await _fetch_battle(db, game_slug, battle_id)
        logger.info(f"[STORE] Battle {battle_id} -> {status} ({end_reason}), winner={winner_id}")
        return battle

    # -------------------------------------------------
    # Turn log
    # -------------------------------------------------

    async def get_turns_since(self, game_slug: str, battle_id: str, after_turn: int) -> list[Turn]:
        async with self.database.reader() as db:
            cur = await db.execute(
                """
                SELECT t.* FROM battle_turns t
                JOIN battles b ON b.id = t.battle_pk
                WHERE b.game_slug = ? AND b.battle_id = ? AND t.turn_number > ?
                ORDER BY t.turn_number ASC
                """,
                (game_slug, battle_id, after_turn),
            )
            rows = await cur.fetchall()
        return [_turn_from_row(r) for r in rows]

    # -------------------------------------------------
    # History
    # -------------------------------------------------

    async def outcome_rows(self, game_slug: str, device_id: Optional[str] = None) -> list[dict]:
        sql = """
            SELECT player1_device_id, player2_device_id, status, winner_id, end_reason
            FROM battles WHERE game_slug = ?
        """
        params: list[Any] = [game_slug]
        if device_id is not None:
            sql += " AND (player1_device_id = ? OR player2_device_id = ?)"
            params += [device_id, device_id]
        async with self.database.reader() as db:
            cur = await db.execute(sql, params)
            rows = await cur.fetchall()
        return [dict(r) for r in rows]

    async def turn_counts(self, game_slug: str) -> dict[str, int]:
        async with self.database.reader() as db:
            cur = await db.execute(
                """
                SELECT t.device_id, COUNT(*) AS n FROM battle_turns t
                JOIN battles b ON b.id = t.battle_pk
                WHERE b.game_slug = ?
                GROUP BY t.device_id
                """,
                (game_slug,),
            )
            rows = await cur.fetchall()
        return {r["device_id"]: r["n"] for r in rows}

    # -------------------------------------------------
    # Administration
    # -------------------------------------------------

    async def delete_battle(self, game_slug: str, battle_id: str) -> None:
        # Raises: BattleNotFound
        async with self.database.transaction() as db:
            cur = await db.execute(
                "DELETE FROM battles WHERE game_slug = ? AND battle_id = ?",
                (game_slug, battle_id),
            )
            if cur.rowcount == 0:
                raise BattleNotFound(f"Battle {battle_id} not found in {game_slug}")
        logger.warning(f"[STORE] Battle {battle_id} deleted from {game_slug}")

    async def reset_open_battles(self, game_slug: str) -> int:
        async with self.database.transaction() as db:
            cur = await db.execute(
                f"""
                UPDATE battles SET status = 'abandoned', end_reason = 'cancelled', updated_at = ?
                WHERE game_slug = ? AND {_OPEN_SQL}
                """,
                (now_iso(), game_slug),
            )
            count = cur.rowcount
        logger.warning(f"[STORE] Reset {count} open battles in {game_slug}")
        return count

    async def abandon_stale_pending(self, older_than: str, game_slug: Optional[str] = None) -> int:
        sql = """
            UPDATE battles SET status = 'abandoned', end_reason = 'cancelled', updated_at = ?
            WHERE status = 'pending' AND created_at < ?
        """
        params: list[Any] = [now_iso(), older_than]
        if game_slug is not None:
            sql += " AND game_slug = ?"
            params.append(game_slug)
        async with self.database.transaction() as db:
            cur = await db.execute(sql, params)
            count = cur.rowcount
        if count:
            logger.info(f"[STORE] Abandoned {count} pending battles created before {older_than}")
        return count


