import json
import logging
import sqlite3
from typing import Iterable, Optional

import aiosqlite

from db import Database
from models.domain_models import CAPABILITIES, Game, Identity
from utils.time import now_iso
from utils.validation import is_valid_slug

from .exceptions import (
    Conflict,
    GameNotFound,
    IdentityNotFound,
    ValidationError,
)
from .identity_store import COUNTER_FIELDS, IdentityStore

logger = logging.getLogger(__name__)

UNKNOWN_PLAYER = "Unknown Player"
DEFAULT_AVATAR = "BIRD1"


def _identity_from_row(r: aiosqlite.Row) -> Identity:
    return {
        "device_id": r["device_id"],
        "display_name": r["display_name"],
        "avatar": r["avatar"],
        "is_active": bool(r["is_active"]),
        "created_at": r["created_at"],
        "last_seen": r["last_seen"],
        "wins": r["wins"],
        "losses": r["losses"],
        "draws": r["draws"],
        "total_turns": r["total_turns"],
        "total_battles": r["total_battles"],
    }


def _game_from_row(r: aiosqlite.Row) -> Game:
    return {
        "slug": r["slug"],
        "name": r["name"],
        "capabilities": json.loads(r["capabilities"]),
        "active": bool(r["active"]),
    }


class SqliteIdentityStore(IdentityStore):
    """SQLite-based implementation of IdentityStore."""

    def __init__(self, database: Database):
        self.database = database

    # -------------------------------------------------
    # Game catalog
    # -------------------------------------------------

    async def create_game(
        self,
        slug: str,
        name: str,
        capabilities: Iterable[str],
        *,
        active: bool = True,
    ) -> Game:
        # Raises: ValidationError, Conflict
        slug = (slug or "").strip().lower()
        if not is_valid_slug(slug):
            raise ValidationError(f"Invalid game slug {slug!r}")
        caps = sorted(set(capabilities))
        unknown = [c for c in caps if c not in CAPABILITIES]
        if not caps or unknown:
            raise ValidationError(f"Game must have at least one of {list(CAPABILITIES)}; got {caps}")

        try:
            async with self.database.transaction() as db:
                await db.execute(
                    "INSERT INTO games (slug, name, capabilities, active, created_at) VALUES (?, ?, ?, ?, ?)",
                    (slug, name, json.dumps(caps), int(active), now_iso()),
                )
        except sqlite3.IntegrityError as exc:
            raise Conflict(f"Game {slug} already exists") from exc

        logger.info(f"[STORE] Created game {slug} with capabilities {caps}")
        return {"slug": slug, "name": name, "capabilities": caps, "active": active}

    async def list_games(self) -> list[Game]:
        async with self.database.reader() as db:
            cur = await db.execute(
                "SELECT slug, name, capabilities, active FROM games WHERE active = 1 ORDER BY slug"
            )
            rows = await cur.fetchall()
        return [_game_from_row(r) for r in rows]

    async def get_game(self, slug: str) -> Game:
        # Raises: GameNotFound
        slug = (slug or "").lower()
        async with self.database.reader() as db:
            cur = await db.execute(
                "SELECT slug, name, capabilities, active FROM games WHERE slug = ? AND active = 1",
                (slug,),
            )
            row = await cur.fetchone()
        if row is None:
            raise GameNotFound(f"Game {slug} not found or inactive")
        return _game_from_row(row)

    # -------------------------------------------------
    # Identities
    # -------------------------------------------------

    async def register_identity(
        self,
        game_slug: str,
        device_id: str,
        token_hash: str,
        *,
        display_name: str = "Unnamed Player",
        avatar: str = DEFAULT_AVATAR,
    ) -> Identity:
        # Raises: GameNotFound
        now = now_iso()
        async with self.database.transaction() as db:
            cur = await db.execute("SELECT 1 FROM games WHERE slug = ?", (game_slug,))
            if await cur.fetchone() is None:
                raise GameNotFound(f"Game {game_slug} not found")

            await db.execute(
                """
                INSERT INTO game_identities (
                    game_slug, device_id, token_hash, display_name, avatar, created_at, last_seen
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (game_slug, device_id) DO UPDATE SET
                    token_hash = excluded.token_hash,
                    display_name = excluded.display_name,
                    avatar = excluded.avatar,
                    is_active = 1,
                    last_seen = excluded.last_seen
                """,
                (game_slug, device_id, token_hash, display_name, avatar, now, now),
            )
            cur = await db.execute(
                "SELECT * FROM game_identities WHERE game_slug = ? AND device_id = ?",
                (game_slug, device_id),
            )
            row = await cur.fetchone()
        return _identity_from_row(row)

    async def resolve_token(self, game_slug: str, token_hash: str) -> Optional[dict]:
        # Raises: None
        async with self.database.transaction() as db:
            cur = await db.execute(
                """
                SELECT id, device_id, display_name FROM game_identities
                WHERE game_slug = ? AND token_hash = ? AND is_active = 1
                """,
                (game_slug, token_hash),
            )
            row = await cur.fetchone()
            if row is None:
                return None
            await db.execute(
                "UPDATE game_identities SET last_seen = ? WHERE id = ?",
                (now_iso(), row["id"]),
            )
        return {"device_id": row["device_id"], "display_name": row["display_name"]}

    async def get_identity(self, game_slug: str, device_id: str) -> Identity:
        # Raises: IdentityNotFound
        async with self.database.reader() as db:
            cur = await db.execute(
                "SELECT * FROM game_identities WHERE game_slug = ? AND device_id = ?",
                (game_slug, device_id),
            )
            row = await cur.fetchone()
        if row is None:
            raise IdentityNotFound(f"No identity for {device_id} in {game_slug}")
        return _identity_from_row(row)

    async def get_player_info(self, game_slug: str, device_ids: Iterable[Optional[str]]) -> dict[str, dict]:
        # Raises: None
        ids = sorted({d for d in device_ids if d})
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        async with self.database.reader() as db:
            cur = await db.execute(
                f"""
                SELECT device_id, display_name, avatar FROM game_identities
                WHERE game_slug = ? AND device_id IN ({placeholders})
                """,
                (game_slug, *ids),
            )
            rows = await cur.fetchall()
        found = {r["device_id"]: r for r in rows}
        return {
            d: {
                "display_name": (found[d]["display_name"] if d in found else None) or UNKNOWN_PLAYER,
                "avatar": (found[d]["avatar"] if d in found else None) or DEFAULT_AVATAR,
            }
            for d in ids
        }

    # -------------------------------------------------
    # Counters
    # -------------------------------------------------

    async def increment_counters(self, game_slug: str, increments: dict[str, dict[str, int]]) -> None:
        # Raises: ValidationError
        for fields in increments.values():
            unknown = set(fields) - set(COUNTER_FIELDS)
            if unknown:
                raise ValidationError(f"Unknown counters: {sorted(unknown)}")

        async with self.database.transaction() as db:
            for device_id, fields in increments.items():
                if not fields:
                    continue
                # column names come from COUNTER_FIELDS only
                assignments = ", ".join(f"{f} = {f} + ?" for f in fields)
                await db.execute(
                    f"UPDATE game_identities SET {assignments} WHERE game_slug = ? AND device_id = ?",
                    (*fields.values(), game_slug, device_id),
                )

    async def replace_counters(self, game_slug: str, counters: dict[str, dict[str, int]]) -> int:
        # Raises: None
        zeroes = ", ".join(f"{f} = 0" for f in COUNTER_FIELDS)
        assignments = ", ".join(f"{f} = ?" for f in COUNTER_FIELDS)
        written = 0
        async with self.database.transaction() as db:
            await db.execute(f"UPDATE game_identities SET {zeroes} WHERE game_slug = ?", (game_slug,))
            for device_id, values in counters.items():
                cur = await db.execute(
                    f"UPDATE game_identities SET {assignments} WHERE game_slug = ? AND device_id = ?",
                    (*(int(values.get(f, 0)) for f in COUNTER_FIELDS), game_slug, device_id),
                )
                written += cur.rowcount
        logger.info(f"[STORE] Replaced counters for {written} identities in {game_slug}")
        return written
