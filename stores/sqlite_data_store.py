import json
import logging
from typing import Any, Optional

import aiosqlite

import config
from db import Database
from models.domain_models import DATA_SCOPES, DataRecord
from utils.auth import UnauthorizedException
from utils.cursors import decode_cursor, encode_cursor
from utils.time import now_iso
from utils.validation import encode_json_limited, sanitize_json, validate_key, validate_limit

from .data_store import ScopedDataStore
from .exceptions import DataNotFound, NotOwner, ValidationError

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 1000
CURSOR_FIELD = "rid"
NAMESPACE_SEP = ":"


def storage_key(key: str, scope: str, owner_id: Optional[str]) -> str:
    if scope == "player" and owner_id:
        return f"{owner_id}{NAMESPACE_SEP}{key}"
    return key


def logical_key(r: aiosqlite.Row) -> str:
    stored = r["storage_key"]
    owner = r["owner_id"]
    if r["scope"] == "player" and owner and stored.startswith(owner + NAMESPACE_SEP):
        return stored[len(owner) + 1:]
    return stored


def _record_from_row(r: aiosqlite.Row) -> DataRecord:
    return {
        "key": logical_key(r),
        "value": json.loads(r["value"]),
        "scope": r["scope"],
        "owner_id": r["owner_id"],
        "owner_display_name": r["owner_display_name"],
        "created_at": r["created_at"],
        "updated_at": r["updated_at"],
    }


def _clean_key(key: str) -> str:
    try:
        return validate_key(key)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _check_scope(scope: str) -> None:
    if scope not in DATA_SCOPES:
        raise ValidationError(f"scope must be one of {list(DATA_SCOPES)}")


class SqliteDataStore(ScopedDataStore):
    """SQLite-based implementation of ScopedDataStore."""

    def __init__(self, database: Database, *, max_value_bytes: int = config.MAX_DATA_VALUE_BYTES):
        self.database = database
        self.max_value_bytes = max_value_bytes

    async def put(
        self,
        game_slug: str,
        key: str,
        value: dict[str, Any],
        scope: str = "global",
        caller: Optional[dict] = None,
    ) -> tuple[DataRecord, bool]:
        # Raises: ValidationError, UnauthorizedException, NotOwner
        key = _clean_key(key)
        _check_scope(scope)
        if not isinstance(value, dict):
            raise ValidationError("value must be a JSON object")
        try:
            encoded = encode_json_limited(sanitize_json(value), self.max_value_bytes)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        owner_id = owner_name = None
        if scope in ("player", "public"):
            if caller is None:
                raise UnauthorizedException(f"Authentication required for {scope} data")
            owner_id = caller["device_id"]
            owner_name = caller.get("display_name")
        stored = storage_key(key, scope, owner_id)
        now = now_iso()

        async with self.database.transaction() as db:
            cur = await db.execute(
                "SELECT scope, owner_id FROM data_records WHERE game_slug = ? AND storage_key = ?",
                (game_slug, stored),
            )
            existing = await cur.fetchone()
            if existing is not None and existing["scope"] in ("player", "public"):
                if caller is None or existing["owner_id"] != caller["device_id"]:
                    raise NotOwner(f"Key {key!r} belongs to another player")

            await db.execute(
                """
                INSERT INTO data_records (
                    game_slug, storage_key, value, scope, owner_id, owner_display_name,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (game_slug, storage_key) DO UPDATE SET
                    value = excluded.value,
                    scope = excluded.scope,
                    owner_id = excluded.owner_id,
                    owner_display_name = excluded.owner_display_name,
                    updated_at = excluded.updated_at
                """,
                (game_slug, stored, encoded, scope, owner_id, owner_name, now, now),
            )
            cur = await db.execute(
                "SELECT * FROM data_records WHERE game_slug = ? AND storage_key = ?",
                (game_slug, stored),
            )
            row = await cur.fetchone()

        created = existing is None
        logger.info(f"[DATA] {'Created' if created else 'Updated'} {scope} key {key!r} in {game_slug}")
        return _record_from_row(row), created

    async def get(
        self,
        game_slug: str,
        key: str,
        scope: Optional[str] = None,
        caller: Optional[dict] = None,
    ) -> DataRecord:
        # Raises: ValidationError, DataNotFound
        key = _clean_key(key)
        if scope is not None:
            _check_scope(scope)

        # an explicit scope names exactly one storage key; unscoped reads try
        # the shared key first, then the caller's own namespace
        if scope == "player":
            if caller is None:
                raise DataNotFound(f"Key {key!r} not found in scope player")
            candidates = [storage_key(key, "player", caller["device_id"])]
        elif scope is not None:
            candidates = [key]
        else:
            candidates = [key]
            if caller is not None:
                candidates.append(storage_key(key, "player", caller["device_id"]))

        async with self.database.reader() as db:
            row = None
            for stored in candidates:
                cur = await db.execute(
                    "SELECT * FROM data_records WHERE game_slug = ? AND storage_key = ?",
                    (game_slug, stored),
                )
                row = await cur.fetchone()
                if row is not None:
                    break

        # invisible records look exactly like missing ones
        if row is None:
            raise DataNotFound(f"Key {key!r} not found")
        if row["scope"] == "player" and (caller is None or row["owner_id"] != caller["device_id"]):
            raise DataNotFound(f"Key {key!r} not found")
        if scope is not None and row["scope"] != scope:
            raise DataNotFound(f"Key {key!r} not found in scope {scope}")
        return _record_from_row(row)

    async def list(
        self,
        game_slug: str,
        *,
        prefix: str = "",
        limit: int = 100,
        cursor: Optional[str] = None,
        scope: Optional[str] = None,
        caller: Optional[dict] = None,
    ) -> dict:
        # Raises: ValidationError, UnauthorizedException
        try:
            validate_limit(limit, maximum=MAX_LIST_LIMIT)
            after_id = decode_cursor(cursor, CURSOR_FIELD) if cursor else None
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if scope is not None:
            _check_scope(scope)
        if scope == "player" and caller is None:
            raise UnauthorizedException("Authentication required to list player-scoped data")

        prefix = prefix or ""
        shared_clause = "(scope = ? AND substr(storage_key, 1, ?) = ?)"
        player_clause = "(scope = 'player' AND owner_id = ? AND substr(storage_key, 1, ?) = ?)"
        clauses: list[str] = []
        params: list[Any] = [game_slug]

        shared = [scope] if scope in ("global", "public") else ([] if scope == "player" else ["global", "public"])
        for s in shared:
            clauses.append(shared_clause)
            params += [s, len(prefix), prefix]
        if caller is not None and scope in (None, "player"):
            owned_prefix = storage_key(prefix, "player", caller["device_id"])
            clauses.append(player_clause)
            params += [caller["device_id"], len(owned_prefix), owned_prefix]

        sql = f"SELECT * FROM data_records WHERE game_slug = ? AND ({' OR '.join(clauses)})"
        if after_id is not None:
            sql += " AND id > ?"
            params.append(after_id)
        sql += " ORDER BY id ASC LIMIT ?"
        params.append(limit + 1)

        async with self.database.reader() as db:
            cur = await db.execute(sql, params)
            rows = await cur.fetchall()

        has_more = len(rows) > limit
        rows = rows[:limit]
        keys = [
            {
                "key": logical_key(r),
                "scope": r["scope"],
                "owner_id": r["owner_id"],
                "owner_display_name": r["owner_display_name"],
                "updated_at": r["updated_at"],
            }
            for r in rows
        ]
        return {
            "keys": keys,
            "next_cursor": encode_cursor(CURSOR_FIELD, rows[-1]["id"]) if has_more else None,
            "count": len(keys),
        }

    async def delete(self, game_slug: str, key: str, caller: dict) -> str:
        # Raises: ValidationError, DataNotFound, NotOwner
        key = _clean_key(key)
        candidates = [key, storage_key(key, "player", caller["device_id"])]

        async with self.database.transaction() as db:
            row = None
            for stored in candidates:
                cur = await db.execute(
                    "SELECT * FROM data_records WHERE game_slug = ? AND storage_key = ?",
                    (game_slug, stored),
                )
                row = await cur.fetchone()
                if row is not None:
                    break
            if row is None:
                raise DataNotFound(f"Key {key!r} not found")
            if row["scope"] in ("player", "public") and row["owner_id"] != caller["device_id"]:
                if row["scope"] == "player":
                    raise DataNotFound(f"Key {key!r} not found")
                raise NotOwner("Only the owner can delete this data")
            await db.execute("DELETE FROM data_records WHERE id = ?", (row["id"],))

        logger.info(f"[DATA] Deleted {row['scope']} key {key!r} in {game_slug}")
        return logical_key(row)
