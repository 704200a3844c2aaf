import json
import logging
from typing import Any, Optional

import aiosqlite

from db import Database
from models.domain_models import Score
from utils.time import now_iso
from utils.validation import sanitize_json, validate_limit

from .exceptions import ScoreNotFound, ValidationError
from .score_store import ScoreStore

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 500
RANK_ORDER = "score DESC, created_at ASC, id ASC"


def _score_from_row(r: aiosqlite.Row) -> Score:
    return {
        "id": str(r["id"]),
        "device_id": r["device_id"],
        "display_name": r["display_name"],
        "score": r["score"],
        "category": r["category"],
        "metadata": json.loads(r["metadata"]),
        "created_at": r["created_at"],
    }


def _filters(game_slug: str, category: Optional[str], since: Optional[str]) -> tuple[str, list[Any]]:
    where = "game_slug = ?"
    params: list[Any] = [game_slug]
    if category:
        where += " AND category = ?"
        params.append(category)
    if since:
        where += " AND created_at >= ?"
        params.append(since)
    return where, params


class SqliteScoreStore(ScoreStore):
    """SQLite-based implementation of ScoreStore."""

    def __init__(self, database: Database):
        self.database = database

    async def submit_score(
        self,
        game_slug: str,
        device_id: str,
        display_name: str,
        score: int,
        *,
        category: str = "default",
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict:
        # Raises: ValidationError
        try:
            clean_meta = sanitize_json(metadata or {})
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        async with self.database.transaction() as db:
            cur = await db.execute(
                "SELECT MAX(score) FROM scores WHERE game_slug = ? AND category = ? AND device_id = ?",
                (game_slug, category, device_id),
            )
            (previous_best,) = await cur.fetchone()
            cur = await db.execute(
                """
                INSERT INTO scores (game_slug, device_id, display_name, score, category, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (game_slug, device_id, display_name, score, category, json.dumps(clean_meta), now_iso()),
            )
            score_pk = cur.lastrowid
            cur = await db.execute(
                "SELECT COUNT(*) FROM scores WHERE game_slug = ? AND category = ? AND score > ?",
                (game_slug, category, score),
            )
            (better,) = await cur.fetchone()
            cur = await db.execute("SELECT * FROM scores WHERE id = ?", (score_pk,))
            row = await cur.fetchone()

        result = dict(_score_from_row(row))
        result["rank"] = better + 1
        result["is_personal_best"] = previous_best is None or score >= previous_best
        logger.info(
            f"[STORE] Score {score} ({category}) by {device_id} in {game_slug}, rank {result['rank']}"
        )
        return result

    async def get_score(self, game_slug: str, score_id: str) -> Score:
        # Raises: ScoreNotFound
        try:
            pk = int(score_id)
        except (TypeError, ValueError):
            raise ScoreNotFound(f"Score {score_id} not found") from None
        async with self.database.reader() as db:
            cur = await db.execute(
                "SELECT * FROM scores WHERE game_slug = ? AND id = ?",
                (game_slug, pk),
            )
            row = await cur.fetchone()
        if row is None:
            raise ScoreNotFound(f"Score {score_id} not found")
        return _score_from_row(row)

    async def categories(self, game_slug: str) -> list[str]:
        async with self.database.reader() as db:
            cur = await db.execute(
                "SELECT DISTINCT category FROM scores WHERE game_slug = ? ORDER BY category",
                (game_slug,),
            )
            rows = await cur.fetchall()
        return [r["category"] for r in rows]

    async def top_by_category(
        self,
        game_slug: str,
        per_category: int,
        *,
        category: Optional[str] = None,
        since: Optional[str] = None,
    ) -> list[Score]:
        where, params = _filters(game_slug, category, since)
        async with self.database.reader() as db:
            cur = await db.execute(
                f"""
                SELECT * FROM (
                    SELECT *, ROW_NUMBER() OVER (PARTITION BY category ORDER BY {RANK_ORDER}) AS pos
                    FROM scores WHERE {where}
                ) WHERE pos <= ?
                ORDER BY category, pos
                """,
                (*params, per_category),
            )
            rows = await cur.fetchall()
        return [_score_from_row(r) for r in rows]

    async def list_scores(
        self,
        game_slug: str,
        *,
        category: Optional[str] = None,
        since: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Score], int]:
        # Raises: ValidationError
        try:
            validate_limit(limit, maximum=MAX_PAGE_LIMIT)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if offset < 0:
            raise ValidationError("offset must not be negative")

        where, params = _filters(game_slug, category, since)
        async with self.database.reader() as db:
            cur = await db.execute(f"SELECT COUNT(*) FROM scores WHERE {where}", params)
            (total,) = await cur.fetchone()
            cur = await db.execute(
                f"SELECT * FROM scores WHERE {where} ORDER BY {RANK_ORDER} LIMIT ? OFFSET ?",
                (*params, limit, offset),
            )
            rows = await cur.fetchall()
        return [_score_from_row(r) for r in rows], total
