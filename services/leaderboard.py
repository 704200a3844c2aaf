"""Read-only ranked views over submitted scores."""
from datetime import timedelta
from itertools import groupby
from typing import Iterable, Optional

from models.domain_models import Score
from stores import ScoreStore, ValidationError
from utils.time import now_utc, to_iso


PERIODS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}
MAX_PER_CATEGORY = 100


def rank_scores(scores: Iterable[Score], offset: int = 0) -> list[dict]:
    """Attach positional 1-based ranks.

    Sorts by score descending, then earliest submission. Equal scores still
    get distinct consecutive ranks.
    """
    ordered = sorted(scores, key=lambda s: (-s["score"], s["created_at"], int(s["id"])))
    return [dict(s, rank=offset + i + 1) for i, s in enumerate(ordered)]


def period_start(period: Optional[str]) -> Optional[str]:
    if not period:
        return None
    if period not in PERIODS:
        raise ValidationError(f"period must be one of {sorted(PERIODS)}")
    return to_iso(now_utc() - PERIODS[period])


class LeaderboardView:

    def __init__(self, scores: ScoreStore):
        self.scores = scores

    async def list(
        self,
        game_slug: str,
        limit: int = 10,
        *,
        category: Optional[str] = None,
        period: Optional[str] = None,
    ) -> list[dict]:
        """One ranked top-`limit` list per category: [{category, scores}]."""
        if limit < 1 or limit > MAX_PER_CATEGORY:
            raise ValidationError(f"limit must be between 1 and {MAX_PER_CATEGORY}")
        rows = await self.scores.top_by_category(
            game_slug, limit, category=category, since=period_start(period)
        )
        rows = sorted(rows, key=lambda s: s["category"])
        return [
            {"category": cat, "scores": rank_scores(group)}
            for cat, group in groupby(rows, key=lambda s: s["category"])
        ]

    async def page(
        self,
        game_slug: str,
        *,
        category: Optional[str] = None,
        period: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> dict:
        rows, total = await self.scores.list_scores(
            game_slug, category=category, since=period_start(period), limit=limit, offset=offset
        )
        ranked = rank_scores(rows, offset)
        return {
            "scores": ranked,
            "categories": await self.scores.categories(game_slug),
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + len(ranked) < total,
            },
        }
