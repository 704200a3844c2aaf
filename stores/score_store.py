from abc import ABC, abstractmethod
from typing import Any, Optional

from models.domain_models import Score


# =========================
# ScoreStore Interface
# =========================

class ScoreStore(ABC):
    """
    Append-only score log. Scores are never updated; ranking is computed
    at read time ordered by score descending, then earliest submission.
    """

    @abstractmethod
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
        """Append a score.

        Returns the stored score plus `rank` (strictly greater scores + 1)
        and `is_personal_best`.
        """

    @abstractmethod
    async def get_score(self, game_slug: str, score_id: str) -> Score:
        """Raises ScoreNotFound."""

    @abstractmethod
    async def categories(self, game_slug: str) -> list[str]:
        """Distinct categories with at least one score, sorted."""

    @abstractmethod
    async def top_by_category(
        self,
        game_slug: str,
        per_category: int,
        *,
        category: Optional[str] = None,
        since: Optional[str] = None,
    ) -> list[Score]:
        """Up to `per_category` best scores of each category, best first within a category."""

    @abstractmethod
    async def list_scores(
        self,
        game_slug: str,
        *,
        category: Optional[str] = None,
        since: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Score], int]:
        """One ranked page across the filter plus the total matching count.

        Raises:
            ValidationError: If `limit` or `offset` is out of range.
        """
