from abc import ABC, abstractmethod
from typing import Any, Optional

from models.domain_models import DataRecord


# =========================
# ScopedDataStore Interface
# =========================

class ScopedDataStore(ABC):
    """
    Multi-tenant key-value store with three visibility scopes.

    - global: no owner, readable by anyone
    - player: visible only to its owner; stored under "<owner>:<key>" so
      two owners can use the same logical key
    - public: readable by anyone, writable only by its owner

    `caller` arguments are the authenticated {device_id, display_name}
    dict or None for anonymous requests.
    """

    @abstractmethod
    async def put(
        self,
        game_slug: str,
        key: str,
        value: dict[str, Any],
        scope: str = "global",
        caller: Optional[dict] = None,
    ) -> tuple[DataRecord, bool]:
        """Create or update a record. Returns (record, created).

        Raises:
            ValidationError: Bad key, scope or value.
            UnauthorizedException: player/public write without a caller.
            NotOwner: The key belongs to another device.
        """

    @abstractmethod
    async def get(
        self,
        game_slug: str,
        key: str,
        scope: Optional[str] = None,
        caller: Optional[dict] = None,
    ) -> DataRecord:
        """Read a record visible to `caller`.

        Raises:
            DataNotFound: Missing, invisible to the caller, or not in `scope`.
        """

    @abstractmethod
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
        """List logical keys visible to the caller, oldest first.

        Returns:
            {"keys": [{key, scope, owner_id, owner_display_name, updated_at}],
             "next_cursor": str | None, "count": int}

        Raises:
            ValidationError: Bad limit, scope or cursor.
            UnauthorizedException: scope="player" without a caller.
        """

    @abstractmethod
    async def delete(self, game_slug: str, key: str, caller: dict) -> str:
        """Delete a record and return its logical key.

        Raises:
            DataNotFound: Nothing to delete.
            NotOwner: The record belongs to another device.
        """
