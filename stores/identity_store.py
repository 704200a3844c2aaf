from abc import ABC, abstractmethod
from typing import Iterable, Optional

from models.domain_models import Game, Identity

from .exceptions import MissingCapability


COUNTER_FIELDS = ("wins", "losses", "draws", "total_turns", "total_battles")


# =========================
# IdentityStore Interface
# =========================

class IdentityStore(ABC):
    """
    Game catalog plus the per-game device identities that bearer tokens
    resolve to.

    Invariants:
    - A device has at most one identity per game
    - Tokens are stored only as hashes
    - Counters are a derived projection of battle history and may drift;
      `replace_counters` is the authoritative repair path
    """

    # -------------------------------------------------
    # Game catalog
    # -------------------------------------------------

    @abstractmethod
    async def create_game(
        self,
        slug: str,
        name: str,
        capabilities: Iterable[str],
        *,
        active: bool = True,
    ) -> Game:
        """Register a game.

        Raises:
            ValidationError: If the slug or a capability is invalid.
            Conflict: If the slug is already taken.
        """

    @abstractmethod
    async def list_games(self) -> list[Game]:
        """Every active game, by slug."""

    @abstractmethod
    async def get_game(self, slug: str) -> Game:
        """Return an active game.

        Raises:
            GameNotFound: If the game is unknown or inactive.
        """

    async def require_capability(self, slug: str, capability: str) -> Game:
        """Return the game if it enables `capability`.

        Raises:
            GameNotFound: If the game is unknown or inactive.
            MissingCapability: If the feature is not enabled for the game.
        """
        game = await self.get_game(slug)
        if capability not in game["capabilities"]:
            raise MissingCapability(f"Game {game['slug']} does not support {capability}")
        return game

    # -------------------------------------------------
    # Identities
    # -------------------------------------------------

    @abstractmethod
    async def register_identity(
        self,
        game_slug: str,
        device_id: str,
        token_hash: str,
        *,
        display_name: str = "Unnamed Player",
        avatar: str = "BIRD1",
    ) -> Identity:
        """Create or re-key a device identity.

        Raises:
            GameNotFound: If the game does not exist.
        """

    @abstractmethod
    async def resolve_token(self, game_slug: str, token_hash: str) -> Optional[dict]:
        """Return {device_id, display_name} for an active identity, else None.

        Touches `last_seen` on success.
        """

    @abstractmethod
    async def get_identity(self, game_slug: str, device_id: str) -> Identity:
        """Raises IdentityNotFound."""

    @abstractmethod
    async def get_player_info(self, game_slug: str, device_ids: Iterable[Optional[str]]) -> dict[str, dict]:
        """Map device_id -> {display_name, avatar}; unknown ids get placeholder values."""

    # -------------------------------------------------
    # Counters
    # -------------------------------------------------

    @abstractmethod
    async def increment_counters(self, game_slug: str, increments: dict[str, dict[str, int]]) -> None:
        """Apply {device_id: {counter: delta}} in one transaction."""

    @abstractmethod
    async def replace_counters(self, game_slug: str, counters: dict[str, dict[str, int]]) -> int:
        """Zero every counter for the game, then set the given values.

        Returns the number of identities whose counters were written.
        """
