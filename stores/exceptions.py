"""
Shared exception definitions for all stores and the services built on them.

Hierarchy:
- StoreError (base for all store exceptions)
  - NotFound (game, battle, data key, score, identity)
  - BattleError (lifecycle and turn-order violations)
  - DataStoreError (scoped data store violations)
  - Conflict (lost a race on an atomic transition)
  - ValidationError (malformed input)

`retryable` tells background workers whether repeating the same call can
succeed; request handlers use the concrete class to pick a status code.
"""


# =========================
# Base exception
# =========================

class StoreError(Exception):
    """Base exception for all store-related errors."""
    retryable: bool = True


class NotFound(StoreError):
    retryable = False


class GameNotFound(NotFound):
    pass


class MissingCapability(NotFound):
    """The game exists but does not enable the requested feature."""


class BattleNotFound(NotFound):
    pass


class DataNotFound(NotFound):
    pass


class ScoreNotFound(NotFound):
    pass


class IdentityNotFound(NotFound):
    pass


class UnexpectedResult(StoreError):
    retryable = True
    # integrity failures that should be impossible while ACID holds


class Conflict(StoreError):
    """A conditional update found the row changed; re-fetch and retry."""
    retryable = True


class ValidationError(StoreError):
    retryable = False


# =========================
# Battle exceptions
# =========================

class BattleError(StoreError):
    """Base exception for battle lifecycle errors."""
    retryable = False


class InvalidState(BattleError):
    pass


class NotParticipant(BattleError):
    pass


class SelfJoin(BattleError):
    pass


class OutOfTurn(BattleError):
    pass


class CapacityExceeded(BattleError):
    pass


# =========================
# Data store exceptions
# =========================

class DataStoreError(StoreError):
    """Base exception for scoped data store errors."""
    retryable = False


class NotOwner(DataStoreError):
    pass
