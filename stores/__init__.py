# Abstractions
from .identity_store import IdentityStore
from .battle_store import BattleStore
from .data_store import ScopedDataStore
from .score_store import ScoreStore

# Exceptions
from .exceptions import (
    StoreError,
    NotFound,
    GameNotFound,
    MissingCapability,
    BattleNotFound,
    DataNotFound,
    ScoreNotFound,
    IdentityNotFound,
    UnexpectedResult,
    Conflict,
    ValidationError,
    BattleError,
    InvalidState,
    NotParticipant,
    SelfJoin,
    OutOfTurn,
    CapacityExceeded,
    DataStoreError,
    NotOwner,
)

# Concrete implementations are private; only abstract interfaces are exported.
from .sqlite_identity_store import SqliteIdentityStore as _SqliteIdentityStore
from .sqlite_battle_store import SqliteBattleStore as _SqliteBattleStore
from .sqlite_data_store import SqliteDataStore as _SqliteDataStore
from .sqlite_score_store import SqliteScoreStore as _SqliteScoreStore

__all__ = [
    # Abstractions
    "IdentityStore",
    "BattleStore",
    "ScopedDataStore",
    "ScoreStore",
    "Stores",
    # Exceptions
    "StoreError",
    "NotFound",
    "GameNotFound",
    "MissingCapability",
    "BattleNotFound",
    "DataNotFound",
    "ScoreNotFound",
    "IdentityNotFound",
    "UnexpectedResult",
    "Conflict",
    "ValidationError",
    "BattleError",
    "InvalidState",
    "NotParticipant",
    "SelfJoin",
    "OutOfTurn",
    "CapacityExceeded",
    "DataStoreError",
    "NotOwner",
]


from db import Database
import config


class Stores:
    """Every store of one process, bound to one explicitly managed `Database`.

    Built once at startup (FastAPI lifespan or a Celery task) and passed
    down; there are no module-level store singletons.
    """

    def __init__(self, database: Database, *, max_value_bytes: int = config.MAX_DATA_VALUE_BYTES):
        self.database = database
        self.identities: IdentityStore = _SqliteIdentityStore(database)
        self.battles: BattleStore = _SqliteBattleStore(database)
        self.data: ScopedDataStore = _SqliteDataStore(database, max_value_bytes=max_value_bytes)
        self.scores: ScoreStore = _SqliteScoreStore(database)
