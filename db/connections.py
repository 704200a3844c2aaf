import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


async def connect(db_path: str, pragmas: Optional[Dict[str, str]] = None) -> aiosqlite.Connection:
    """Open an aiosqlite connection and apply sensible pragmas.

    - Autocommit mode (`isolation_level=None`); transactions are explicit.
    - Sets `row_factory` to `aiosqlite.Row` for named access.
    - Enables foreign keys by default.
    - Applies any additional PRAGMA settings supplied in `pragmas`.

    Returns an open connection; caller is responsible for closing it.
    """
    conn = await aiosqlite.connect(db_path, timeout=30.0, isolation_level=None)
    conn.row_factory = aiosqlite.Row

    await conn.execute("PRAGMA foreign_keys = ON")
    if pragmas:
        for k, v in pragmas.items():
            await conn.execute(f"PRAGMA {k} = {v}")
    return conn


class Database:
    """Owns the single SQLite connection used by every store in a process.

    Construct it explicitly, `await init()` before use and `await close()`
    on shutdown. All access goes through `transaction()` (write path, runs
    inside `BEGIN IMMEDIATE`) or `reader()` (consistent reads); both hold
    the same lock so coroutines sharing the connection never interleave
    statements of an open transaction.
    """

    def __init__(self, db_path: str, *, schema_path: Optional[str] = None):
        self.db_path = db_path
        self.schema_path = Path(schema_path) if schema_path else SCHEMA_PATH
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def init(self) -> None:
        """Open the connection and apply the schema. Safe to call twice."""
        if self._conn is not None:
            return
        db_file = Path(self.db_path)
        if self.db_path != ":memory:" and not db_file.parent.exists():
            db_file.parent.mkdir(parents=True, exist_ok=True)

        conn = await connect(self.db_path, {"journal_mode": "DELETE"})
        try:
            await conn.executescript(self.schema_path.read_text())
        except Exception:
            await conn.close()
            raise
        self._conn = conn
        logger.info(f"[DB] Connection established to {self.db_path}")

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info(f"[DB] Connection to {self.db_path} closed")

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized; call init() first")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the block inside `BEGIN IMMEDIATE`; commit on success, roll back on error."""
        conn = self._require()
        async with self._lock:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = self._require()
        async with self._lock:
            yield conn


async def init_db(db_path: str, schema_path: Optional[str] = None) -> None:
    """Create the database file if needed and apply the schema."""
    database = Database(db_path, schema_path=schema_path)
    await database.init()
    await database.close()
