#!/usr/bin/env python3
"""Create (or with --reset, recreate) the SQLite database from db/schema.sql.

Usage:
    init_sqlite.py [db_path] [schema_path] [--reset]
"""
import os
import sqlite3
import sys
from pathlib import Path

REQUIRED_TABLES = ("games", "game_identities", "battles", "battle_turns", "data_records", "scores")


def _drop_all(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = OFF")
    tables = [
        name for (name,) in conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
        )
    ]
    for table in tables:
        conn.execute(f'DROP TABLE IF EXISTS "{table}"')
    conn.commit()
    print(f"[INIT] Dropped {len(tables)} tables")


def init_db(db_path: str, schema_path: str, reset: bool = False) -> None:
    db_file = Path(db_path).resolve()
    schema_file = Path(schema_path).resolve()
    if not schema_file.exists():
        print(f"[INIT] ✗ Schema file not found at {schema_file}", file=sys.stderr)
        sys.exit(1)

    try:
        conn = sqlite3.connect(str(db_file))
        try:
            if reset:
                _drop_all(conn)
            conn.executescript(schema_file.read_text())
            present = {name for (name,) in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
    except sqlite3.Error as e:
        print(f"[INIT] ✗ Failed to initialize database: {e}", file=sys.stderr)
        sys.exit(1)

    missing = [t for t in REQUIRED_TABLES if t not in present]
    if missing:
        print(f"[INIT] ✗ Missing tables after applying schema: {missing}", file=sys.stderr)
        sys.exit(1)

    # shared by the API and the Celery worker, which may run as different users
    os.chmod(str(db_file), 0o666)
    print(f"[INIT] ✓ Database ready at {db_file}")


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--reset"]
    init_db(
        args[0] if args else "./db.sqlite3",
        args[1] if len(args) > 1 else "./db/schema.sql",
        reset="--reset" in sys.argv[1:],
    )
