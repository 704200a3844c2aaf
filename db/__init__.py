"""Database package helpers.

Expose the connection client and initialization helpers so callers can
import from `db` directly (e.g. `from db import Database, init_db`).
"""

from .connections import Database, connect, init_db

__all__ = ["Database", "connect", "init_db"]
