import os
from pathlib import Path

# Path to the SQLite database file used by stores. Can be overridden
# using the ROOST_DB_PATH environment variable.
DB_PATH = os.environ.get("ROOST_DB_PATH", str(Path(__file__).parent / "db.sqlite3"))

# Per-player cap on battles in pending/active state, per game.
MAX_ACTIVE_BATTLES = int(os.environ.get("ROOST_MAX_ACTIVE_BATTLES", "9"))

# Largest serialised data-store value accepted, in bytes.
MAX_DATA_VALUE_BYTES = int(os.environ.get("ROOST_MAX_DATA_VALUE_BYTES", str(100 * 1024)))

# Admin endpoints are disabled when no key is configured.
ADMIN_API_KEY = os.environ.get("ROOST_ADMIN_API_KEY") or None

CORS_ORIGINS = [
    o.strip() for o in os.environ.get("ROOST_CORS_ORIGINS", "").split(",") if o.strip()
]

# Pending battles older than this are abandoned by the maintenance task.
STALE_PENDING_DAYS = int(os.environ.get("ROOST_STALE_PENDING_DAYS", "7"))

LOG_LEVEL = os.environ.get("ROOST_LOG_LEVEL", "INFO")

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
