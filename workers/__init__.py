"""Workers package: Celery app and background task definitions.

Public API:
- `celery_app`: Celery application instance and configuration
- `tasks`: task implementations (`reconcile_counters`, `abandon_stale_pending_battles`)

Run with `celery -A workers.celery_app worker -B`.
"""

# Import tasks early so their Celery decorators register with the app
from . import tasks
from .celery_app import app as celery_app
from .tasks import reconcile_counters, abandon_stale_pending_battles

__all__ = [
    "celery_app",
    "tasks",
    "reconcile_counters",
    "abandon_stale_pending_battles",
]
