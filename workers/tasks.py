"""Celery maintenance tasks.

Task bodies are thin: each opens its own `Database` through
`services.open_services`, runs one async helper with `asyncio.run` and
returns a JSON-friendly summary. The helpers are importable on their own
so they can run without a broker.
"""
import asyncio
import logging
from functools import wraps
from typing import Any, Dict, Optional

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded

import config
import services
from services import open_services
from utils.time import iso_days_ago, now_iso
from workers.celery_app import app

logger = logging.getLogger(__name__)

SWEEP_SOFT_LIMIT = 60  # seconds
SWEEP_HARD_LIMIT = 180
RECONCILE_SOFT_LIMIT = 300
RECONCILE_HARD_LIMIT = 600


class RoostTask(Task):
    """Exponential-backoff retries and one log line per lifecycle event."""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 5}
    retry_backoff = True
    retry_backoff_max = 3600
    retry_jitter = True

    def _context(self, task_id: str, args: tuple, kwargs: dict) -> dict:
        return {"task_id": task_id, "task_args": args, "task_kwargs": kwargs}

    def on_retry(self, exc, task_id, args, kwargs, einfo) -> None:
        logger.warning(f"[TASK] {self.name} {task_id} retrying: {exc}", extra=self._context(task_id, args, kwargs))

    def on_failure(self, exc, task_id, args, kwargs, einfo) -> None:
        logger.error(
            f"[TASK] {self.name} {task_id} failed: {exc}",
            extra=self._context(task_id, args, kwargs),
            exc_info=einfo,
        )

    def on_success(self, retval, task_id, args, kwargs) -> None:
        logger.info(f"[TASK] {self.name} {task_id} done", extra={"task_id": task_id, "task_result": retval})


def celery_task(**task_kwargs):
    """Register a task on `app` with `RoostTask` as base.

    Exceptions whose `retryable` attribute is False are logged and turned
    into a failure summary so Celery does not retry them; everything else
    propagates to the autoretry policy.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except SoftTimeLimitExceeded:
                logger.warning(f"[TASK] {func.__name__} hit its soft time limit")
                raise
            except Exception as exc:
                if getattr(exc, "retryable", True):
                    logger.error(f"[TASK] {func.__name__} will retry after {type(exc).__name__}: {exc}")
                    raise
                logger.error(f"[TASK] {func.__name__} gave up: {type(exc).__name__}: {exc}", exc_info=True)
                return {
                    "status": "failure",
                    "error": type(exc).__name__,
                    "message": str(exc),
                    "timestamp": now_iso(),
                }

        return app.task(base=RoostTask, **task_kwargs)(wrapper)

    return decorator


async def reconcile_games(db_path: str, game_slug: Optional[str] = None) -> list[dict]:
    """Reconcile one game, or every active game when `game_slug` is None."""
    async with open_services(db_path) as svc:
        identities = svc.stores.identities
        if game_slug:
            slugs = [(await identities.get_game(game_slug))["slug"]]
        else:
            slugs = [g["slug"] for g in await identities.list_games()]
        return [
            await services.reconcile_counters(identities, svc.stores.battles, slug)
            for slug in slugs
        ]


async def abandon_stale(db_path: str, days: int) -> int:
    async with open_services(db_path) as svc:
        return await svc.stores.battles.abandon_stale_pending(iso_days_ago(days))


@celery_task(
    bind=True,
    name="workers.tasks.reconcile_counters",
    queue="maintenance",
    priority=2,
    soft_time_limit=RECONCILE_SOFT_LIMIT,
    time_limit=RECONCILE_HARD_LIMIT,
)
def reconcile_counters(self, game_slug: Optional[str] = None) -> Dict[str, Any]:
    """Recompute identity counters from battle history.

    Returns:
        {"status": "success", "games": [{game_slug, identities_updated, battles_scanned}]}
    """
    logger.info(f"[TASK] Reconciling counters for {game_slug or 'all games'}")
    results = asyncio.run(reconcile_games(config.DB_PATH, game_slug))
    return {"status": "success", "games": results}


@celery_task(
    bind=True,
    name="workers.tasks.abandon_stale_pending_battles",
    queue="maintenance",
    priority=2,
    soft_time_limit=SWEEP_SOFT_LIMIT,
    time_limit=SWEEP_HARD_LIMIT,
)
def abandon_stale_pending_battles(self, days: Optional[int] = None) -> Dict[str, Any]:
    days = config.STALE_PENDING_DAYS if days is None else days
    count = asyncio.run(abandon_stale(config.DB_PATH, days))
    logger.info(f"[TASK] Abandoned {count} pending battles older than {days} days")
    return {"status": "success", "abandoned_count": count}
