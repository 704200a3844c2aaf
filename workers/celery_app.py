"""Celery app for background maintenance.

Two direct queues: `default` and `maintenance` (priority-enabled). Beat
runs counter reconciliation nightly and the stale-battle sweep hourly.
"""
import logging
import os

import pytz
# workers run in UTC regardless of the host zone
os.environ['TZ'] = 'UTC'

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

import config

logger = logging.getLogger(__name__)

QUEUE_NAMES = ("default", "maintenance")
MAINTENANCE_PRIORITY = 2

app = Celery("roost")

app.config_from_object({
    "broker_url": config.CELERY_BROKER_URL,
    "result_backend": config.CELERY_RESULT_BACKEND,
    "task_serializer": "json",
    "result_serializer": "json",
    "accept_content": ["json"],
    "timezone": pytz.UTC,
    "enable_utc": True,
    # a task is acknowledged only after it finishes, so a crashed worker's job is redelivered
    "task_acks_late": True,
    "worker_prefetch_multiplier": 1,
    "task_default_queue": "default",
    "task_default_exchange": "default",
    "task_default_routing_key": "default",
    "task_default_retry_delay": 60,
    "task_max_retries": 5,
})

app.conf.task_queues = tuple(
    Queue(
        name,
        exchange=Exchange(name, type="direct"),
        routing_key=name,
        queue_arguments={"x-max-priority": 10},
    )
    for name in QUEUE_NAMES
)


def _maintenance(task: str, schedule: crontab) -> dict:
    return {
        "task": f"workers.tasks.{task}",
        "schedule": schedule,
        "options": {"queue": "maintenance", "priority": MAINTENANCE_PRIORITY},
    }


app.conf.beat_schedule = {
    "reconcile-counters": _maintenance("reconcile_counters", crontab(minute=30, hour=3)),
    "abandon-stale-pending-battles": _maintenance(
        "abandon_stale_pending_battles", crontab(minute=0, hour="*")
    ),
}

# No Database is opened at import time; each task opens its own inside
# the event loop it runs (services.open_services).
