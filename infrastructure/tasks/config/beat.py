"""Celery beat schedule configuration.

Expired messages are removed once an hour, at minute ``SWEEP_CRON_MINUTE``.
"""
from __future__ import annotations

from celery.schedules import crontab

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    "sweep-expired-messages": {
        "task": "retention.sweep_expired_messages",
        "schedule": crontab(minute=settings.SWEEP_CRON_MINUTE),
    },
}
