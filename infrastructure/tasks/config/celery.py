"""Celery application configuration

    celery -A infrastructure.tasks worker -B -Q default,maintenance
"""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

from celery import Celery
from kombu import Queue

from core.config import Settings, settings
from core.logging_config import get_logger
from .beat import CELERY_BEAT_SCHEDULE


CELERY_IMPORTS = (
    "infrastructure.tasks.tasks",
)

EAGER_ENVIRONMENTS = {"development", "dev", "test", "testing"}


def broker_url_for(cfg: Settings) -> Optional[str]:
    return cfg.redis.url or os.getenv("CELERY_BROKER_URL")


def runs_eagerly(cfg: Settings) -> bool:
    """开发/测试环境或未配置 broker 时，任务在调用方进程内同步执行"""
    environment = (cfg.ENVIRONMENT or "production").lower()
    return environment in EAGER_ENVIRONMENTS or not broker_url_for(cfg)


def build_celery_config(cfg: Settings) -> Dict[str, Any]:
    broker_url = broker_url_for(cfg)
    eager = runs_eagerly(cfg)
    return {
        "broker_url": broker_url,
        "result_backend": cfg.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
        # JSON only; payloads are plain ints/strings
        "task_serializer": "json",
        "result_serializer": "json",
        "accept_content": ["json"],
        "timezone": "UTC",
        "enable_utc": True,
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "result_expires": 3600,
        "worker_prefetch_multiplier": 1,
        "task_default_queue": "default",
        "task_default_retry_delay": 5,
        "task_queues": (
            Queue("default"),
            Queue("maintenance"),
        ),
        "task_routes": {
            "retention.*": {"queue": "maintenance"},
        },
        "beat_schedule": CELERY_BEAT_SCHEDULE,
        "imports": CELERY_IMPORTS,
        "task_always_eager": eager,
        "task_eager_propagates": eager,
    }


celery_app = Celery("ntfy_relay")
celery_app.conf.update(build_celery_config(settings))
celery_app.autodiscover_tasks(packages=CELERY_IMPORTS)


logger = get_logger(__name__)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info("celery_configured", eager=bool(sender.conf.task_always_eager), queues=["default", "maintenance"])
