"""
Celery app for background document rendering.

Usage:
    celery -A app.tasks.celery_app worker --loglevel=INFO

Only used when RENDER_MODE=celery; the API enqueues after commit.
"""
from __future__ import annotations

import os

from celery import Celery
from celery.signals import worker_process_init


def make_celery() -> Celery:
    redis_url = os.getenv("REDIS_URL", "") or "redis://localhost:6379/0"
    result_backend = os.getenv("CELERY_RESULT_BACKEND", redis_url)

    app = Celery(
        "visa_tracker",
        broker=redis_url,
        backend=result_backend,
        include=["app.tasks.render_task"],
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        enable_utc=True,
        result_expires=86400,
        # Rendering is idempotent per candidate, so redelivery is safe.
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=int(os.getenv("CELERY_CONCURRENCY", "2")),
        task_default_retry_delay=30,
        task_max_retries=3,
    )

    return app


celery_app = make_celery()


@worker_process_init.connect
def _init_worker_db(**_kwargs):
    from config import Config
    from db import init_engine
    from utils import setup_logging

    cfg = Config()
    setup_logging(cfg.LOG_LEVEL)
    init_engine(cfg.DATABASE_URL)
