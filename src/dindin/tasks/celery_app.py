"""Celery worker and beat configuration for the reminder jobs."""
from __future__ import annotations

import logging

from celery import Celery
from celery.schedules import crontab

from dindin.config import Settings, get_settings
from dindin.logging import configure_logging

logger = logging.getLogger(__name__)

TASK_MODULES = ["dindin.tasks.reminders"]


def beat_schedule(settings: Settings) -> dict:
    """Daily income/expense run at the configured local hour, goal reminders every hour."""

    return {
        "send-income-and-expense-reminders": {
            "task": "dindin.tasks.reminders.send_income_and_expense_reminders",
            "schedule": crontab(minute=0, hour=settings.reminders.hour),
        },
        "send-goal-reminders": {
            "task": "dindin.tasks.reminders.send_goal_reminders",
            "schedule": crontab(minute=0),
        },
    }


def create_celery_app(settings: Settings) -> Celery:
    app = Celery("dindin", broker=settings.redis.dsn, backend=settings.redis.dsn, include=TASK_MODULES)
    app.conf.update(
        timezone=settings.reminders.timezone,
        enable_utc=False,
        task_ignore_result=True,
        worker_hijack_root_logger=False,
        beat_schedule=beat_schedule(settings),
    )
    return app


configure_logging()
celery_app = create_celery_app(get_settings())
logger.info("Celery app ready, reminders in %s", celery_app.conf.timezone)


__all__ = ["beat_schedule", "celery_app", "create_celery_app"]
