"""
Cron jobs for the goal sweeps.

Run these in exactly ONE process per deployment: either the API worker
started with ENABLE_SCHEDULER=true, or `python -m mindwell.jobs`. There is
no distributed lock, so a second scheduler sends duplicate notifications.

Jobs (UTC)
----------
  expiring_goals         EXPIRING_GOALS_HOUR:00        check_expiring_goals
  incomplete_goals       INCOMPLETE_GOALS_HOUR:00      expire_goals
  goal_history_cleanup   GOAL_HISTORY_CLEANUP_HOUR:00  cleanup_goal_history
"""
from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from mindwell.core.config import settings
from mindwell.db.base import SessionLocal
from mindwell.services.goal_sweeps import (
    check_expiring_goals,
    cleanup_goal_history,
    expire_goals,
)

logger = logging.getLogger(__name__)


def run_expiring_goals_job() -> None:
    db = SessionLocal()
    try:
        check_expiring_goals(db)
    except Exception:
        logger.exception("Expiring goals job failed")
    finally:
        db.close()


def run_incomplete_goals_job() -> None:
    db = SessionLocal()
    try:
        expire_goals(db)
    except Exception:
        logger.exception("Incomplete goals job failed")
    finally:
        db.close()


def run_history_cleanup_job() -> None:
    db = SessionLocal()
    try:
        cleanup_goal_history(db, settings.GOAL_HISTORY_RETENTION_DAYS)
    except Exception:
        logger.exception("Goal history cleanup job failed")
        db.rollback()
    finally:
        db.close()


def add_goal_jobs(scheduler: BaseScheduler) -> BaseScheduler:
    scheduler.add_job(
        run_expiring_goals_job,
        CronTrigger(hour=settings.EXPIRING_GOALS_HOUR, minute=0, timezone="UTC"),
        id="expiring_goals",
        replace_existing=True,
    )
    scheduler.add_job(
        run_incomplete_goals_job,
        CronTrigger(hour=settings.INCOMPLETE_GOALS_HOUR, minute=0, timezone="UTC"),
        id="incomplete_goals",
        replace_existing=True,
    )
    scheduler.add_job(
        run_history_cleanup_job,
        CronTrigger(hour=settings.GOAL_HISTORY_CLEANUP_HOUR, minute=0, timezone="UTC"),
        id="goal_history_cleanup",
        replace_existing=True,
    )
    return scheduler


def start_scheduler(scheduler: Optional[BaseScheduler] = None) -> BaseScheduler:
    """
    Populate and start `scheduler` (a fresh AsyncIOScheduler by default,
    which needs a running event loop). BlockingScheduler.start() blocks.
    """
    scheduler = add_goal_jobs(scheduler or AsyncIOScheduler(timezone="UTC"))
    logger.info(
        "Starting goal scheduler (expiring %02d:00, incomplete %02d:00, cleanup %02d:00 UTC)",
        settings.EXPIRING_GOALS_HOUR,
        settings.INCOMPLETE_GOALS_HOUR,
        settings.GOAL_HISTORY_CLEANUP_HOUR,
    )
    scheduler.start()
    return scheduler


def stop_scheduler(scheduler: Optional[BaseScheduler]) -> None:
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Goal scheduler stopped")
