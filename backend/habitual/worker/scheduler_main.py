"""Dedicated APScheduler worker process."""
from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from habitual.core.config import settings
from habitual.core.logging import configure_logging
from habitual.db.session import SessionLocal
from habitual.observability.client import shutdown_opik
from habitual.services.job_runner import run_daily_population_for_all_users

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        _register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            logger.info("Running daily population once on startup")
            _run_daily_population_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        shutdown_opik()
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def _register_jobs(scheduler: BackgroundScheduler) -> None:
    scheduler.add_job(
        _run_daily_population_job,
        trigger="cron",
        hour=settings.daily_job_hour,
        minute=settings.daily_job_minute,
        id="daily_population_job",
        replace_existing=True,
    )
    logger.info(
        "Registered daily population job at %02d:%02d %s",
        settings.daily_job_hour,
        settings.daily_job_minute,
        settings.scheduler_timezone,
    )


def _run_daily_population_job() -> None:
    session = SessionLocal()
    try:
        result = run_daily_population_for_all_users(session)
        logger.info(
            "Daily population job complete: users=%s, created=%s, failed=%s",
            result.users_processed,
            result.tasks_created,
            result.users_failed,
        )
    except Exception:  # pragma: no cover - top-level job guard
        logger.exception("Daily population job failed")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
