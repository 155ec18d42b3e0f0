from datetime import UTC, datetime
import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from chunkexec.config import Settings
from chunkexec.pipeline import BatchRunner


logger = logging.getLogger(__name__)


def _run_daily_batch(runner: BatchRunner, query: str, script_template: str, notify_on_completion: bool) -> None:
    run_date = datetime.now(UTC).date()
    run_key = f"scheduled-{run_date.isoformat()}"

    result = runner.run(
        run_key=run_key,
        query=query,
        script_template=script_template,
        notify_on_completion=notify_on_completion,
        trigger_source="scheduled",
    )
    log = logger.error if result.status == "failed" else logger.info
    log(
        "scheduled batch run finished",
        extra={
            "run_key": result.run_key,
            "status": result.status,
            "failed_chunks": result.failed_chunks,
            "reused_existing_run": result.reused_existing_run,
        },
    )


def start_scheduler(
    settings: Settings,
    runner: BatchRunner,
    *,
    query: str,
    script_template: str,
    notify_on_completion: bool = True,
    run_now: bool = False,
) -> None:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        _run_daily_batch,
        "cron",
        args=[runner, query, script_template, notify_on_completion],
        hour=settings.schedule_hour_utc,
        minute=settings.schedule_minute_utc,
        id="daily_batch",
        replace_existing=True,
        max_instances=1,
    )

    logger.info(
        "scheduler started",
        extra={
            "schedule_hour_utc": settings.schedule_hour_utc,
            "schedule_minute_utc": settings.schedule_minute_utc,
        },
    )

    if run_now:
        _run_daily_batch(runner, query, script_template, notify_on_completion)

    scheduler.start()
