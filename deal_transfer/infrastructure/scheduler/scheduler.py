"""APScheduler integration for the "copy the latest deal" poll."""

from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from deal_transfer.config import Settings, get_settings
from deal_transfer.core.logging import get_logger

logger = get_logger(__name__)

POLL_JOB_ID = "poll_latest_deal"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine multiple missed runs into one
                "max_instances": 1,  # Only one instance per job at a time
                "misfire_grace_time": 60,
            },
        )
    return _scheduler


async def poll_job(
    source_category_id: int | None = None,
    target_category_id: int | None = None,
) -> dict[str, Any] | None:
    """Job function: transfer the newest deal of the source category.

    Errors are logged, never raised, so the next run still happens.
    """
    from deal_transfer.domain.services.transfer_service import TransferService

    logger.info(
        "Poll job triggered",
        source_category_id=source_category_id,
        target_category_id=target_category_id,
    )
    try:
        result = await TransferService().transfer_latest(
            source_category_id, target_category_id
        )
    except Exception as e:
        logger.error("Poll job failed", error=str(e), exc_info=True)
        return None

    if result is None:
        return None
    logger.info(
        "Poll job finished",
        status=result.status,
        source_deal_id=result.source_deal_id,
        new_deal_id=result.new_deal_id,
    )
    return result.model_dump()


def schedule_poll_job(settings: Settings | None = None) -> bool:
    """Add the poll job when polling is enabled and a source category is set.

    Returns:
        True if the job was scheduled
    """
    settings = settings or get_settings()
    if not settings.poll_enabled:
        return False
    if settings.poll_source_category_id is None:
        logger.warning("Polling enabled but POLL_SOURCE_CATEGORY_ID is not set")
        return False

    scheduler = get_scheduler()
    scheduler.add_job(
        poll_job,
        trigger=IntervalTrigger(minutes=settings.poll_interval_minutes),
        id=POLL_JOB_ID,
        name="Transfer latest deal",
        kwargs={
            "source_category_id": settings.poll_source_category_id,
            "target_category_id": settings.target_category_id or None,
        },
        replace_existing=True,
    )
    logger.info(
        "Scheduled poll job",
        interval_minutes=settings.poll_interval_minutes,
        source_category_id=settings.poll_source_category_id,
        job_id=POLL_JOB_ID,
    )
    return True


def start_scheduler() -> None:
    """Start the scheduler."""
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler."""
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict[str, Any]:
    """Get current scheduler status.

    Returns:
        Status dictionary with job information
    """
    scheduler = get_scheduler()

    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": scheduler.running,
        "jobs": jobs,
        "job_count": len(jobs),
    }
