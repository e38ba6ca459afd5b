"""Scheduler module for the periodic poll job."""

from deal_transfer.infrastructure.scheduler.scheduler import (
    POLL_JOB_ID,
    get_scheduler,
    get_scheduler_status,
    poll_job,
    schedule_poll_job,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "POLL_JOB_ID",
    "get_scheduler",
    "get_scheduler_status",
    "poll_job",
    "schedule_poll_job",
    "start_scheduler",
    "stop_scheduler",
]
