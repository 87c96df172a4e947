"""APScheduler — one scheduler carries reminder jobs and store refresh jobs."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler


def create_scheduler() -> AsyncIOScheduler:
    """Scheduler for the running service. Started by the app lifespan."""
    return AsyncIOScheduler(job_defaults={"coalesce": True, "max_instances": 1})


scheduler = create_scheduler()
