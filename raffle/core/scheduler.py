"""
APScheduler Setup for Background Jobs

Handles automatic contest expiry:
- Reconcile expired contests: every RECONCILE_INTERVAL_SECONDS (default 60)

Note: Jobs run with database connection from app context.
"""
import os
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from dotenv import load_dotenv
from pymongo.errors import PyMongoError

from raffle.utils.clock import utcnow, isoformat_utc

load_dotenv()

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Job status tracking
job_status = {
    "last_run": None,
    "reconcile": {"runs": 0, "failures": 0, "last_result": None}
}


async def run_reconcile_expired():
    """Job: close submissions on contests that reached their end condition."""
    from raffle.database import Database
    from raffle.services.scheduler.contest_scheduler import ContestScheduler

    if Database.client is None:
        logger.warning("[SCHEDULER] Database not connected, skipping reconcile")
        return

    try:
        scheduler_service = ContestScheduler(Database.get_db())
        result = await scheduler_service.reconcile_expired_contests()

        job_status["reconcile"]["runs"] += 1
        job_status["reconcile"]["last_result"] = result
        job_status["last_run"] = isoformat_utc(utcnow())

    except PyMongoError as e:
        # Next run retries; readers reconcile on access meanwhile
        job_status["reconcile"]["failures"] += 1
        logger.error(f"[ERROR] reconcile job failed: {e}")


def get_reconcile_interval() -> int:
    return int(os.getenv("RECONCILE_INTERVAL_SECONDS", "60"))


def setup_scheduler():
    """
    Configure and setup all scheduled jobs.

    Job Schedule:
    - reconcile: every RECONCILE_INTERVAL_SECONDS (close expired contests)
    """
    # Clear any existing jobs
    scheduler.remove_all_jobs()

    scheduler.add_job(
        run_reconcile_expired,
        IntervalTrigger(seconds=get_reconcile_interval()),
        id="contest_reconcile_expired",
        name="Close submissions on expired contests",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info("[SCHEDULER] Contest scheduler configured with 1 job")


def start_scheduler():
    """Start the scheduler if not already running."""
    if not scheduler.running:
        scheduler.start()
        logger.info("[SCHEDULER] Background scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[SCHEDULER] Background scheduler stopped")


def _next_run(job):
    # pending jobs (scheduler not started yet) have no next_run_time
    next_run_time = getattr(job, "next_run_time", None)
    return next_run_time.isoformat() if next_run_time else None


def get_scheduler_status() -> dict:
    """Get current scheduler status for monitoring."""
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": _next_run(job)
            }
            for job in scheduler.get_jobs()
        ],
        "job_status": job_status
    }
