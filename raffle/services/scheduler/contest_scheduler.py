"""
Contest Scheduler Service

Periodic counterpart of the check-on-access expiry handling:
- Reconcile: close submissions on contests whose duration elapsed or whose
  participant cap was reached

Readers reconcile on their own, so this job only shortens the window in
which an expired contest still looks open in storage.
"""
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Dict, Any

from raffle.services.contest.contest import ContestService
from raffle.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class ContestScheduler:
    """Background job handler for contest expiry"""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Clock = utcnow):
        self.db = db
        self.contest_service = ContestService(db, clock)

    async def reconcile_expired_contests(self) -> Dict[str, Any]:
        """
        Close submissions on naturally expired contests.

        Conditions:
        - status = ACTIVE
        - manually_stopped = False, submissions_stopped = False
        - end_time passed (duration) or cap reached (participants)

        Action:
        - Set submissions_stopped = True, stop_reason = expired
        """
        results = await self.contest_service.reconcile_expired()

        if results["stopped"]:
            logger.info(f"[SCHEDULER] Closed submissions on {len(results['stopped'])} expired contest(s)")

        return results

    async def run_all_jobs(self) -> Dict[str, Any]:
        """Run every job once (manual trigger)"""
        return {
            "reconcile": await self.reconcile_expired_contests()
        }
