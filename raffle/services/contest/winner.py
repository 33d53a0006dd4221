"""
Winner Selector

Draws winners once a contest's submissions are closed:
- k = min(winner_count, submission count) distinct submissions, sampled
  uniformly without replacement
- the draw runs at most once per contest, arbitrated by the
  winner_draw_claimed marker and the unique (contest, address) winner index
- each winner row copies the contest's prize_amount at draw time
"""
import logging
import random
import secrets
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Tuple

from raffle.models.contest.contest import ContestStatus
from raffle.models.contest.audit import AuditAction
from raffle.models.contest.errors import ContestError
from raffle.services.contest.audit import AuditService, SYSTEM_ACTOR
from raffle.services.contest.store import ContestStore
from raffle.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class WinnerService:
    """Service for winner selection and winner history"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Clock = utcnow,
        rng: Optional[random.Random] = None
    ):
        self.db = db
        self.store = ContestStore(db)
        self.audit_service = AuditService(db)
        self.clock = clock
        self.rng = rng or secrets.SystemRandom()

    async def select_winners(
        self,
        contest_id: str
    ) -> Tuple[bool, Optional[ContestError], Optional[List[Dict]]]:
        """
        Draw the winners of a closed contest.

        Returns the persisted winners if the contest is already completed,
        and an empty list (no state change) when nobody submitted.
        """
        contest = await self.store.find_contest_by_id(contest_id)

        if not contest:
            return False, ContestError.CONTEST_NOT_FOUND, None

        if contest["status"] == ContestStatus.COMPLETED:
            return True, None, await self.store.list_winners(contest_id)

        if await self.store.count_submissions(contest_id) == 0:
            logger.info(f"[WINNERS] Contest {contest_id} has no submissions, nothing to draw")
            return True, None, []

        if contest["status"] == ContestStatus.ACTIVE and not contest.get("submissions_stopped", False):
            return False, ContestError.CONTEST_NOT_CLOSED, None

        now = self.clock()
        claimed = await self.store.claim_winner_draw(contest_id, now)

        if not claimed:
            # Another caller holds the draw, or finished it meanwhile
            current = await self.store.find_contest_by_id(contest_id)
            if current and current["status"] == ContestStatus.COMPLETED:
                logger.debug(f"Draw for contest {contest_id} already completed by another caller")
                return True, None, await self.store.list_winners(contest_id)
            logger.debug(f"Draw for contest {contest_id} is held by another caller")
            return False, ContestError.DRAW_IN_PROGRESS, None

        try:
            winners = await self._draw(claimed, now)
        except BaseException:
            # release the claim on any failure, cancellation included
            logger.exception(f"[ERROR] Winner draw failed for contest {contest_id}, rolling back")
            await self.store.rollback_winner_draw(contest_id)
            raise

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.WINNERS_SELECTED,
            actor=SYSTEM_ACTOR,
            entity_type="contest",
            entity_id=contest_id,
            metadata={
                "winner_count": len(winners),
                "addresses": [winner["address"] for winner in winners],
                "prize_amount": claimed["prize_amount"]
            }
        )

        logger.info(f"[WINNERS] Contest {contest_id} completed with {len(winners)} winner(s)")
        return True, None, winners

    async def _draw(self, contest: Dict, now) -> List[Dict]:
        """Sample and persist winners for a claimed contest"""
        contest_id = str(contest["_id"])

        # Submissions are frozen once the draw is claimed
        submissions = await self.store.list_submissions(contest_id)
        k = min(contest.get("winner_count", 1), len(submissions))
        drawn = self.rng.sample(submissions, k)

        winners = await self.store.insert_winners([
            {
                "contest_id": contest_id,
                "address": submission["address"],
                "prize_amount": contest["prize_amount"],
                "won_at": now
            }
            for submission in drawn
        ])

        await self.store.complete_winner_draw(contest_id, now)
        return winners

    async def get_contest_winners(self, contest_id: str) -> List[Dict]:
        return await self.store.list_winners(contest_id)

    async def get_winner_history(self) -> List[Dict]:
        """All winners, newest first, with their contest attached"""
        return await self.store.list_all_winners_with_contest()
