import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Tuple
from pymongo.errors import DuplicateKeyError

from raffle.models.contest.contest import ContestStatus
from raffle.models.contest.audit import AuditAction
from raffle.models.contest.errors import ContestError
from raffle.services.contest.audit import AuditService
from raffle.services.contest.expiry import is_naturally_expired
from raffle.services.contest.store import ContestStore
from raffle.services.contest.task import TaskService
from raffle.utils.address import is_valid_address, normalize_address
from raffle.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class SubmissionService:
    """Service for contest submission admission"""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Clock = utcnow):
        self.db = db
        self.store = ContestStore(db)
        self.task_service = TaskService(db, clock)
        self.audit_service = AuditService(db)
        self.clock = clock

    async def submit(
        self,
        contest_id: str,
        address: str
    ) -> Tuple[bool, Optional[ContestError], Optional[Dict]]:
        """
        Admit one address into a contest.

        Checks run in order: address format, contest state, closed
        submissions, task gate. An address that already entered a closed
        contest gets duplicate_submission rather than submissions_closed.
        The unique (contest, address) index decides duplicates, so two
        concurrent submits of one address admit exactly one.
        """
        if not is_valid_address(address):
            return False, ContestError.INVALID_FORMAT, None

        address = normalize_address(address)

        contest = await self.store.find_contest_by_id(contest_id)

        if not contest:
            return False, ContestError.CONTEST_NOT_FOUND, None

        if contest["status"] != ContestStatus.ACTIVE:
            return False, ContestError.CONTEST_NOT_ACTIVE, None

        now = self.clock()
        submission_count = await self.store.count_submissions(contest_id)

        # Reconciliation may not have run yet, so expiry is checked here too
        closed = contest.get("submissions_stopped", False) or \
            is_naturally_expired(contest, submission_count, now)

        if closed:
            # An address that already entered is told so, even once closed
            if await self.store.find_submission(contest_id, address):
                return False, ContestError.DUPLICATE_SUBMISSION, None
            return False, ContestError.SUBMISSIONS_CLOSED, None

        if not await self.task_service.has_completed_required_tasks(contest_id, address):
            return False, ContestError.TASKS_INCOMPLETE, None

        try:
            submission = await self.store.insert_submission(contest_id, address, now)
        except DuplicateKeyError:
            logger.debug(f"Duplicate submission from {address} in contest {contest_id}")
            return False, ContestError.DUPLICATE_SUBMISSION, None

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.SUBMISSION_CREATED,
            actor=address,
            entity_type="submission",
            entity_id=str(submission["_id"])
        )

        logger.info(f"[SUBMISSION] {address} entered contest {contest_id}")
        return True, None, submission
