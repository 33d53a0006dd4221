import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Tuple, Any
from datetime import datetime, timedelta
from decimal import Decimal
from bson import ObjectId
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from raffle.models.contest.contest import (
    ContestCreate,
    ContestInDB,
    ContestStatus,
    ContestType,
    StopReason
)
from raffle.models.contest.audit import AuditAction
from raffle.models.contest.errors import ContestError
from raffle.services.contest.audit import AuditService, SYSTEM_ACTOR, OPERATOR_ACTOR
from raffle.services.contest.expiry import (
    is_naturally_expired,
    is_accepting_submissions,
    seconds_remaining,
    time_remaining_label,
    spots_remaining
)
from raffle.services.contest.store import ContestStore
from raffle.services.contest.task import TaskService
from raffle.services.contest.winner import WinnerService
from raffle.utils.clock import Clock, utcnow
from raffle.utils.validation import format_validation_errors

logger = logging.getLogger(__name__)

# Concurrent creators racing for the active slot
MAX_CREATE_ATTEMPTS = 3


class ContestService:
    """Service for the contest lifecycle: create, expire, stop and read"""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Clock = utcnow):
        self.db = db
        self.store = ContestStore(db)
        self.task_service = TaskService(db, clock)
        self.winner_service = WinnerService(db, clock)
        self.audit_service = AuditService(db)
        self.clock = clock

    async def create_contest(
        self,
        prize_amount: Any,
        contest_type: str,
        duration_minutes: Optional[int] = None,
        max_participants: Optional[int] = None,
        winner_count: int = 1
    ) -> Tuple[bool, Optional[ContestError], Optional[Dict]]:
        """
        Create a new active contest, ending whichever contest was active.

        Settings are validated before anything is written. start_time and
        end_time always come from the server clock.
        """
        try:
            contest_data = ContestCreate(
                prize_amount=prize_amount,
                contest_type=contest_type,
                duration_minutes=duration_minutes,
                max_participants=max_participants,
                winner_count=winner_count
            )
        except ValidationError as e:
            return False, ContestError.INVALID_INPUT, {"errors": format_validation_errors(e)}

        now = self.clock()
        end_time = None
        if contest_data.contest_type == ContestType.DURATION:
            end_time = now + timedelta(minutes=contest_data.duration_minutes)

        # The gate exists before the contest can accept anyone
        contest_oid = ObjectId()
        contest_id = str(contest_oid)
        await self.task_service.create_default_task(contest_id, now)

        ended = []
        try:
            for attempt in range(MAX_CREATE_ATTEMPTS):
                ended.extend(await self.store.end_active_contests(now))

                contest_doc = ContestInDB(
                    prize_amount=self._format_prize(contest_data.prize_amount),
                    contest_type=contest_data.contest_type,
                    duration_minutes=contest_data.duration_minutes,
                    max_participants=contest_data.max_participants,
                    winner_count=contest_data.winner_count,
                    start_time=now,
                    end_time=end_time,
                    created_at=now,
                    updated_at=now
                ).model_dump()
                contest_doc["_id"] = contest_oid

                try:
                    contest = await self.store.insert_contest(contest_doc)
                    break
                except DuplicateKeyError:
                    # Another creator took the active slot between our end and insert
                    if attempt == MAX_CREATE_ATTEMPTS - 1:
                        raise
                    logger.debug(f"Active slot taken during contest creation, retrying ({attempt + 1})")
        except BaseException:
            logger.exception(f"[ERROR] Contest creation failed, rolling back {contest_id}")
            await self.store.rollback_contest_creation(contest_id, ended)
            raise

        await self._log_ended_contests(ended)

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_CREATED,
            actor=OPERATOR_ACTOR,
            entity_type="contest",
            entity_id=contest_id,
            metadata={
                "contest_type": contest["contest_type"],
                "prize_amount": contest["prize_amount"],
                "winner_count": contest["winner_count"],
                "duration_minutes": contest["duration_minutes"],
                "max_participants": contest["max_participants"]
            }
        )

        logger.info(f"[OK] Contest {contest_id} created ({contest['contest_type']})")
        return True, None, contest

    @staticmethod
    def _format_prize(amount: Decimal) -> str:
        """Plain decimal string, no exponent"""
        return format(amount.normalize(), "f")

    async def _log_ended_contests(self, ended: List[Dict]):
        for contest in ended:
            contest_id = str(contest["_id"])
            await self.audit_service.log_action(
                contest_id=contest_id,
                action=AuditAction.CONTEST_ENDED,
                actor=SYSTEM_ACTOR,
                entity_type="contest",
                entity_id=contest_id,
                metadata={"reason": "replaced"}
            )
            logger.info(f"[OK] Contest {contest_id} ended, replaced by a new contest")

    async def reconcile_expired(self) -> Dict[str, Any]:
        """
        Close submissions on every open contest that reached its end condition.

        Safe to run from any number of callers at once: the update only lands
        on a contest that is still active, not manually stopped and still
        open, so concurrent runs converge on one write.
        """
        now = self.clock()
        results = {
            "processed": 0,
            "stopped": []
        }

        open_contests = await self.store.find_open_contests()

        for contest in open_contests:
            contest_id = str(contest["_id"])
            results["processed"] += 1

            submission_count = 0
            if contest.get("contest_type") == ContestType.PARTICIPANTS:
                submission_count = await self.store.count_submissions(contest_id)

            if not is_naturally_expired(contest, submission_count, now):
                continue

            stopped = await self.store.update_contest_flags(
                contest_id,
                {
                    "status": ContestStatus.ACTIVE.value,
                    "manually_stopped": False,
                    "submissions_stopped": False
                },
                {
                    "submissions_stopped": True,
                    "submissions_stopped_at": now,
                    "stop_reason": StopReason.EXPIRED.value,
                    "updated_at": now
                }
            )

            if not stopped:
                logger.debug(f"Contest {contest_id} was closed by another caller")
                continue

            results["stopped"].append(contest_id)

            await self.audit_service.log_action(
                contest_id=contest_id,
                action=AuditAction.SUBMISSIONS_STOPPED,
                actor=SYSTEM_ACTOR,
                entity_type="contest",
                entity_id=contest_id,
                metadata={
                    "reason": StopReason.EXPIRED.value,
                    "submission_count": submission_count
                }
            )
            logger.info(f"[OK] Contest {contest_id} expired, submissions closed")

        return results

    async def stop_submissions_manually(
        self,
        contest_id: str
    ) -> Tuple[bool, Optional[ContestError], Optional[Dict]]:
        """Close submissions without ending the contest (idempotent)"""
        contest = await self.store.find_contest_by_id(contest_id)

        if not contest:
            return False, ContestError.CONTEST_NOT_FOUND, None

        now = self.clock()
        stopped = await self.store.update_contest_flags(
            contest_id,
            {"submissions_stopped": {"$ne": True}},
            {
                "submissions_stopped": True,
                "submissions_stopped_at": now,
                "stop_reason": StopReason.MANUAL.value,
                "updated_at": now
            }
        )

        if stopped:
            await self.audit_service.log_action(
                contest_id=contest_id,
                action=AuditAction.SUBMISSIONS_STOPPED,
                actor=OPERATOR_ACTOR,
                entity_type="contest",
                entity_id=contest_id,
                metadata={"reason": StopReason.MANUAL.value}
            )
            logger.info(f"[OK] Submissions stopped manually for contest {contest_id}")

        return True, None, await self.store.find_contest_by_id(contest_id)

    async def stop_contest_manually(
        self,
        contest_id: str
    ) -> Tuple[bool, Optional[ContestError], Optional[List[Dict]]]:
        """
        End a contest now and draw its winners.

        Returns the winner selector's result. With no submissions the
        contest stays ENDED and the winner list is empty.
        """
        contest = await self.store.find_contest_by_id(contest_id)

        if not contest:
            return False, ContestError.CONTEST_NOT_FOUND, None

        if contest["status"] != ContestStatus.COMPLETED:
            now = self.clock()
            fields = {
                "manually_stopped": True,
                "status": ContestStatus.ENDED.value,
                "submissions_stopped": True,
                "updated_at": now
            }
            if not contest.get("submissions_stopped", False):
                fields["submissions_stopped_at"] = now
                fields["stop_reason"] = StopReason.CONTEST_STOPPED.value
            if contest["status"] == ContestStatus.ACTIVE:
                fields["ended_at"] = now

            stopped = await self.store.update_contest_flags(
                contest_id,
                {"status": {"$ne": ContestStatus.COMPLETED.value}, "manually_stopped": {"$ne": True}},
                fields,
                unset=["active_slot"]
            )

            if stopped:
                await self.audit_service.log_action(
                    contest_id=contest_id,
                    action=AuditAction.CONTEST_STOPPED,
                    actor=OPERATOR_ACTOR,
                    entity_type="contest",
                    entity_id=contest_id
                )
                logger.info(f"[OK] Contest {contest_id} stopped manually")

        return await self.winner_service.select_winners(contest_id)

    # ==================== READS ====================

    async def get_current_contest(self, address: Optional[str] = None) -> Optional[Dict]:
        """Active contest after closing anything that expired"""
        await self.reconcile_expired()

        contest = await self.store.find_active_contest()
        if not contest:
            return None

        return await self._decorate(contest, self.clock(), address)

    async def get_last_completed_contest(self) -> Optional[Dict]:
        contest = await self.store.find_last_completed_contest()
        if not contest:
            return None

        contest_id = str(contest["_id"])
        contest["submission_count"] = await self.store.count_submissions(contest_id)
        contest["winners"] = await self.store.list_winners(contest_id)
        return contest

    async def get_contest(self, contest_id: str, address: Optional[str] = None) -> Optional[Dict]:
        contest = await self.store.find_contest_by_id(contest_id)
        if not contest:
            return None
        return await self._decorate(contest, self.clock(), address)

    async def get_contest_submissions(
        self,
        contest_id: str
    ) -> Tuple[bool, Optional[ContestError], Optional[List[Dict]]]:
        contest = await self.store.find_contest_by_id(contest_id)
        if not contest:
            return False, ContestError.CONTEST_NOT_FOUND, None
        return True, None, await self.store.list_submissions(contest_id)

    async def _decorate(self, contest: Dict, now: datetime, address: Optional[str] = None) -> Dict:
        """Attach the values a reader needs to present the contest"""
        contest_id = str(contest["_id"])
        submission_count = await self.store.count_submissions(contest_id)

        contest["submission_count"] = submission_count
        contest["is_expired"] = is_naturally_expired(contest, submission_count, now)
        contest["accepting_submissions"] = is_accepting_submissions(contest, submission_count, now)
        contest["seconds_remaining"] = seconds_remaining(contest, now)
        contest["time_remaining"] = time_remaining_label(contest, now)
        contest["spots_remaining"] = spots_remaining(contest, submission_count)
        contest["tasks"] = await self.task_service.get_contest_tasks(contest_id, address)

        return contest
