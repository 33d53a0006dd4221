"""
Contest Store

MongoDB data access for the contest engine. Writes are single statements
so concurrent callers are arbitrated by the database itself:
- unique indexes reject duplicate inserts (see Database.create_indexes)
- conditional updates only touch documents still matching their guard

Storage errors are not caught here; they propagate to the caller.
"""
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Any
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from raffle.models.contest.contest import ACTIVE_SLOT, ContestStatus

logger = logging.getLogger(__name__)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a contest/task id, None when it is not a valid ObjectId"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class ContestStore:
    """Persistence port for contests and their child records"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.contests = db.contests
        self.submissions = db.contest_submissions
        self.tasks = db.contest_tasks
        self.completions = db.contest_task_completions
        self.winners = db.contest_winners

    # ==================== CONTESTS ====================

    async def insert_contest(self, contest: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a contest; raises DuplicateKeyError if another holds the active slot"""
        result = await self.contests.insert_one(contest)
        contest["_id"] = result.inserted_id
        return contest

    async def end_active_contests(self, now: datetime) -> List[Dict]:
        """
        Move every ACTIVE contest to ENDED and free the active slot.

        Returns the contests that were ended by this call.
        """
        active = await self.contests.find({"status": ContestStatus.ACTIVE}).to_list(length=None)
        ended = []

        for contest in active:
            result = await self.contests.update_one(
                {"_id": contest["_id"], "status": ContestStatus.ACTIVE},
                {
                    "$set": {
                        "status": ContestStatus.ENDED.value,
                        "ended_at": now,
                        "updated_at": now
                    },
                    "$unset": {"active_slot": ""}
                }
            )
            if result.modified_count:
                ended.append(contest)

        return ended

    async def rollback_contest_creation(self, contest_id: str, ended: List[Dict]) -> None:
        """
        Undo a failed create: drop the new contest and its tasks, then give
        the active slot back to the contests this create ended.
        """
        await self.tasks.delete_many({"contest_id": contest_id})
        await self.contests.delete_one({"_id": to_object_id(contest_id)})

        for contest in ended:
            try:
                await self.contests.update_one(
                    {
                        "_id": contest["_id"],
                        "status": ContestStatus.ENDED.value,
                        "manually_stopped": {"$ne": True},
                        "winner_draw_claimed": {"$ne": True}
                    },
                    {"$set": {
                        "status": ContestStatus.ACTIVE.value,
                        "active_slot": ACTIVE_SLOT,
                        "ended_at": contest.get("ended_at"),
                        "updated_at": contest.get("updated_at")
                    }}
                )
            except DuplicateKeyError:
                # a concurrent create already holds the slot
                logger.warning(f"[WARN] Contest {contest['_id']} stays ended, active slot is taken")

    async def update_contest_flags(
        self,
        contest_id: str,
        guard: Dict[str, Any],
        fields: Dict[str, Any],
        unset: Optional[List[str]] = None
    ) -> bool:
        """
        Conditionally update one contest.

        `guard` is merged into the filter, so the write only lands if the
        contest still matches it. Returns True when a document changed.
        """
        oid = to_object_id(contest_id)
        if oid is None:
            return False

        update: Dict[str, Any] = {"$set": fields}
        if unset:
            update["$unset"] = {field: "" for field in unset}

        result = await self.contests.update_one({"_id": oid, **guard}, update)
        return result.modified_count > 0

    async def find_contest_by_id(self, contest_id: str) -> Optional[Dict]:
        oid = to_object_id(contest_id)
        if oid is None:
            return None
        return await self.contests.find_one({"_id": oid})

    async def find_active_contest(self) -> Optional[Dict]:
        return await self.contests.find_one(
            {"status": ContestStatus.ACTIVE},
            sort=[("created_at", -1)]
        )

    async def find_last_completed_contest(self) -> Optional[Dict]:
        return await self.contests.find_one(
            {"status": ContestStatus.COMPLETED},
            sort=[("created_at", -1)]
        )

    async def find_open_contests(self) -> List[Dict]:
        """Active contests whose submissions may still be open"""
        return await self.contests.find({
            "status": ContestStatus.ACTIVE,
            "manually_stopped": False,
            "submissions_stopped": False
        }).to_list(length=None)

    async def find_contests_by_ids(self, contest_ids: List[str]) -> Dict[str, Dict]:
        oids = [oid for oid in (to_object_id(cid) for cid in contest_ids) if oid is not None]
        if not oids:
            return {}
        contests = await self.contests.find({"_id": {"$in": oids}}).to_list(length=None)
        return {str(contest["_id"]): contest for contest in contests}

    # ==================== SUBMISSIONS ====================

    async def insert_submission(self, contest_id: str, address: str, now: datetime) -> Dict[str, Any]:
        """Insert a submission; raises DuplicateKeyError if the address already entered"""
        submission = {
            "contest_id": contest_id,
            "address": address,
            "submitted_at": now
        }
        result = await self.submissions.insert_one(submission)
        submission["_id"] = result.inserted_id
        return submission

    async def find_submission(self, contest_id: str, address: str) -> Optional[Dict]:
        return await self.submissions.find_one({"contest_id": contest_id, "address": address})

    async def count_submissions(self, contest_id: str) -> int:
        return await self.submissions.count_documents({"contest_id": contest_id})

    async def list_submissions(self, contest_id: str) -> List[Dict]:
        return await self.submissions.find(
            {"contest_id": contest_id}
        ).sort("submitted_at", 1).to_list(length=None)

    # ==================== TASKS ====================

    async def insert_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.tasks.insert_one(task)
        task["_id"] = result.inserted_id
        return task

    async def find_task(self, contest_id: str, task_id: str) -> Optional[Dict]:
        oid = to_object_id(task_id)
        if oid is None:
            return None
        return await self.tasks.find_one({"_id": oid, "contest_id": contest_id})

    async def list_tasks(self, contest_id: str) -> List[Dict]:
        return await self.tasks.find(
            {"contest_id": contest_id}
        ).sort("created_at", 1).to_list(length=None)

    async def list_required_tasks(self, contest_id: str) -> List[Dict]:
        return await self.tasks.find(
            {"contest_id": contest_id, "is_required": True}
        ).sort("created_at", 1).to_list(length=None)

    async def insert_task_completion(
        self,
        contest_id: str,
        address: str,
        task_id: str,
        now: datetime
    ) -> bool:
        """Record a completion; False when it was already recorded"""
        try:
            await self.completions.insert_one({
                "contest_id": contest_id,
                "address": address,
                "task_id": task_id,
                "completed_at": now
            })
        except DuplicateKeyError:
            return False
        return True

    async def list_completions(self, contest_id: str, address: str) -> List[Dict]:
        return await self.completions.find({
            "contest_id": contest_id,
            "address": address
        }).to_list(length=None)

    # ==================== WINNERS ====================

    async def claim_winner_draw(self, contest_id: str, now: datetime) -> Optional[Dict]:
        """
        Atomically claim the right to draw winners for a contest.

        Only a contest whose submissions are closed, that is not completed and
        whose draw is unclaimed can be claimed. Returns the claimed contest
        document, or None if another caller holds (or finished) the draw.
        """
        oid = to_object_id(contest_id)
        if oid is None:
            return None

        return await self.contests.find_one_and_update(
            {
                "_id": oid,
                "status": {"$ne": ContestStatus.COMPLETED},
                "winner_draw_claimed": {"$ne": True},
                "$or": [
                    {"status": ContestStatus.ENDED},
                    {"submissions_stopped": True}
                ]
            },
            {"$set": {"winner_draw_claimed": True, "updated_at": now}},
            return_document=ReturnDocument.AFTER
        )

    async def complete_winner_draw(self, contest_id: str, now: datetime) -> bool:
        """Mark a claimed contest COMPLETED once its winners are stored"""
        return await self.update_contest_flags(
            contest_id,
            {"winner_draw_claimed": True},
            {
                "status": ContestStatus.COMPLETED.value,
                "submissions_stopped": True,
                "completed_at": now,
                "updated_at": now
            },
            unset=["active_slot"]
        )

    async def rollback_winner_draw(self, contest_id: str) -> None:
        """Undo a failed draw: drop its winners and release the claim"""
        await self.winners.delete_many({"contest_id": contest_id})
        await self.update_contest_flags(
            contest_id,
            {"status": {"$ne": ContestStatus.COMPLETED}},
            {"winner_draw_claimed": False}
        )

    async def insert_winners(self, winners: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not winners:
            return []
        result = await self.winners.insert_many(winners)
        for winner, inserted_id in zip(winners, result.inserted_ids):
            winner["_id"] = inserted_id
        return winners

    async def list_winners(self, contest_id: str) -> List[Dict]:
        return await self.winners.find(
            {"contest_id": contest_id}
        ).sort([("won_at", -1), ("_id", 1)]).to_list(length=None)

    async def list_all_winners_with_contest(self) -> List[Dict]:
        """Every winner, newest first, with the owning contest attached"""
        winners = await self.winners.find({}).sort([("won_at", -1), ("_id", 1)]).to_list(length=None)
        contests = await self.find_contests_by_ids(list({w["contest_id"] for w in winners}))

        for winner in winners:
            contest = contests.get(winner["contest_id"], {})
            winner["contest"] = {
                "id": winner["contest_id"],
                "contest_type": contest.get("contest_type"),
                "start_time": contest.get("start_time"),
                "end_time": contest.get("end_time"),
                "duration_minutes": contest.get("duration_minutes"),
                "max_participants": contest.get("max_participants"),
                "winner_count": contest.get("winner_count")
            }

        return winners
