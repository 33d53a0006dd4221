import os
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Tuple
from datetime import datetime
from dotenv import load_dotenv
from pydantic import ValidationError

from raffle.models.contest.contest import ContestStatus
from raffle.models.contest.task import TaskCreate, TaskType
from raffle.models.contest.audit import AuditAction
from raffle.models.contest.errors import ContestError
from raffle.services.contest.audit import AuditService, OPERATOR_ACTOR
from raffle.services.contest.store import ContestStore
from raffle.utils.address import is_valid_address, normalize_address
from raffle.utils.clock import Clock, utcnow
from raffle.utils.validation import format_validation_errors

load_dotenv()

logger = logging.getLogger(__name__)


def default_task_settings() -> Dict:
    """Required task attached to every new contest"""
    return {
        "task_type": os.getenv("DEFAULT_TASK_TYPE", TaskType.FOLLOW_TWITTER.value),
        "description": os.getenv("DEFAULT_TASK_DESCRIPTION", "Follow @agungfathul on X (Twitter)"),
        "url": os.getenv("DEFAULT_TASK_URL", "https://x.com/agungfathul") or None,
        "is_required": True
    }


class TaskService:
    """Service for contest tasks and the task gate"""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Clock = utcnow):
        self.db = db
        self.store = ContestStore(db)
        self.audit_service = AuditService(db)
        self.clock = clock

    async def create_default_task(self, contest_id: str, now: datetime) -> Dict:
        """Insert the configured default required task for a new contest"""
        settings = default_task_settings()
        task = {
            "contest_id": contest_id,
            "task_type": settings["task_type"],
            "description": settings["description"],
            "url": settings["url"],
            "is_required": True,
            "created_at": now
        }
        return await self.store.insert_task(task)

    async def add_task(
        self,
        contest_id: str,
        task_type: str,
        description: str,
        url: Optional[str] = None,
        is_required: bool = True
    ) -> Tuple[bool, Optional[ContestError], Optional[Dict]]:
        """Add a task to a contest (not allowed once winners are drawn)"""
        try:
            task_data = TaskCreate(
                task_type=task_type,
                description=description,
                url=url or None,
                is_required=is_required
            )
        except ValidationError as e:
            return False, ContestError.INVALID_INPUT, {"errors": format_validation_errors(e)}

        contest = await self.store.find_contest_by_id(contest_id)

        if not contest:
            return False, ContestError.CONTEST_NOT_FOUND, None

        if contest["status"] == ContestStatus.COMPLETED:
            return False, ContestError.CONTEST_COMPLETED, None

        task = await self.store.insert_task({
            "contest_id": contest_id,
            "task_type": task_data.task_type.value,
            "description": task_data.description,
            "url": task_data.url,
            "is_required": task_data.is_required,
            "created_at": self.clock()
        })

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.TASK_CREATED,
            actor=OPERATOR_ACTOR,
            entity_type="task",
            entity_id=str(task["_id"]),
            metadata={
                "task_type": task["task_type"],
                "is_required": task["is_required"]
            }
        )

        return True, None, task

    async def get_contest_tasks(
        self,
        contest_id: str,
        address: Optional[str] = None
    ) -> List[Dict]:
        """Get all tasks for a contest, flagged with the address's completions"""
        tasks = await self.store.list_tasks(contest_id)

        completed_ids = set()
        if address and is_valid_address(address):
            completions = await self.store.list_completions(contest_id, normalize_address(address))
            completed_ids = {completion["task_id"] for completion in completions}

        for task in tasks:
            task["completed"] = str(task["_id"]) in completed_ids

        return tasks

    async def get_user_completions(self, contest_id: str, address: str) -> List[Dict]:
        if not is_valid_address(address):
            return []
        return await self.store.list_completions(contest_id, normalize_address(address))

    async def get_missing_required_tasks(self, contest_id: str, address: str) -> List[Dict]:
        """Required tasks the address has not completed yet"""
        required = await self.store.list_required_tasks(contest_id)

        if not required:
            return []

        completions = await self.store.list_completions(contest_id, address)
        completed_ids = {completion["task_id"] for completion in completions}

        return [task for task in required if str(task["_id"]) not in completed_ids]

    async def has_completed_required_tasks(self, contest_id: str, address: str) -> bool:
        """Task gate: every required task has a completion for this address"""
        missing = await self.get_missing_required_tasks(contest_id, address)
        return not missing

    async def mark_task_completed(
        self,
        contest_id: str,
        address: str,
        task_id: str
    ) -> Tuple[bool, Optional[ContestError], Optional[Dict]]:
        """
        Record that an address completed a task.

        Idempotent: marking an already completed task is a success, the
        unique (contest, address, task) index absorbs the repeat.
        """
        if not is_valid_address(address):
            return False, ContestError.INVALID_FORMAT, None

        address = normalize_address(address)

        task = await self.store.find_task(contest_id, task_id)
        if not task:
            return False, ContestError.TASK_NOT_FOUND, None

        newly_completed = await self.store.insert_task_completion(
            contest_id, address, str(task["_id"]), self.clock()
        )

        if newly_completed:
            await self.audit_service.log_action(
                contest_id=contest_id,
                action=AuditAction.TASK_COMPLETED,
                actor=address,
                entity_type="task",
                entity_id=str(task["_id"])
            )
        else:
            logger.debug(f"Task {task_id} already completed by {address} in contest {contest_id}")

        return True, None, {
            "contest_id": contest_id,
            "address": address,
            "task_id": str(task["_id"]),
            "already_completed": not newly_completed
        }
