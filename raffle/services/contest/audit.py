import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Any, List
from pymongo.errors import PyMongoError

from raffle.models.contest.audit import AuditAction
from raffle.utils.clock import utcnow

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
OPERATOR_ACTOR = "operator"


class AuditService:
    """Service for audit trail logging"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.audit_log = db.contest_audit_log

    async def log_action(
        self,
        contest_id: str,
        action: AuditAction,
        actor: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Log an audit trail entry.

        Best effort: a failed audit write is logged and never undoes or fails
        the contest operation that triggered it.
        """
        try:
            audit_entry = {
                "contest_id": contest_id,
                "action": action.value,
                "actor": actor,
                "entity_type": entity_type,  # "contest", "task", "submission", "winner"
                "entity_id": entity_id,
                "metadata": metadata,
                "timestamp": utcnow()
            }

            await self.audit_log.insert_one(audit_entry)
            return True

        except PyMongoError as e:
            logger.error(f"[ERROR] Failed to log audit action {action.value} for contest {contest_id}: {e}")
            return False

    async def get_contest_history(
        self,
        contest_id: str,
        limit: int = 100
    ) -> List[Dict]:
        """Get audit history for a contest"""
        return await self.audit_log.find({
            "contest_id": contest_id
        }).sort("timestamp", -1).limit(limit).to_list(length=limit)
