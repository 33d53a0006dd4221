import os
import logging
from motor.motor_asyncio import AsyncIOMotorClient
from typing import Optional
from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB"""
        mongodb_url = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
        cls.client = AsyncIOMotorClient(mongodb_url, tz_aware=False)
        logger.info("[OK] Connected to MongoDB")

        # Create indexes
        await cls.create_indexes()

    @classmethod
    async def create_indexes(cls):
        """
        Create database indexes.

        The unique indexes are what keep the contest engine exactly-once:
        one active contest, one submission per address, one completion per
        task and one winner row per address.
        """
        db = cls.get_db()

        # Contest indexes
        # active_slot only exists while a contest is active (sparse + unique)
        try:
            await db.contests.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
            await db.contests.create_index(
                [("active_slot", ASCENDING)],
                unique=True,
                sparse=True
            )
            logger.info("[OK] Created indexes on contests")
        except PyMongoError as e:
            logger.warning(f"[WARN] Indexes on contests may already exist: {e}")

        # Submission indexes
        try:
            await db.contest_submissions.create_index(
                [("contest_id", ASCENDING), ("address", ASCENDING)],
                unique=True
            )
            await db.contest_submissions.create_index([("contest_id", ASCENDING), ("submitted_at", ASCENDING)])
            logger.info("[OK] Created indexes on contest_submissions")
        except PyMongoError as e:
            logger.warning(f"[WARN] Indexes on contest_submissions may already exist: {e}")

        # Task indexes
        try:
            await db.contest_tasks.create_index([("contest_id", ASCENDING), ("created_at", ASCENDING)])
            logger.info("[OK] Created index on contest_tasks")
        except PyMongoError as e:
            logger.warning(f"[WARN] Index on contest_tasks may already exist: {e}")

        # Task completion indexes
        try:
            await db.contest_task_completions.create_index(
                [("contest_id", ASCENDING), ("address", ASCENDING), ("task_id", ASCENDING)],
                unique=True
            )
            logger.info("[OK] Created unique index on contest_task_completions")
        except PyMongoError as e:
            logger.warning(f"[WARN] Index on contest_task_completions may already exist: {e}")

        # Winner indexes
        try:
            await db.contest_winners.create_index(
                [("contest_id", ASCENDING), ("address", ASCENDING)],
                unique=True
            )
            await db.contest_winners.create_index([("won_at", DESCENDING)])
            logger.info("[OK] Created indexes on contest_winners")
        except PyMongoError as e:
            logger.warning(f"[WARN] Indexes on contest_winners may already exist: {e}")

        # Audit log indexes
        try:
            await db.contest_audit_log.create_index([("contest_id", ASCENDING), ("timestamp", DESCENDING)])
            logger.info("[OK] Created index on contest_audit_log")
        except PyMongoError as e:
            logger.warning(f"[WARN] Index on contest_audit_log may already exist: {e}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            logger.info("[OK] Disconnected from MongoDB")

    @classmethod
    def get_db(cls):
        """Get database instance"""
        database_name = os.getenv("DATABASE_NAME", "raffle")
        return cls.client[database_name]
