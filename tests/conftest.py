from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from raffle.database import Database
from raffle.services.contest.contest import ContestService
from raffle.services.contest.submission import SubmissionService
from raffle.services.contest.task import TaskService
from raffle.services.contest.winner import WinnerService


class FakeClock:
    """Controllable server clock (naive UTC)"""

    def __init__(self, now=None):
        self.now = now or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def db(monkeypatch):
    """Fresh in-memory database carrying the production indexes"""
    monkeypatch.setenv("DATABASE_NAME", "raffle_test")
    Database.client = AsyncMongoMockClient()
    await Database.create_indexes()
    yield Database.get_db()
    Database.client = None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def contest_service(db, clock):
    return ContestService(db, clock)


@pytest.fixture
def submission_service(db, clock):
    return SubmissionService(db, clock)


@pytest.fixture
def task_service(db, clock):
    return TaskService(db, clock)


@pytest.fixture
def winner_service(db, clock):
    return WinnerService(db, clock)


@pytest.fixture
def complete_required(task_service):
    """Complete every required task of a contest for one address"""
    async def _complete(contest_id, address):
        for task in await task_service.get_contest_tasks(contest_id):
            if task["is_required"]:
                await task_service.mark_task_completed(contest_id, address, str(task["_id"]))
    return _complete


@pytest.fixture
def enter(complete_required, submission_service):
    """Complete the task gate, then submit"""
    async def _enter(contest_id, address):
        await complete_required(contest_id, address)
        return await submission_service.submit(contest_id, address)
    return _enter
