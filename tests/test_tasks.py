from bson import ObjectId

import pytest
import pytest_asyncio

from raffle.models.contest.errors import ContestError

ADDRESS_A = "0x" + "a" * 40
ADDRESS_B = "0x" + "b" * 40


@pytest_asyncio.fixture
async def contest_id(contest_service):
    _, _, contest = await contest_service.create_contest("1", "duration", duration_minutes=60)
    return str(contest["_id"])


async def default_task_id(task_service, contest_id):
    tasks = await task_service.get_contest_tasks(contest_id)
    return str(tasks[0]["_id"])


class TestMarkTaskCompleted:

    async def test_mark_completed(self, db, contest_id, task_service):
        task_id = await default_task_id(task_service, contest_id)

        success, reason, completion = await task_service.mark_task_completed(contest_id, ADDRESS_A, task_id)

        assert success and reason is None
        assert completion["already_completed"] is False
        assert await task_service.has_completed_required_tasks(contest_id, ADDRESS_A)
        assert not await task_service.has_completed_required_tasks(contest_id, ADDRESS_B)

    async def test_mark_completed_twice_is_success(self, db, contest_id, task_service):
        task_id = await default_task_id(task_service, contest_id)

        await task_service.mark_task_completed(contest_id, ADDRESS_A, task_id)
        success, reason, completion = await task_service.mark_task_completed(
            contest_id, "0x" + "A" * 40, task_id
        )

        assert success and reason is None
        assert completion["already_completed"] is True
        assert await db.contest_task_completions.count_documents({}) == 1
        assert await db.contest_audit_log.count_documents({"action": "task_completed"}) == 1

    async def test_invalid_address(self, db, contest_id, task_service):
        task_id = await default_task_id(task_service, contest_id)

        success, reason, _ = await task_service.mark_task_completed(contest_id, "0x123", task_id)

        assert not success
        assert reason == ContestError.INVALID_FORMAT
        assert await db.contest_task_completions.count_documents({}) == 0

    @pytest.mark.parametrize("task_id", ["not-an-id", str(ObjectId())])
    async def test_unknown_task(self, db, contest_id, task_service, task_id):
        success, reason, _ = await task_service.mark_task_completed(contest_id, ADDRESS_A, task_id)

        assert not success
        assert reason == ContestError.TASK_NOT_FOUND

    async def test_task_of_another_contest(self, db, contest_id, contest_service, task_service):
        task_id = await default_task_id(task_service, contest_id)
        _, _, other = await contest_service.create_contest("2", "duration", duration_minutes=60)

        success, reason, _ = await task_service.mark_task_completed(str(other["_id"]), ADDRESS_A, task_id)

        assert not success
        assert reason == ContestError.TASK_NOT_FOUND


class TestTaskList:

    async def test_completed_flags(self, db, contest_id, task_service, clock):
        clock.advance(seconds=1)
        _, _, optional = await task_service.add_task(
            contest_id, "visit_url", "Visit the site", url="https://example.com", is_required=False
        )
        await task_service.mark_task_completed(contest_id, ADDRESS_A, str(optional["_id"]))

        tasks = await task_service.get_contest_tasks(contest_id, ADDRESS_A)

        assert [task["completed"] for task in tasks] == [False, True]
        missing = await task_service.get_missing_required_tasks(contest_id, ADDRESS_A)
        assert [str(task["_id"]) for task in missing] == [str(tasks[0]["_id"])]

    async def test_user_completions(self, db, contest_id, task_service):
        task_id = await default_task_id(task_service, contest_id)
        await task_service.mark_task_completed(contest_id, ADDRESS_A, task_id)

        completions = await task_service.get_user_completions(contest_id, ADDRESS_A)

        assert [c["task_id"] for c in completions] == [task_id]
        assert await task_service.get_user_completions(contest_id, "bogus") == []

    async def test_contest_without_required_tasks_is_open_to_all(self, db, task_service):
        assert await task_service.has_completed_required_tasks(str(ObjectId()), ADDRESS_A)


class TestAddTask:

    async def test_add_task(self, db, contest_id, task_service):
        success, reason, task = await task_service.add_task(
            contest_id, "retweet", "Retweet the announcement", url="https://x.com/post/1"
        )

        assert success and reason is None
        assert task["task_type"] == "retweet"
        assert task["is_required"] is True
        assert await db.contest_audit_log.count_documents({"action": "task_created"}) == 1

    @pytest.mark.parametrize("task_type, description, field", [
        ("custom", "ab", "description"),
        ("dance", "Do a little dance", "task_type"),
    ])
    async def test_invalid_task(self, db, contest_id, task_service, task_type, description, field):
        success, reason, data = await task_service.add_task(contest_id, task_type, description)

        assert not success
        assert reason == ContestError.INVALID_INPUT
        assert field in data["errors"]

    async def test_unknown_contest(self, db, task_service):
        success, reason, _ = await task_service.add_task(str(ObjectId()), "custom", "Some task")

        assert reason == ContestError.CONTEST_NOT_FOUND

    async def test_completed_contest(self, db, contest_id, contest_service, task_service, enter):
        await enter(contest_id, ADDRESS_A)
        await contest_service.stop_contest_manually(contest_id)

        success, reason, _ = await task_service.add_task(contest_id, "custom", "Too late now")

        assert not success
        assert reason == ContestError.CONTEST_COMPLETED
