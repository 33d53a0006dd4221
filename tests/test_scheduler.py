import pytest

from raffle.core.scheduler import (
    scheduler,
    job_status,
    setup_scheduler,
    get_scheduler_status,
    get_reconcile_interval,
    run_reconcile_expired
)
from raffle.database import Database
from raffle.services.scheduler.contest_scheduler import ContestScheduler


@pytest.fixture
def reset_scheduler():
    yield
    scheduler.remove_all_jobs()


class TestContestScheduler:

    async def test_reconcile_expired_contests(self, db, contest_service, clock):
        _, _, contest = await contest_service.create_contest("1", "duration", duration_minutes=5)
        clock.advance(minutes=5)

        result = await ContestScheduler(db, clock).reconcile_expired_contests()

        assert result["stopped"] == [str(contest["_id"])]

    async def test_run_all_jobs(self, db, contest_service, clock):
        await contest_service.create_contest("1", "duration", duration_minutes=5)

        result = await ContestScheduler(db, clock).run_all_jobs()

        assert result == {"reconcile": {"processed": 1, "stopped": []}}


class TestSchedulerJobs:

    async def test_job_records_its_run(self, db):
        runs = job_status["reconcile"]["runs"]

        await run_reconcile_expired()

        assert job_status["reconcile"]["runs"] == runs + 1
        assert job_status["reconcile"]["last_result"] == {"processed": 0, "stopped": []}
        assert job_status["last_run"].endswith("+00:00")

    async def test_job_skips_without_database(self, monkeypatch):
        monkeypatch.setattr(Database, "client", None)
        runs = job_status["reconcile"]["runs"]

        await run_reconcile_expired()

        assert job_status["reconcile"]["runs"] == runs

    def test_setup_registers_reconcile_job(self, monkeypatch, reset_scheduler):
        monkeypatch.setenv("RECONCILE_INTERVAL_SECONDS", "15")

        setup_scheduler()
        status = get_scheduler_status()

        assert status["running"] is False
        assert [job["id"] for job in status["jobs"]] == ["contest_reconcile_expired"]
        assert get_reconcile_interval() == 15
