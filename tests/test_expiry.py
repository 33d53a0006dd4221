from datetime import datetime, timedelta, timezone

import pytest

from raffle.services.contest.expiry import (
    is_naturally_expired,
    is_accepting_submissions,
    seconds_remaining,
    time_remaining_label,
    spots_remaining
)

START = datetime(2025, 1, 1, 12, 0, 0)


def duration_contest(minutes=60, **overrides):
    contest = {
        "contest_type": "duration",
        "status": "active",
        "duration_minutes": minutes,
        "start_time": START,
        "end_time": START + timedelta(minutes=minutes),
        "manually_stopped": False,
        "submissions_stopped": False
    }
    contest.update(overrides)
    return contest


def participants_contest(max_participants=3, **overrides):
    contest = {
        "contest_type": "participants",
        "status": "active",
        "max_participants": max_participants,
        "start_time": START,
        "end_time": None,
        "manually_stopped": False,
        "submissions_stopped": False
    }
    contest.update(overrides)
    return contest


class TestNaturalExpiry:

    def test_duration_before_end_is_open(self):
        contest = duration_contest()
        assert not is_naturally_expired(contest, 0, contest["end_time"] - timedelta(seconds=1))

    def test_duration_at_end_is_expired(self):
        contest = duration_contest()
        assert is_naturally_expired(contest, 0, contest["end_time"])
        assert is_naturally_expired(contest, 0, contest["end_time"] + timedelta(days=1))

    def test_duration_ignores_display_timezone(self):
        contest = duration_contest()
        plus_two = timezone(timedelta(hours=2))

        # 15:00+02:00 is the 13:00 UTC end instant
        assert is_naturally_expired(contest, 0, datetime(2025, 1, 1, 15, 0, 0, tzinfo=plus_two))
        assert not is_naturally_expired(contest, 0, datetime(2025, 1, 1, 14, 59, 59, tzinfo=plus_two))

    def test_duration_without_end_time_never_expires(self):
        contest = duration_contest(end_time=None)
        assert not is_naturally_expired(contest, 0, START + timedelta(days=365))

    def test_participants_cap(self):
        contest = participants_contest(max_participants=3)
        assert not is_naturally_expired(contest, 2, START)
        assert is_naturally_expired(contest, 3, START)
        assert is_naturally_expired(contest, 4, START)

    def test_manually_stopped_is_never_naturally_expired(self):
        assert not is_naturally_expired(
            duration_contest(manually_stopped=True), 0, START + timedelta(days=1)
        )
        assert not is_naturally_expired(
            participants_contest(manually_stopped=True), 10, START
        )

    def test_unknown_type_never_expires(self):
        assert not is_naturally_expired({"contest_type": "lottery"}, 100, START)


class TestAcceptingSubmissions:

    def test_open_contest(self):
        assert is_accepting_submissions(duration_contest(), 0, START)

    @pytest.mark.parametrize("overrides", [
        {"status": "ended"},
        {"status": "completed"},
        {"submissions_stopped": True}
    ])
    def test_closed_states(self, overrides):
        assert not is_accepting_submissions(duration_contest(**overrides), 0, START)

    def test_expired_but_not_reconciled(self):
        contest = duration_contest()
        assert not is_accepting_submissions(contest, 0, contest["end_time"])


class TestRemaining:

    def test_seconds_remaining(self):
        contest = duration_contest(minutes=60)
        assert seconds_remaining(contest, START) == 3600
        assert seconds_remaining(contest, START + timedelta(minutes=90)) == 0
        assert seconds_remaining(participants_contest(), START) is None

    @pytest.mark.parametrize("elapsed, label", [
        (timedelta(0), "3 days 4 hours"),
        (timedelta(days=3, hours=1, minutes=55), "2 hours 5 minutes"),
        (timedelta(days=3, hours=3, minutes=58, seconds=30), "1 minutes"),
        (timedelta(days=3, hours=3, minutes=59, seconds=15), "45 seconds"),
        (timedelta(days=4), None)
    ])
    def test_time_remaining_label(self, elapsed, label):
        contest = duration_contest(minutes=(3 * 24 + 4) * 60)
        assert time_remaining_label(contest, START + elapsed) == label

    def test_spots_remaining(self):
        contest = participants_contest(max_participants=5)
        assert spots_remaining(contest, 2) == 3
        assert spots_remaining(contest, 7) == 0
        assert spots_remaining(duration_contest(), 2) is None
