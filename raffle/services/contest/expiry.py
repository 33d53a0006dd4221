"""
Contest Expiry Evaluator

Pure functions deciding whether a contest has reached its natural end:
- Duration contests end once now >= end_time
- Participant contests end once the submission count reaches max_participants

The caller samples the clock once and passes `now` in, so every branch of
one evaluation sees the same instant. Times are naive UTC.
"""
from datetime import datetime
from typing import Optional

from raffle.models.contest.contest import ContestStatus, ContestType
from raffle.utils.clock import to_naive_utc


def is_naturally_expired(contest: dict, current_submission_count: int, now: datetime) -> bool:
    """
    True when the contest's own end condition holds.

    A manually stopped contest is never naturally expired: the operator has
    already ended it, so the timer and cap are no longer authoritative.
    """
    if contest.get("manually_stopped", False):
        return False

    contest_type = contest.get("contest_type")

    if contest_type == ContestType.DURATION:
        end_time = contest.get("end_time")
        if end_time is None:
            return False
        return to_naive_utc(now) >= to_naive_utc(end_time)

    if contest_type == ContestType.PARTICIPANTS:
        max_participants = contest.get("max_participants")
        if not max_participants:
            return False
        return current_submission_count >= max_participants

    return False


def is_accepting_submissions(contest: dict, current_submission_count: int, now: datetime) -> bool:
    """Whether a reader should present the contest as open"""
    if contest.get("status") != ContestStatus.ACTIVE:
        return False
    if contest.get("submissions_stopped", False):
        return False
    return not is_naturally_expired(contest, current_submission_count, now)


def seconds_remaining(contest: dict, now: datetime) -> Optional[int]:
    """Whole seconds until a duration contest ends (0 once passed)"""
    end_time = contest.get("end_time")
    if contest.get("contest_type") != ContestType.DURATION or end_time is None:
        return None

    delta = to_naive_utc(end_time) - to_naive_utc(now)
    return max(0, int(delta.total_seconds()))


def time_remaining_label(contest: dict, now: datetime) -> Optional[str]:
    """Calculate time remaining"""
    remaining = seconds_remaining(contest, now)

    if not remaining:
        return None

    days, rest = divmod(remaining, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 0:
        return f"{days} days {hours} hours"
    elif hours > 0:
        return f"{hours} hours {minutes} minutes"
    elif minutes > 0:
        return f"{minutes} minutes"
    else:
        return f"{seconds} seconds"


def spots_remaining(contest: dict, current_submission_count: int) -> Optional[int]:
    """Entries left before a participant contest fills up"""
    if contest.get("contest_type") != ContestType.PARTICIPANTS:
        return None

    max_participants = contest.get("max_participants") or 0
    return max(0, max_participants - current_submission_count)
