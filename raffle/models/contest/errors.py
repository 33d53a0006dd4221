from enum import Enum


class ContestError(str, Enum):
    """
    Expected failure reasons returned by the contest services.

    These are business outcomes, not faults: services hand them back as the
    second element of their (success, reason, data) tuple and routes turn
    them into error envelopes. Storage faults are raised, never mapped here.
    """
    # Validation
    INVALID_INPUT = "invalid_input"
    INVALID_FORMAT = "invalid_format"

    # Lookup
    CONTEST_NOT_FOUND = "contest_not_found"
    TASK_NOT_FOUND = "task_not_found"

    # Business rules
    CONTEST_NOT_ACTIVE = "contest_not_active"
    CONTEST_COMPLETED = "contest_completed"
    SUBMISSIONS_CLOSED = "submissions_closed"
    TASKS_INCOMPLETE = "tasks_incomplete"
    DUPLICATE_SUBMISSION = "duplicate_submission"
    CONTEST_NOT_CLOSED = "contest_not_closed"

    # Lost races
    DRAW_IN_PROGRESS = "draw_in_progress"


ERROR_MESSAGES = {
    ContestError.INVALID_INPUT: "Invalid contest settings",
    ContestError.INVALID_FORMAT: "Invalid EVM address format",
    ContestError.CONTEST_NOT_FOUND: "Contest not found",
    ContestError.TASK_NOT_FOUND: "Task not found or doesn't belong to this contest",
    ContestError.CONTEST_NOT_ACTIVE: "Contest is not active",
    ContestError.CONTEST_COMPLETED: "Contest has already been completed",
    ContestError.SUBMISSIONS_CLOSED: "Submissions are closed for this contest",
    ContestError.TASKS_INCOMPLETE: "Please complete all required tasks before submitting",
    ContestError.DUPLICATE_SUBMISSION: "Address already submitted",
    ContestError.CONTEST_NOT_CLOSED: "Submissions must be closed before winners are drawn",
    ContestError.DRAW_IN_PROGRESS: "Winner selection is already in progress",
}

ERROR_STATUS_CODES = {
    ContestError.INVALID_INPUT: 422,
    ContestError.INVALID_FORMAT: 422,
    ContestError.CONTEST_NOT_FOUND: 404,
    ContestError.TASK_NOT_FOUND: 404,
    ContestError.DUPLICATE_SUBMISSION: 409,
    ContestError.DRAW_IN_PROGRESS: 409,
}


def error_message(reason: ContestError) -> str:
    return ERROR_MESSAGES.get(reason, "Request could not be completed")


def error_status_code(reason: ContestError) -> int:
    return ERROR_STATUS_CODES.get(reason, 400)
