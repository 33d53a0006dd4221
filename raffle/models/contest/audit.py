from enum import Enum


class AuditAction(str, Enum):
    """Audit action types"""
    # Contest actions
    CONTEST_CREATED = "contest_created"
    CONTEST_ENDED = "contest_ended"
    CONTEST_STOPPED = "contest_stopped"
    SUBMISSIONS_STOPPED = "submissions_stopped"
    WINNERS_SELECTED = "winners_selected"

    # Task actions
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"

    # Submission actions
    SUBMISSION_CREATED = "submission_created"
