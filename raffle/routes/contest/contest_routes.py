from fastapi import APIRouter, Form
from typing import Optional
from datetime import datetime, timedelta
from decimal import Decimal
from bson import ObjectId

from raffle.database import Database
from raffle.core.scheduler import get_scheduler_status
from raffle.services.contest.contest import ContestService
from raffle.services.contest.audit import AuditService
from raffle.utils.clock import isoformat_utc
from raffle.utils.response import success_response, error_response, contest_error_response

router = APIRouter(prefix="/contests", tags=["Contests"])


def serialize_value(value):
    """Recursively serialize non-JSON-serializable values"""
    if isinstance(value, datetime):
        return isoformat_utc(value)
    elif isinstance(value, timedelta):
        return str(value)
    elif isinstance(value, (ObjectId, Decimal)):
        return str(value)
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [serialize_value(item) for item in value]
    return value


def convert_document_to_json(document: dict) -> dict:
    """Convert a MongoDB document to JSON, _id becomes id"""
    document = dict(document)
    if "_id" in document:
        document["id"] = str(document.pop("_id"))
    return serialize_value(document)


def convert_contest_to_json(contest: dict) -> dict:
    """Convert contest document to JSON-serializable format"""
    contest = convert_document_to_json(contest)

    # Internal arbitration fields
    contest.pop("active_slot", None)
    contest.pop("winner_draw_claimed", None)

    if "tasks" in contest:
        contest["tasks"] = [convert_document_to_json(task) for task in contest["tasks"]]
    if "winners" in contest:
        contest["winners"] = [convert_document_to_json(winner) for winner in contest["winners"]]

    return contest


# ==================== SYSTEM ====================

@router.post("/system/reconcile")
async def reconcile_expired_contests():
    """
    Close submissions on every contest that reached its end condition.

    Idempotent; the background job and the current-contest endpoint run
    the same reconciliation.
    """
    contest_service = ContestService(Database.get_db())
    result = await contest_service.reconcile_expired()

    return success_response(
        message=f"Reconciled {result['processed']} contest(s), closed {len(result['stopped'])}",
        data=result
    )


@router.get("/system/scheduler-status")
async def scheduler_status():
    """Background scheduler state and job statistics"""
    return success_response(
        message="Scheduler status retrieved",
        data=get_scheduler_status()
    )


# ==================== CONTESTS ====================

@router.post("/create")
async def create_contest(
    prize_amount: str = Form(...),
    contest_type: str = Form(...),
    duration_minutes: Optional[str] = Form(None),
    max_participants: Optional[str] = Form(None),
    winner_count: str = Form("1")
):
    """
    Create a new contest.

    - Ends the currently active contest, if any
    - contest_type "duration" needs duration_minutes
    - contest_type "participants" needs max_participants
    - prize_amount is paid to each of the winner_count winners
    - A default required task is attached
    """
    contest_service = ContestService(Database.get_db())

    success, reason, contest = await contest_service.create_contest(
        prize_amount=prize_amount,
        contest_type=contest_type,
        duration_minutes=duration_minutes or None,
        max_participants=max_participants or None,
        winner_count=winner_count
    )

    if not success:
        return contest_error_response(reason, errors=(contest or {}).get("errors"))

    return success_response(
        message="Contest created successfully",
        data={"contest": convert_contest_to_json(contest)},
        status_code=201
    )


@router.get("/current")
async def get_current_contest(address: Optional[str] = None):
    """
    Get the active contest.

    - Closes submissions first if the contest has expired
    - Tasks carry a completed flag when address is given
    """
    contest_service = ContestService(Database.get_db())
    contest = await contest_service.get_current_contest(address)

    if not contest:
        return success_response(
            message="No active contest",
            data={"contest": None}
        )

    return success_response(
        message="Contest retrieved successfully",
        data={"contest": convert_contest_to_json(contest)}
    )


@router.get("/last-completed")
async def get_last_completed_contest():
    """Most recent completed contest with its winners"""
    contest_service = ContestService(Database.get_db())
    contest = await contest_service.get_last_completed_contest()

    if not contest:
        return success_response(
            message="No completed contest",
            data={"contest": None}
        )

    return success_response(
        message="Contest retrieved successfully",
        data={"contest": convert_contest_to_json(contest)}
    )


@router.get("/{contest_id}")
async def get_contest(contest_id: str, address: Optional[str] = None):
    """Get a contest by ID"""
    contest_service = ContestService(Database.get_db())
    contest = await contest_service.get_contest(contest_id, address)

    if not contest:
        return error_response(message="Contest not found", status_code=404, reason="contest_not_found")

    return success_response(
        message="Contest retrieved successfully",
        data={"contest": convert_contest_to_json(contest)}
    )


@router.post("/{contest_id}/stop-submissions")
async def stop_submissions(contest_id: str):
    """
    Close submissions without drawing winners.

    Repeating the call is a no-op; the first stop time is kept.
    """
    contest_service = ContestService(Database.get_db())
    success, reason, contest = await contest_service.stop_submissions_manually(contest_id)

    if not success:
        return contest_error_response(reason)

    return success_response(
        message="Submissions stopped",
        data={"contest": convert_contest_to_json(contest)}
    )


@router.post("/{contest_id}/stop")
async def stop_contest(contest_id: str):
    """
    End the contest and draw its winners.

    With no submissions the contest is ended and no winners are drawn.
    """
    contest_service = ContestService(Database.get_db())
    success, reason, winners = await contest_service.stop_contest_manually(contest_id)

    if not success:
        return contest_error_response(reason)

    message = "Contest stopped and winners selected" if winners else "Contest stopped, no submissions to draw from"

    return success_response(
        message=message,
        data={"winners": [convert_document_to_json(winner) for winner in winners]}
    )


@router.get("/{contest_id}/audit")
async def get_contest_audit(contest_id: str, limit: int = 100):
    """Audit trail of a contest, newest first"""
    audit_service = AuditService(Database.get_db())
    entries = await audit_service.get_contest_history(contest_id, limit=min(max(limit, 1), 500))

    return success_response(
        message="Audit history retrieved",
        data={"entries": [convert_document_to_json(entry) for entry in entries]}
    )
