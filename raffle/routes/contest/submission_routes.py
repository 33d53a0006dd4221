from fastapi import APIRouter, Form

from raffle.database import Database
from raffle.services.contest.contest import ContestService
from raffle.services.contest.submission import SubmissionService
from raffle.routes.contest.contest_routes import convert_document_to_json
from raffle.utils.response import success_response, contest_error_response

router = APIRouter(prefix="/contests", tags=["Contest Submissions"])


def convert_submission_to_json(submission: dict) -> dict:
    """Convert submission document to JSON"""
    return convert_document_to_json(submission)


@router.post("/{contest_id}/submit")
async def submit_entry(
    contest_id: str,
    address: str = Form(...)
):
    """
    Enter a wallet address into a contest.

    - address must be an EVM address (0x + 40 hex characters)
    - every required task must be completed first
    - one entry per address per contest
    """
    submission_service = SubmissionService(Database.get_db())

    success, reason, submission = await submission_service.submit(contest_id, address)

    if not success:
        return contest_error_response(reason)

    return success_response(
        message="Submission received",
        data={"submission": convert_submission_to_json(submission)},
        status_code=201
    )


@router.get("/{contest_id}/submissions")
async def get_contest_submissions(contest_id: str):
    """Get all submissions for a contest, oldest first"""
    contest_service = ContestService(Database.get_db())

    success, reason, submissions = await contest_service.get_contest_submissions(contest_id)

    if not success:
        return contest_error_response(reason)

    return success_response(
        message="Submissions retrieved successfully",
        data={
            "submissions": [convert_submission_to_json(s) for s in submissions],
            "total": len(submissions)
        }
    )
