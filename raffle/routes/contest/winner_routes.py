from fastapi import APIRouter

from raffle.database import Database
from raffle.services.contest.store import ContestStore
from raffle.services.contest.winner import WinnerService
from raffle.routes.contest.contest_routes import convert_document_to_json
from raffle.utils.response import success_response, error_response, contest_error_response

# Contest-specific winner routes
contest_router = APIRouter(prefix="/contests", tags=["Contest Winners"])

# Winner history across contests
winner_router = APIRouter(prefix="/winners", tags=["Winners"])


def convert_winner_to_json(winner: dict) -> dict:
    """Convert winner document to JSON"""
    return convert_document_to_json(winner)


@contest_router.post("/{contest_id}/select-winners")
async def select_winners(contest_id: str):
    """
    Draw the winners of a contest.

    - Submissions must be closed (stopped, expired and reconciled, or ended)
    - Calling again returns the winners already drawn
    """
    winner_service = WinnerService(Database.get_db())

    success, reason, winners = await winner_service.select_winners(contest_id)

    if not success:
        return contest_error_response(reason)

    message = "Winners selected" if winners else "No submissions to draw from"

    return success_response(
        message=message,
        data={"winners": [convert_winner_to_json(winner) for winner in winners]}
    )


@contest_router.get("/{contest_id}/winners")
async def get_contest_winners(contest_id: str):
    """Get the winners of one contest"""
    db = Database.get_db()

    contest = await ContestStore(db).find_contest_by_id(contest_id)
    if not contest:
        return error_response(message="Contest not found", status_code=404, reason="contest_not_found")

    winners = await WinnerService(db).get_contest_winners(contest_id)

    return success_response(
        message="Winners retrieved successfully",
        data={"winners": [convert_winner_to_json(winner) for winner in winners]}
    )


@winner_router.get("/history")
async def get_winner_history():
    """Every winner, newest first, with its contest"""
    winner_service = WinnerService(Database.get_db())
    winners = await winner_service.get_winner_history()

    return success_response(
        message="Winner history retrieved successfully",
        data={
            "winners": [convert_winner_to_json(winner) for winner in winners],
            "total": len(winners)
        }
    )
