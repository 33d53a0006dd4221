from fastapi import APIRouter, Form
from typing import Optional

from raffle.database import Database
from raffle.services.contest.task import TaskService
from raffle.services.contest.store import ContestStore
from raffle.routes.contest.contest_routes import convert_document_to_json
from raffle.utils.response import success_response, error_response, contest_error_response

router = APIRouter(prefix="/contests", tags=["Contest Tasks"])


def convert_task_to_json(task: dict) -> dict:
    """Convert task document to JSON"""
    return convert_document_to_json(task)


@router.post("/{contest_id}/tasks/create")
async def create_task(
    contest_id: str,
    description: str = Form(...),
    task_type: str = Form("custom"),
    url: Optional[str] = Form(None),
    is_required: bool = Form(True)
):
    """
    Add a task to a contest.

    - Not allowed once the contest is completed
    - Required tasks gate submissions
    """
    task_service = TaskService(Database.get_db())

    success, reason, task = await task_service.add_task(
        contest_id=contest_id,
        task_type=task_type,
        description=description,
        url=url,
        is_required=is_required
    )

    if not success:
        return contest_error_response(reason, errors=(task or {}).get("errors"))

    return success_response(
        message="Task created successfully",
        data={"task": convert_task_to_json(task)},
        status_code=201
    )


@router.get("/{contest_id}/tasks")
async def get_contest_tasks(contest_id: str, address: Optional[str] = None):
    """
    Get all tasks for a contest.

    - Public endpoint
    - Each task carries a completed flag for the given address
    """
    db = Database.get_db()

    contest = await ContestStore(db).find_contest_by_id(contest_id)
    if not contest:
        return error_response(message="Contest not found", status_code=404, reason="contest_not_found")

    task_service = TaskService(db)
    tasks = await task_service.get_contest_tasks(contest_id, address)

    return success_response(
        message="Tasks retrieved successfully",
        data={
            "tasks": [convert_task_to_json(task) for task in tasks],
            "total": len(tasks),
            "all_required_completed": all(
                task["completed"] for task in tasks if task.get("is_required")
            ) if address else None
        }
    )


@router.post("/{contest_id}/tasks/{task_id}/complete")
async def complete_task(
    contest_id: str,
    task_id: str,
    address: str = Form(...)
):
    """
    Mark a task as completed by an address.

    Completing a task twice is not an error.
    """
    task_service = TaskService(Database.get_db())

    success, reason, completion = await task_service.mark_task_completed(
        contest_id=contest_id,
        address=address,
        task_id=task_id
    )

    if not success:
        return contest_error_response(reason)

    message = "Task already completed" if completion["already_completed"] else "Task completed"

    return success_response(
        message=message,
        data={"completion": completion}
    )
