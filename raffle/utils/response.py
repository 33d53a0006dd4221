from typing import Any, Optional, Dict
from fastapi.responses import JSONResponse

from raffle.models.contest.errors import ContestError, error_message, error_status_code


def success_response(
    message: str = "Success",
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Standard success response

    Args:
        message: Success message
        data: Response data (optional)
        status_code: HTTP status code (default: 200)

    Returns:
        JSONResponse with success format
    """
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = data

    return JSONResponse(content=response, status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400,
    reason: Optional[str] = None
) -> JSONResponse:
    """
    Standard error response

    Args:
        message: Error message
        status_code: HTTP status code (default: 400)
        reason: Machine-readable failure reason (optional)

    Returns:
        JSONResponse with error format
    """
    content = {
        "success": False,
        "message": message
    }

    if reason:
        content["reason"] = reason

    return JSONResponse(content=content, status_code=status_code)


def validation_error_response(
    message: str = "Validation error",
    errors: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None
) -> JSONResponse:
    """
    Standard validation error response

    Args:
        message: Validation error message
        errors: Dictionary of validation errors (optional)
        reason: Machine-readable failure reason (optional)

    Returns:
        JSONResponse with validation error format (422)
    """
    response = {
        "success": False,
        "message": message
    }

    if reason:
        response["reason"] = reason

    if errors:
        response["errors"] = errors

    return JSONResponse(content=response, status_code=422)


def contest_error_response(
    reason: ContestError,
    errors: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Map a service failure reason to the matching error envelope"""
    status_code = error_status_code(reason)

    if status_code == 422:
        return validation_error_response(
            message=error_message(reason),
            errors=errors,
            reason=reason.value
        )

    return error_response(
        message=error_message(reason),
        status_code=status_code,
        reason=reason.value
    )
