import logging

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from app.utils.errors import AppError

logger = logging.getLogger(__name__)


def create_response(
    message: str | None = None,
    data: dict | None = None,
    success: bool = True,
) -> JSONResponse:
    """Return the shared ``{success, message, ...payload}`` envelope.

    Every outcome is sent with HTTP 200; clients branch on ``success``.
    """
    content = {"success": success}
    if message is not None:
        content["message"] = message
    if data:
        content.update(jsonable_encoder(data))
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


def validation_message(errors: list) -> str:
    """Turn pydantic error dicts into a single readable message."""
    if not errors:
        return "Invalid request data"
    first = errors[0]
    field = ".".join(
        str(part) for part in first.get("loc", ()) if part not in ("body", "query", "form")
    )
    if first.get("type") == "missing":
        return f"Missing Details: {field}" if field else "Missing Details"
    message = str(first.get("msg", "Invalid request data"))
    return message.removeprefix("Value error, ")


def handle_exception(error: Exception, fallback_message: str = "Internal server error") -> JSONResponse:
    """Coerce raised errors into the shared response structure."""
    if isinstance(error, AppError):
        return create_response(error.message, success=False)

    if isinstance(error, PydanticValidationError):
        return create_response(validation_message(error.errors()), success=False)

    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return create_response(detail, success=False)

    logger.exception("Unhandled error: %s", error)
    return create_response(fallback_message, success=False)
