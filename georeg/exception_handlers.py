from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from georeg.logger import logger

# Field name (last element of the error location) -> API error code.
_FIELD_ERROR_CODES = {
    "username": "invalid_username",
    "email": "invalid_email",
    "secret": "invalid_secret",
    "latitude": "invalid_position",
    "longitude": "invalid_position",
    "timestamp": "invalid_position",
    "error": "invalid_position",
}


def _normalize_pydantic_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Make sure Pydantic error dicts are JSON-serializable."""
    normalized: list[dict[str, Any]] = []
    for error in errors:
        e = dict(error)
        ctx = e.get("ctx")
        if isinstance(ctx, dict):
            # Convert any non-serializable ctx values (e.g. exceptions) to strings.
            e["ctx"] = {k: str(v) for k, v in ctx.items()}
        normalized.append(e)
    return normalized


def _build_validation_error_payload(exc: RequestValidationError | ValidationError) -> dict:
    """Normalize validation errors into a consistent error payload.

    The external shape stays minimal:
    - `code`: short machine-readable error code.
    - `message`: stable human-readable message.
    - `fields`: names of the offending fields.
    """
    code = "invalid_request"
    fields: list[str] = []

    for error in _normalize_pydantic_errors(list(exc.errors())):
        loc = error.get("loc", ())
        if not loc or not isinstance(loc[-1], str) or loc[-1] == "body":
            continue
        fields.append(loc[-1])
        if code == "invalid_request":
            code = _FIELD_ERROR_CODES.get(loc[-1], code)

    return {
        "code": code,
        "message": "Invalid request parameters",
        "fields": fields,
    }


async def validation_exception_handler(request: Request, exc: RequestValidationError | ValidationError) -> JSONResponse:
    """Handle request body and model validation errors with a 400 response."""
    logger.info(
        "Validation error during request handling "
        f"path={request.url.path} method={request.method} errors={_normalize_pydantic_errors(list(exc.errors()))}"
    )
    payload = _build_validation_error_payload(exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors to return a structured 500 response."""
    logger.exception(
        "Unhandled exception while processing request: "
        f"{repr(exc)} path={request.url.path} method={request.method}"
    )
    content: dict[str, Any] = {
        "code": "internal_error",
        "message": "An unexpected error occurred while processing the request.",
    }
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )
