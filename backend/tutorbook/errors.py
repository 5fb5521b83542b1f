# backend/tutorbook/errors.py
"""
Problem-details error bodies for every failure the API returns.

Each body carries ``type``, ``title``, ``status``, ``detail`` and
``instance``; scheduling failures add their stable ``code`` and the
``errors`` payload (for example ``{"used": 4, "max": 4}`` on
CREDIT_EXHAUSTED) so clients can tell every rejection apart.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def build_problem(
    status_code: int,
    *,
    detail: Optional[str],
    instance: str,
    code: Optional[str] = None,
    errors: Any = None,
) -> Dict[str, Any]:
    problem: Dict[str, Any] = {
        "type": "about:blank",
        "title": _title(status_code),
        "status": status_code,
        "detail": detail or "",
        "instance": instance,
    }
    if code:
        problem["code"] = code
    if errors is not None:
        problem["errors"] = jsonable_encoder(errors)
    return problem


def _split_http_detail(detail: Any) -> tuple[Optional[str], Optional[str], Any]:
    """Plain HTTPException detail: a string, or a dict with message/code/details."""
    if isinstance(detail, Mapping):
        code = detail.get("code")
        message = detail.get("message") or detail.get("detail")
        return (
            message if isinstance(message, str) else None,
            code if isinstance(code, str) else None,
            detail.get("details") or detail.get("errors"),
        )
    if detail is None:
        return None, None, None
    return str(detail), None, None


def register_error_handlers(app: FastAPI) -> None:
    media_type = (
        "application/problem+json" if settings.strict_problem_media_type else "application/json"
    )

    def respond(
        problem: Dict[str, Any], headers: Optional[Mapping[str, str]] = None
    ) -> JSONResponse:
        return JSONResponse(
            problem,
            status_code=problem["status"],
            media_type=media_type,
            headers=dict(headers) if headers else None,
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed: %s",
                exc.message,
                extra={"code": exc.code, "path": request.url.path},
            )
        else:
            logger.info(
                "Request rejected: %s",
                exc.code,
                extra={"code": exc.code, "path": request.url.path},
            )
        problem = build_problem(
            exc.status_code,
            detail=exc.message,
            instance=request.url.path,
            code=exc.code,
            errors=exc.details or None,
        )
        return respond(problem, exc.to_http_exception().headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail, code, errors = _split_http_detail(exc.detail)
        problem = build_problem(
            exc.status_code, detail=detail, instance=request.url.path, code=code, errors=errors
        )
        return respond(problem, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problem = build_problem(
            422,
            detail="Request validation failed",
            instance=request.url.path,
            code="validation_error",
            errors=exc.errors(),
        )
        return respond(problem)

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        problem = build_problem(
            422,
            detail="Validation failed",
            instance=request.url.path,
            code="validation_error",
            errors=exc.errors(),
        )
        return respond(problem)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        problem = build_problem(
            500,
            detail="Internal Server Error",
            instance=request.url.path,
            code="internal_server_error",
        )
        return respond(problem)
