"""
Error types for the survey analytics service.

Two families live here:

- Pipeline errors raised by the AI client, the analyzers and the background
  jobs. Every ``AIServiceError`` is a fallback trigger: analyzers catch the
  base class and switch to their rule-based path.
- RFC 7807 Problem Details errors for the HTTP surface.

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ============================================================================
# PIPELINE ERRORS
# ============================================================================


class AIServiceError(Exception):
    """Base class for every AI failure that should trigger a rule-based fallback."""

    kind = "ai_error"


class ProviderError(AIServiceError):
    """Generic upstream failure: non-2xx status, error field or malformed payload."""

    kind = "provider_error"


class ProviderAuthError(ProviderError):
    """The provider rejected the API key (HTTP 401)."""

    kind = "unauthorized"


class ProviderNotFoundError(ProviderError):
    """The configured model does not exist on the provider (HTTP 404)."""

    kind = "model_not_found"


class ProviderRateLimitedError(ProviderError):
    """The provider is throttling requests (HTTP 429)."""

    kind = "rate_limited"


class ProviderTimeoutError(ProviderError):
    """The request exceeded the configured timeout."""

    kind = "provider_timeout"


class ProviderConnectionError(ProviderError):
    """The provider host could not be reached."""

    kind = "connection_error"


class AIResponseValidationError(AIServiceError):
    """AI output was not valid JSON or violated the expected schema.

    ``errors`` enumerates every violation, not just the first one.
    """

    kind = "validation_error"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class JobTimeoutError(Exception):
    """A background job exceeded its hard time ceiling."""

    kind = "timeout"

    def __init__(self, message: str, timeout_seconds: float):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class DataGenerationError(Exception):
    """Synthetic data could not be produced as requested."""

    kind = "data_error"


class JobConflictError(Exception):
    """A job for the same survey and operation is already queued or running."""

    kind = "conflict"

    def __init__(self, survey_id: int, operation: str, job_id: str):
        super().__init__(
            f"A {operation.replace('_', ' ')} job ({job_id}) is already running for survey {survey_id}"
        )
        self.survey_id = survey_id
        self.operation = operation
        self.job_id = job_id



# ============================================================================
# HTTP PROBLEM DETAILS
# ============================================================================


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VAL_001"
    NOT_FOUND = "RES_001"
    JOB_CONFLICT = "JOB_001"
    JOB_TIMEOUT = "JOB_002"
    AI_SERVICE_ERROR = "EXT_003"
    INTERNAL_ERROR = "SRV_001"


STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.JOB_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    502: ErrorCode.AI_SERVICE_ERROR,
}


class ProblemDetail(BaseModel):
    """RFC 7807 body. ``errors`` carries field-level problems for 422 responses."""

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    code: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    trace_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    errors: Optional[List[Dict[str, Any]]] = None


def problem_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    detail: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    problem = ProblemDetail(
        type=f"/problems/{code.name.lower().replace('_', '-')}",
        title=HTTPStatus(status_code).phrase,
        status=status_code,
        detail=detail,
        instance=request.url.path,
        code=code.value,
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


class SurveyAPIException(HTTPException):
    """Raised by route dependencies and handlers; rendered as a problem document."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code
        self.errors = errors


class NotFoundError(SurveyAPIException):
    def __init__(self, resource: str, resource_id: Any):
        super().__init__(404, ErrorCode.NOT_FOUND, f"{resource} with ID {resource_id} was not found")


class ValidationError(SurveyAPIException):
    """Request is well-formed but the survey cannot serve it (422)."""

    def __init__(self, detail: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(422, ErrorCode.VALIDATION_ERROR, detail, errors)


def create_exception_handlers(debug: bool = False):
    """
    Build the handlers registered in main.py, keyed by what they catch:

        api         SurveyAPIException
        job         JobConflictError (409, names the job already in flight)
        http        any other Starlette HTTPException
        validation  RequestValidationError (422 with per-field errors)
        generic     anything else (500, message hidden unless debug)
    """

    async def handle_api_exception(request: Request, exc: SurveyAPIException) -> JSONResponse:
        logger.warning(f"{exc.code.value} on {request.url.path}: {exc.detail}")
        return problem_response(request, exc.status_code, exc.code, exc.detail, exc.errors, exc.headers)

    async def handle_job_conflict(request: Request, exc: JobConflictError) -> JSONResponse:
        logger.info(f"Rejected duplicate {exc.operation} job for survey {exc.survey_id}: {exc.job_id} in flight")
        return problem_response(
            request,
            409,
            ErrorCode.JOB_CONFLICT,
            str(exc),
            errors=[{"field": "job_id", "message": exc.job_id, "type": exc.kind}],
        )

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        return problem_response(request, exc.status_code, code, str(exc.detail), headers=exc.headers)

    async def handle_validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return problem_response(request, 422, ErrorCode.VALIDATION_ERROR, "Request validation failed", errors)

    async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled {type(exc).__name__} on {request.url.path}")
        detail = str(exc) if debug else "An unexpected error occurred"
        return problem_response(request, 500, ErrorCode.INTERNAL_ERROR, detail)

    return {
        "api": handle_api_exception,
        "job": handle_job_conflict,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }
