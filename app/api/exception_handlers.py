"""Global exception handlers that map domain exceptions to HTTP responses."""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.errors import (
    ConfigurationError,
    DomainValidationError,
    DuplicateResourceError,
    ForbiddenError,
    NotFoundError,
    RuleFailure,
    UnauthorizedError,
)
from app.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    detail: str,
    code: str,
    validator: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Return a standardized error response with detail and machine-readable code."""
    body = ErrorResponse(detail=detail, code=code, validator=validator)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def domain_validation_error_handler(
    _request: Request, exc: DomainValidationError
) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), exc.code)


def configuration_error_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.warning("Validator configuration error: %s", exc)
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), exc.code)


def duplicate_resource_error_handler(
    _request: Request, exc: DuplicateResourceError
) -> JSONResponse:
    return _error_response(status.HTTP_409_CONFLICT, str(exc), exc.code)


def not_found_error_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc), exc.code)


def forbidden_error_handler(_request: Request, exc: ForbiddenError) -> JSONResponse:
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc), exc.code)


def unauthorized_error_handler(_request: Request, exc: UnauthorizedError) -> JSONResponse:
    return _error_response(
        status.HTTP_401_UNAUTHORIZED,
        str(exc),
        exc.code,
        headers={"WWW-Authenticate": "Bearer"},
    )


def rule_failure_handler(_request: Request, exc: RuleFailure) -> JSONResponse:
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        exc.reason,
        exc.code,
        validator=exc.validator_slug,
    )


def register_exception_handlers(app):
    """Register domain exception handlers on the FastAPI app."""
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(DomainValidationError, domain_validation_error_handler)
    app.add_exception_handler(DuplicateResourceError, duplicate_resource_error_handler)
    app.add_exception_handler(ForbiddenError, forbidden_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(RuleFailure, rule_failure_handler)
    app.add_exception_handler(UnauthorizedError, unauthorized_error_handler)
