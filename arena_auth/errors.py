"""
Error taxonomy and the uniform JSON error envelope.

Every error response has the shape ``{"success": false, "message": ...}``,
optionally with an ``errors`` list of field violations. Expected outcomes
(validation, conflict, bad credentials, rate limiting) are raised as ApiError
subclasses and rendered by ``api_error_handler``; anything else reaches
``unhandled_exception_handler``, which logs the traceback and hides the
diagnostic in production.
"""
import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Posture

logger = logging.getLogger(__name__)

GENERIC_INTERNAL_MESSAGE = "Internal server error"


class ConfigurationError(RuntimeError):
    """Raised at startup when the deployment configuration is unsafe."""


class ApiError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = GENERIC_INTERNAL_MESSAGE

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.message = message or self.message
        self.errors = errors
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self, posture: Posture) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors is not None:
            payload["errors"] = self.errors
        return payload


class RequestValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Input validation failed"


class InvalidCredentialsError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Email or password is incorrect"


class InvalidTokenError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid or expired token"


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Route not found"


class ConflictError(ApiError):
    status_code = status.HTTP_409_CONFLICT
    message = "Username or email already exists"


class RateLimitedError(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests, please try again later"


class InternalError(ApiError):
    """
    Unexpected failure with a safe public message.

    ``detail`` carries the underlying diagnostic and is only shown outside
    production.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None,
                 stack: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail
        self.stack = stack

    def to_dict(self, posture: Posture) -> Dict[str, Any]:
        if posture == Posture.PRODUCTION:
            return {"success": False, "message": self.message}
        payload: Dict[str, Any] = {"success": False, "message": self.detail or self.message}
        if self.stack:
            payload["stack"] = self.stack
        return payload


class ServiceUnavailableError(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Service temporarily unavailable"


def _posture(request: Request) -> Posture:
    settings = getattr(request.app.state, "settings", None)
    return settings.ENVIRONMENT if settings is not None else Posture.PRODUCTION


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "API error on %s %s: %s",
            request.method, request.url.path, getattr(exc, "detail", None) or exc.message,
        )
    else:
        logger.info(
            "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(_posture(request)),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        message = NotFoundError.message
    else:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map FastAPI's 422 body/shape errors onto the 400 validation envelope."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append({
            "field": ".".join(loc) or "body",
            "message": err.get("msg", "Invalid value"),
        })
    return await api_error_handler(request, RequestValidationFailed(errors=errors))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error("Unhandled error on %s %s\n%s", request.method, request.url.path, stack)

    if _posture(request) == Posture.PRODUCTION:
        content: Dict[str, Any] = {"success": False, "message": GENERIC_INTERNAL_MESSAGE}
    else:
        content = {"success": False, "message": str(exc) or GENERIC_INTERNAL_MESSAGE, "stack": stack}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
