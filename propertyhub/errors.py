"""
propertyhub/errors.py

Domain error taxonomy and the FastAPI handlers that map it to HTTP responses.

- ValidationError      -> 400
- ConflictError        -> 400 (duplicates: email, favorite, recommendation)
- AuthorizationError   -> 403 (authenticated but not the owner)
- NotFoundError        -> 404
- UpstreamUnavailable  -> 500 (data store failure; detail only outside prod)

Cache failures never reach this module: the cache client absorbs them.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from propertyhub.config import IS_PROD


class PropertyHubError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PropertyHubError):
    """Raised when required input is missing or malformed."""
    status_code = 400


class ConflictError(PropertyHubError):
    """Raised when a write would duplicate an existing record."""
    status_code = 400


class AuthorizationError(PropertyHubError):
    """Raised when the caller is authenticated but does not own the resource."""
    status_code = 403


class NotFoundError(PropertyHubError):
    """Raised when no matching active record exists."""
    status_code = 404


class UpstreamUnavailable(PropertyHubError):
    """Raised when the data store fails. Carries the underlying error."""
    status_code = 500

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


def _error_body(exc: PropertyHubError) -> dict:
    body = {"message": exc.message}
    if isinstance(exc, UpstreamUnavailable) and not IS_PROD:
        body["error"] = str(exc.cause) if exc.cause is not None else exc.message
    return body


async def handle_propertyhub_error(request: Request, exc: PropertyHubError) -> JSONResponse:
    if isinstance(exc, UpstreamUnavailable):
        print(f"[ERROR] {request.method} {request.url.path}: {exc.message} ({exc.cause!r})")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    """Attach the domain error handler to the app."""
    app.add_exception_handler(PropertyHubError, handle_propertyhub_error)
