from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class BackOfficeError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BackOfficeError):
    """Malformed input (bad date, missing field). Never retried."""

    status_code = 400


class NotFound(BackOfficeError):
    """No active row matches the requested scope."""

    status_code = 404


class Conflict(BackOfficeError):
    """A precondition on the current state does not hold.

    ``retryable`` is set when the conflict came from a concurrent writer
    winning the race for the same tenant version.
    """

    status_code = 409

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class StoreFailure(BackOfficeError):
    """The store rejected a write; ``step`` names the sub-step that failed."""

    status_code = 500

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


class ConsistencyFault(StoreFailure):
    """Stored rows violate an engine invariant (e.g. two active versions)."""


def _error_response(exc: BackOfficeError) -> JSONResponse:
    body = {"detail": exc.message}
    if isinstance(exc, Conflict) and exc.retryable:
        body["retryable"] = True
    if isinstance(exc, StoreFailure) and exc.step:
        body["step"] = exc.step
    return JSONResponse(status_code=exc.status_code, content=body)


def register_error_handlers(app: FastAPI):
    @app.exception_handler(BackOfficeError)
    async def backoffice_error(request: Request, exc: BackOfficeError):
        return _error_response(exc)
