"""Map engine errors to HTTP responses.

Protean's own handlers cover the base cases (``ValidationError`` → 400,
``ObjectNotFoundError`` → 404). The engine's errors subclass
``ValidationError``; the handlers below give them their specific codes.
Starlette resolves handlers along the exception's MRO, so the most specific
class wins.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from fulfillment.errors import (
    AlreadyApproved,
    AlreadyConsumed,
    AlreadySuspended,
    ConcurrentModification,
    CreditExceeded,
    InsufficientStock,
    InvalidTransition,
    MissingCoordinates,
    NotAuthorized,
    RouteSolverError,
)

STATUS_CODES = {
    NotAuthorized: 403,
    InvalidTransition: 409,
    AlreadyApproved: 409,
    AlreadyConsumed: 409,
    AlreadySuspended: 409,
    ConcurrentModification: 409,
    CreditExceeded: 422,
    InsufficientStock: 422,
    MissingCoordinates: 422,
    RouteSolverError: 502,
}


def _handler(status_code: int):
    async def handle_error(request: Request, exc) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": exc.messages})

    return handle_error


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for error, status_code in STATUS_CODES.items():
        app.add_exception_handler(error, _handler(status_code))
