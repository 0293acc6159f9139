"""
Exception handlers for the Chess Arena API.
"""
import logging
from fastapi import Request, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import (
    GameException, GameNotFound, PlayerNotFound, NotAPlayer, NotYourTurn,
    InvalidMove, StalePosition, InvalidTransition, GameEnded, TicketNotFound,
    TournamentNotFound, InsufficientParticipants, PersistenceError
)

logger = logging.getLogger(__name__)

# Most specific classes first; the first isinstance match wins
_ERROR_MAP = (
    (GameNotFound, 404, "GAME_NOT_FOUND"),
    (PlayerNotFound, 404, "PLAYER_NOT_FOUND"),
    (TicketNotFound, 404, "TICKET_NOT_FOUND"),
    (TournamentNotFound, 404, "TOURNAMENT_NOT_FOUND"),
    (NotAPlayer, 403, "NOT_A_PLAYER"),
    (NotYourTurn, 400, "NOT_YOUR_TURN"),
    (StalePosition, 409, "STALE_POSITION"),
    (InvalidMove, 400, "INVALID_MOVE"),
    (GameEnded, 400, "GAME_ENDED"),
    (InvalidTransition, 400, "INVALID_TRANSITION"),
    (InsufficientParticipants, 400, "INSUFFICIENT_PARTICIPANTS"),
    (PersistenceError, 409, "PERSISTENCE_ERROR"),
)


def create_error_response(status_code: int, detail: str, error_code: str, request: Request,
                          headers=None) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "detail": detail,
            "error_code": error_code,
            "request_id": getattr(request.state, 'request_id', None)
        }
    )


async def game_exception_handler(request: Request, exc: GameException) -> JSONResponse:
    """Map domain exceptions to HTTP status codes."""
    for exc_type, status_code, error_code in _ERROR_MAP:
        if isinstance(exc, exc_type):
            if status_code == 409:
                logger.warning(f"{error_code}: {exc}")
            return create_error_response(status_code, str(exc), error_code, request)
    return create_error_response(400, str(exc), "GAME_ERROR", request)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Handle invalid arguments rejected by the services."""
    return create_error_response(400, str(exc), "INVALID_REQUEST", request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation errors with better formatting."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(x) for x in error["loc"][1:]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": errors,
            "error_code": "VALIDATION_ERROR",
            "request_id": getattr(request.state, 'request_id', None)
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle generic HTTP exceptions."""
    error_code = (exc.headers or {}).get("X-Error-Code", f"HTTP_{exc.status_code}")
    return create_error_response(exc.status_code, exc.detail, error_code, request, headers=exc.headers)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    # Don't expose internal errors in production
    if settings.DEBUG:
        detail = str(exc)
    else:
        detail = "An unexpected error occurred"

    return create_error_response(500, detail, "INTERNAL_ERROR", request)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(GameException, game_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
