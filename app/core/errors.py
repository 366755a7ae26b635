"""
Error taxonomy for the planner and its HTTP mapping
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

class PlanningError(Exception):
    """Base class; carries an error kind and a human-readable message"""
    kind = "planning_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class NotFoundError(PlanningError):
    """Referenced record does not exist or is outside the caller's budget account"""
    kind = "not_found"
    status_code = 404

class InvalidAllocationError(PlanningError):
    kind = "invalid_allocation"
    status_code = 400

class PersistenceError(PlanningError):
    kind = "persistence_failure"
    status_code = 500

@contextmanager
def persistence_errors(action: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures raised inside the block as PersistenceError"""
    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceError(f"Failed to {action}: {e.__class__.__name__}") from e

async def planning_error_handler(request: Request, exc: PlanningError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message}
    )

def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PlanningError, planning_error_handler)
