"""HTTP error mapping for the bakery API.

Protean's handlers cover validation (400), missing records (404) and the
other framework errors. A lost concurrency race is reported as 409 so that
clients know the request can simply be retried.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from bakery.shared.errors import ConcurrencyConflictError

logger = structlog.get_logger(__name__)


async def concurrency_conflict_handler(request: Request, exc: ConcurrencyConflictError) -> JSONResponse:
    logger.warning("Request lost a concurrency race", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content={"error": exc.messages})


def add_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ConcurrencyConflictError, concurrency_conflict_handler)
