"""Error taxonomy and the HTTP handlers that report it.

Every failure talking to the store collapses to ``StoreQueryError``; the API
reports it (and anything else unexpected) as HTTP 500 with
``{"success": false, "error": <message>}``.
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StoreQueryError(Exception):
    """A query against the survey store failed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def failure_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": message or "Internal server error"},
    )


async def store_query_error_handler(request: Request, exc: StoreQueryError) -> JSONResponse:
    logger.error(f"Store query failed for {request.url.path}: {exc.message}")
    return failure_response(exc.message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # The server error middleware re-raises after this handler, so the traceback is logged there
    logger.error(f"Unhandled error for {request.url.path}: {exc}")
    return failure_response(str(exc))
