"""JSON error rendering and permissive CORS for the voucher API.

Every response, including errors and preflights, is JSON and carries the
same fixed CORS headers.  :func:`install` wires the handlers and the
middleware onto an application.

Error bodies
------------
- Workflow errors: ``{"error": ..., **context}`` with the error's status.
- :exc:`~certvoucher.store.client.StoreError`: ``500 {"error": message}``.
- Malformed request bodies: ``400 {"error": "Invalid request body", "details": [...]}``.
- Unknown path, or a known path with an unsupported method:
  ``404 {"error": "Route not found"}``.
- Anything else: ``500 {"error": "Internal server error", "details": ...}``.
  This handler runs outside the middleware stack, so it sets the CORS
  headers itself.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from certvoucher.store.client import StoreError
from certvoucher.workflow.distribution import WorkflowError

logger = logging.getLogger(__name__)

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


async def _workflow_error(request: Request, exc: WorkflowError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Data store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def _validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "details": jsonable_encoder(exc.errors()),
        },
    )


async def _http_error(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
        headers=CORS_HEADERS,
    )


async def _cors(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Answer every preflight directly and stamp CORS headers on every response."""
    if request.method == "OPTIONS":
        response: Response = JSONResponse(status_code=200, content={"success": True})
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


def install(app: FastAPI) -> None:
    """Register the exception handlers and the CORS middleware on *app*."""
    app.add_exception_handler(WorkflowError, _workflow_error)
    app.add_exception_handler(StoreError, _store_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(Exception, _unexpected_error)
    app.middleware("http")(_cors)
