"""
exception_handlers.py — JSON Error Responses

Purpose:
- Map the domain error hierarchy (app/core/errors.py) onto HTTP responses
  with one JSON shape: {"status": "error", "error": kind, "message": ..., "details"?}
- Same shape for FastAPI's own HTTP and request-validation errors.
- Log unexpected exceptions with their traceback and answer 500.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import InventoryError, StoreError
from app.core.logging import get_logger

logger = get_logger(__name__)


def setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(InventoryError)
    async def inventory_error_handler(request: Request, exc: InventoryError):
        if isinstance(exc, StoreError) and exc.status_code >= 500:
            logger.error("%s %s failed in the entity store: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.kind)
        return JSONResponse(content=exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        content = {"status": "error", "error": "http_error", "message": str(exc.detail)}
        return JSONResponse(content=content, status_code=exc.status_code or 400, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        content = {
            "status": "error",
            "error": "validation_error",
            "message": "Request body or parameters are invalid",
            "details": {"errors": jsonable_errors(exc)},
        }
        return JSONResponse(content=content, status_code=422)

    # Catch all unhandled exceptions
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        content = {"status": "error", "error": "internal_error", "message": "Internal server error"}
        return JSONResponse(content=content, status_code=500)


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
