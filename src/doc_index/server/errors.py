import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from doc_index.exceptions import BadRequestError, DocIndexError, NotFoundError

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    """Every failure leaves the app as JSON {"error": ...}."""

    @app.exception_handler(StarletteHTTPException)
    async def _http(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _validation(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Bad request")

    @app.exception_handler(BadRequestError)
    async def _bad_request(request: Request, exc: BadRequestError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc) or "Bad request")

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "Not found")

    @app.exception_handler(DocIndexError)
    async def _internal(request: Request, exc: DocIndexError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error")

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error")
