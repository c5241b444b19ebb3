import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("file_registry")


class RegistryError(Exception):
    """Base class for every failure surfaced to API clients.

    ``message`` is the only text a client ever sees; the internal cause is
    kept on ``__cause__`` for logging.
    """

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class BadRequest(RegistryError):
    status_code = 400
    message = "Invalid request"


class FileNotFound(RegistryError):
    status_code = 404
    message = "File not found"


class StoreFailure(RegistryError):
    status_code = 500
    message = "Storage failure"


class RecordStoreError(StoreFailure):
    """The metadata database rejected or failed a query."""

    message = "Record store failure"


class BlobStoreError(StoreFailure):
    """Reading, writing or removing blob bytes on disk failed."""

    message = "Blob store failure"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        if exc.status_code >= 500:
            logger.error(
                "event=request_failed method=%s path=%s error=%s cause=%r",
                request.method,
                request.url.path,
                type(exc).__name__,
                exc.__cause__,
            )
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "event=request_rejected method=%s path=%s errors=%s",
            request.method,
            request.url.path,
            len(exc.errors()),
        )
        return JSONResponse({"error": BadRequest.message}, status_code=BadRequest.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # e.g. a blob removed between resolve and FileResponse streaming it
        logger.exception(
            "event=request_crashed method=%s path=%s error=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
        )
        return JSONResponse({"error": RegistryError.message}, status_code=500)
