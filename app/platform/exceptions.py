import logging
from typing import List, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.response import api_response

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ScanValidationError(AppError):
    """Malformed or missing input, never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class ScanFailure(AppError):
    """A scanning engine failed (navigation timeout, launch crash, bad report)."""

    def __init__(self, message: str, scanner: Optional[str] = None):
        super().__init__(message)
        self.scanner = scanner

    def __str__(self) -> str:
        if self.scanner:
            return f"{self.scanner}: {self.message}"
        return self.message


class CombinedScanFailure(ScanFailure):
    """Every requested scanner failed."""

    def __init__(self, failures: List[ScanFailure]):
        self.failures = list(failures)
        joined = "; ".join(str(f) for f in self.failures) or "no scanner produced a result"
        super().__init__(f"All scanners failed: {joined}")


class StoreError(AppError):
    """The persistence engine is unreachable or rejected an operation."""


def add_exception_handlers(app):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
        else:
            logger.info(f"{type(exc).__name__} on {request.url.path}: {exc}")
        return api_response(message=str(exc), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_400_BAD_REQUEST,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
