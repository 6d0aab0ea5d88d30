import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.response import api_response


class SiteUpgradeError(Exception):
    """Base class for every failure a grading run can report."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SiteUpgradeError):
    """The submitted URL is not a plausible domain. No network call was made."""

    status_code = status.HTTP_400_BAD_REQUEST


class FetchError(SiteUpgradeError):
    """A scrape call to the content provider failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


class GradingError(SiteUpgradeError):
    """The grading stream failed or produced nothing usable."""

    status_code = status.HTTP_502_BAD_GATEWAY


class GradingRateLimited(GradingError):
    """The grading provider rejected the request for rate limiting."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class CacheError(SiteUpgradeError):
    """A cache lookup or write failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def add_exception_handlers(app):
    @app.exception_handler(SiteUpgradeError)
    async def site_upgrade_exception_handler(request: Request, exc: SiteUpgradeError):
        if exc.status_code >= 500:
            logging.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return api_response(
            message=exc.message,
            status_code=exc.status_code,
            data={"error_type": type(exc).__name__},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": [
                {key: value for key, value in error.items() if key != "ctx"}
                for error in exc.errors()
            ]},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
