import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.response import api_response


class ScanNotFound(Exception):
    """Raised when a scan id has no stored row."""

    def __init__(self, scan_id: str):
        self.scan_id = scan_id
        super().__init__(f"Scan {scan_id} not found")


class RateLimitExceeded(Exception):
    """Raised when a host already used its scans for the current window."""

    def __init__(self, domain: str, retry_after: int = 0):
        self.domain = domain
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {domain}")


class SummarizerUnavailable(Exception):
    """Raised when AI regeneration is requested without an LLM key."""


class SummaryGenerationFailed(Exception):
    """Raised when the LLM call for a regeneration produced no summary."""


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(ScanNotFound)
    async def scan_not_found_handler(request: Request, exc: ScanNotFound):
        return api_response(message=str(exc), status_code=status.HTTP_404_NOT_FOUND)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        response = api_response(
            message="Rate limit exceeded for this domain",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            data={"domain": exc.domain},
        )
        response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(SummarizerUnavailable)
    async def summarizer_unavailable_handler(request: Request, exc: SummarizerUnavailable):
        return api_response(
            message=str(exc) or "AI summarization is not configured",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    @app.exception_handler(SummaryGenerationFailed)
    async def summary_generation_failed_handler(request: Request, exc: SummaryGenerationFailed):
        return api_response(
            message=str(exc) or "AI summary could not be generated",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
