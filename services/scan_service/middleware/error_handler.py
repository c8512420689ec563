from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.logging_config import get_logger
from services.scan_service.exceptions import GENERIC_SCAN_FAILURE, RateLimitExceeded, ScanError

logger = get_logger(__name__)


def setup_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "retryAfter": exc.retry_after},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(ScanError)
    async def scan_error_handler(request: Request, exc: ScanError):
        request_id = getattr(request.state, "request_id", "unknown")

        logger.warning(
            "Scan request rejected",
            extra={
                "request_id": request_id,
                "status_code": exc.status_code,
                "detail": exc.message,
                "path": request.url.path,
            }
        )

        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "unknown")

        logger.error(
            "Unhandled exception",
            extra={
                "request_id": request_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": GENERIC_SCAN_FAILURE},
        )
