from fastapi import FastAPI
from prometheus_client import make_asgi_app
import uvicorn

from config.logging_config import get_logger, setup_logging
from services.scan_service.config import settings
from services.scan_service.guard.rate_limiter import build_rate_limiter
from services.scan_service.middleware.cors import setup_cors
from services.scan_service.middleware.error_handler import setup_error_handlers
from services.scan_service.middleware.logging import LoggingMiddleware
from services.scan_service.middleware.security_headers import SecurityHeadersMiddleware
from services.scan_service.pipeline import run_scan
from services.scan_service.routes import health, scan

setup_logging(settings.service_name)
logger = get_logger(__name__)


def create_app(rate_limiter=None, scan_runner=None) -> FastAPI:
    """Build the scanner app.

    ``rate_limiter`` needs ``check(client_id)``; ``scan_runner`` is awaited as
    ``scan_runner(url, scan_id=..., client_id=...)`` and returns a ``ScanReport``.
    """
    app = FastAPI(
        title="Page Scanner",
        description="Single-page web quality scanner",
        version="1.0.0",
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url=None,
    )
    app.state.rate_limiter = rate_limiter or build_rate_limiter()
    app.state.scan_runner = scan_runner or run_scan

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)
    setup_cors(app)
    setup_error_handlers(app)

    app.include_router(health.router)
    app.include_router(scan.router)
    app.mount("/metrics", make_asgi_app())

    logger.info(f"Page scanner ready (rate limit backend: {settings.rate_limit_backend})")
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("services.scan_service.main:app", host="0.0.0.0", port=settings.port, reload=False)
