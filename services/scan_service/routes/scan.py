import asyncio
import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from config.logging_config import scan_logger
from services.scan_service.config import settings
from services.scan_service.exceptions import InvalidScanRequest, RateLimitExceeded, ScanError
from services.scan_service.guard.rate_limiter import enforce_rate_limit, get_client_identifier
from services.scan_service.guard.url_guard import validate_target
from services.scan_service.guard.validation import parse_scan_request
from services.scan_service.metrics import scan_requests_total

router = APIRouter(tags=["Scan"])


@router.post("/api/scan")
async def scan(request: Request):
    """Scan one page and return the full report.

    Guard order is fixed: rate limit, body validation, URL safety. Nothing
    touches the network or a browser until all three pass.
    """
    client_id = get_client_identifier(request)
    try:
        enforce_rate_limit(request.app.state.rate_limiter, client_id)
    except RateLimitExceeded:
        scan_requests_total.labels(outcome="rate_limited").inc()
        raise

    try:
        raw_url = parse_scan_request(await request.body())
        url = await validate_target(raw_url)
    except InvalidScanRequest:
        scan_requests_total.labels(outcome="rejected").inc()
        raise

    scan_id = str(uuid.uuid4())
    try:
        report = await asyncio.wait_for(
            request.app.state.scan_runner(url, scan_id=scan_id, client_id=client_id),
            timeout=settings.request_timeout_s,
        )
    except Exception as e:
        scan_requests_total.labels(outcome="failed").inc()
        scan_logger.log_scan_failed(scan_id, url, e)
        raise ScanError() from e

    scan_requests_total.labels(outcome="completed").inc()
    return JSONResponse(content=report.to_response())
