import json

from pydantic import BaseModel, ValidationError, StrictStr

from services.scan_service.config import settings
from services.scan_service.exceptions import InvalidScanRequest

URL_REQUIRED = "URL is required"


class ScanRequest(BaseModel):
    url: StrictStr


def parse_scan_request(body: bytes) -> str:
    """Return the raw ``url`` from a JSON request body.

    An unparseable body and a missing or non-string ``url`` produce the same
    message.
    """
    try:
        payload = json.loads(body or b"")
        request = ScanRequest.model_validate(payload)
    except (ValueError, ValidationError):
        raise InvalidScanRequest(URL_REQUIRED)

    url = request.url
    if len(url) > settings.max_url_length:
        raise InvalidScanRequest(f"URL too long (max {settings.max_url_length} characters)")
    if not url.strip():
        raise InvalidScanRequest(URL_REQUIRED)
    return url
