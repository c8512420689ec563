GENERIC_SCAN_FAILURE = "Scan failed. Please check the URL and try again."


class ScanError(Exception):
    status_code = 500

    def __init__(self, message: str = GENERIC_SCAN_FAILURE):
        super().__init__(message)
        self.message = message


class InvalidScanRequest(ScanError):
    status_code = 400


class UnsafeTargetError(InvalidScanRequest):
    """Target resolves to a scheme or host the scanner must never contact."""


class RateLimitExceeded(ScanError):
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__(f"Rate limit exceeded. Try again in {retry_after}s.")
        self.retry_after = retry_after
