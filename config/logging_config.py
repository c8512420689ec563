# logging_config.py

import os
import re
import sys
import logging
import logging.handlers
from pathlib import Path
from pythonjsonlogger import jsonlogger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


class SensitiveDataFilter(logging.Filter):
    """Masks credentials that users paste into scanned URLs (query tokens, basic auth)."""

    SENSITIVE_KEYS = [
        'password', 'passwd', 'token', 'api_key', 'apikey', 'secret',
        'authorization', 'access_token', 'refresh_token', 'session',
        'bearer', 'redis_password',
    ]

    PATTERNS = [
        (r'((?:api[_-]?key|apikey)\s*[=:]\s*)[^\s&#"\']+', r'\1***MASKED***'),
        (r'((?:access_|refresh_)?token\s*[=:]\s*)[^\s&#"\']+', r'\1***MASKED***'),
        (r'((?:password|passwd|secret|session)\s*[=:]\s*)[^\s&#"\']+', r'\1***MASKED***'),
        (r'(Bearer\s+)[^\s"\']+', r'\1***MASKED***'),
        (r'(https?://)[^/\s:@]+:[^/\s@]+@', r'\1***MASKED***@'),
        (r'(redis://[^:/\s]*:)[^@\s]+@', r'\1***MASKED***@'),
    ]

    def filter(self, record):
        if hasattr(record, 'msg'):
            msg = str(record.msg)
            lowered = msg.lower()
            if any(key in lowered for key in self.SENSITIVE_KEYS) or '@' in msg:
                record.msg = self._mask_sensitive_data(msg)

        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_if_sensitive(v) for k, v in record.args.items()}
            else:
                record.args = tuple(self._mask_if_sensitive(arg) for arg in record.args)

        if hasattr(record, 'url') and isinstance(record.url, str):
            record.url = self._mask_sensitive_data(record.url)

        return True

    def _mask_sensitive_data(self, text):
        for pattern, replacement in self.PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def _mask_if_sensitive(self, value):
        if isinstance(value, str):
            return self._mask_sensitive_data(value)
        return value


class CustomJsonFormatter(jsonlogger.JsonFormatter):

    CONTEXT_FIELDS = ('request_id', 'scan_id', 'client_id', 'checker', 'url', 'strategy')

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


def _build_formatter():
    if ENVIRONMENT == "production":
        return CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    return logging.Formatter(
        '[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def setup_logging(service_name="page_scanner"):

    logger = logging.getLogger()
    logger.setLevel(LOG_LEVEL)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    sensitive_filter = SensitiveDataFilter()
    formatter = _build_formatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    if LOG_TO_FILE:
        LOG_DIR.mkdir(exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            LOG_DIR / f"{service_name}.log",
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        file_handler.setLevel(LOG_LEVEL)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            LOG_DIR / f"{service_name}_error.log",
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(sensitive_filter)
        logger.addHandler(error_handler)

    logging.getLogger("uvicorn.access").addFilter(sensitive_filter)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)

    return logger


def get_logger(name):
    return logging.getLogger(name)


class ScanLogger:

    def __init__(self):
        self.logger = get_logger('scan_service')

    def log_scan_started(self, scan_id, url, client_id):
        self.logger.info(
            f"Scan started: {url}",
            extra={'scan_id': scan_id, 'url': url, 'client_id': client_id}
        )

    def log_scan_completed(self, scan_id, url, overall_score, duration):
        self.logger.info(
            f"Scan completed: score {overall_score} in {duration:.2f}s",
            extra={
                'scan_id': scan_id,
                'url': url,
                'overall_score': overall_score,
                'duration_seconds': round(duration, 2)
            }
        )

    def log_scan_failed(self, scan_id, url, error):
        self.logger.error(
            f"Scan failed: {type(error).__name__}: {error}",
            extra={'scan_id': scan_id, 'url': url},
            exc_info=error
        )

    def log_checker_failed(self, scan_id, checker, error):
        self.logger.warning(
            f"Checker {checker} failed, omitting it from the report: {error}",
            extra={'scan_id': scan_id, 'checker': checker},
            exc_info=error
        )

    def log_navigation_fallback(self, url, strategy):
        self.logger.warning(
            f"Navigation timed out for {url}, falling back to {strategy}",
            extra={'url': url, 'strategy': strategy}
        )

    def log_rate_limited(self, client_id, retry_after):
        self.logger.warning(
            f"Rate limit exceeded for {client_id}",
            extra={'client_id': client_id, 'retry_after': retry_after}
        )

    def log_unsafe_target(self, target, reason):
        self.logger.warning(
            f"Rejected scan target: {reason}",
            extra={'url': target, 'reason': reason}
        )


scan_logger = ScanLogger()
