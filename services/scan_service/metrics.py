from prometheus_client import Counter, Histogram

scan_requests_total = Counter(
    'scan_requests_total',
    'Total scan requests by outcome',
    ['outcome']
)

scan_duration = Histogram(
    'scan_duration_seconds',
    'Wall-clock duration of completed scans',
    buckets=(2, 5, 10, 15, 20, 30, 45, 60)
)

checker_failures_total = Counter(
    'scan_checker_failures_total',
    'Checkers that raised and were omitted from the report',
    ['checker']
)

navigation_fallbacks_total = Counter(
    'scan_navigation_fallbacks_total',
    'Navigation timeouts that triggered a fallback strategy',
    ['strategy']
)

rate_limit_rejections_total = Counter(
    'scan_rate_limit_rejections_total',
    'Scan requests rejected by the rate limiter'
)
