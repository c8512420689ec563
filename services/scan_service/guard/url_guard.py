import asyncio
import ipaddress
import re
import socket
from urllib.parse import urlsplit, urlunsplit

import httpx

from config.logging_config import scan_logger
from services.scan_service.config import settings
from services.scan_service.exceptions import InvalidScanRequest, UnsafeTargetError

ALLOWED_SCHEMES = ("http", "https")

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
BLOCKED_HOSTNAMES = re.compile(r"^(localhost|.*\.local|.*\.internal|.*\.corp)$", re.IGNORECASE)

BLOCKED_NETWORKS = [
    ipaddress.ip_network(n)
    for n in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
]

_DEC_RE = re.compile(r"^[0-9]+$")
_OCT_RE = re.compile(r"^0[0-7]*$")
_HEX_RE = re.compile(r"^0x[0-9a-f]*$", re.IGNORECASE)


def normalize_target(raw: str) -> str:
    value = raw.strip()
    if not _SCHEME_RE.match(value):
        value = f"https://{value}"
    return value


def _parse_ipv4_number(part: str) -> int | None:
    if _HEX_RE.match(part):
        return int(part[2:] or "0", 16)
    if len(part) > 1 and _OCT_RE.match(part):
        return int(part[1:], 8)
    if _DEC_RE.match(part):
        return int(part)
    return None


def parse_ipv4_host(host: str) -> ipaddress.IPv4Address | None:
    """Parse a host the way browsers do, so ``2130706433`` and ``0x7f.1`` map to 127.0.0.1."""
    parts = host.split(".")
    if len(parts) > 1 and parts[-1] == "":
        parts.pop()
    if not parts or len(parts) > 4:
        return None

    numbers = []
    for part in parts:
        n = _parse_ipv4_number(part)
        if n is None:
            return None
        numbers.append(n)

    if any(n > 255 for n in numbers[:-1]):
        return None
    if numbers[-1] >= 256 ** (5 - len(numbers)):
        return None

    value = numbers[-1]
    for i, n in enumerate(numbers[:-1]):
        value += n * 256 ** (3 - i)
    return ipaddress.IPv4Address(value)


def _as_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    v4 = parse_ipv4_host(host)
    if v4 is not None:
        return v4
    try:
        return ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return None


def is_blocked_address(addr: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    if any(addr in net for net in BLOCKED_NETWORKS if net.version == addr.version):
        return True
    return addr.is_loopback or addr.is_link_local or addr.is_private or addr.is_unspecified


def is_blocked_hostname(host: str) -> bool:
    return bool(BLOCKED_HOSTNAMES.match(host.rstrip(".")))


def check_target(url: str) -> str:
    """Parse *url* and apply the literal SSRF rules. Returns the normalized URL."""
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError:
        raise InvalidScanRequest("Invalid URL format")

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise UnsafeTargetError(f'Protocol "{scheme}:" is not allowed')

    host = (parts.hostname or "").rstrip(".")
    if not host or any(c.isspace() for c in host):
        raise InvalidScanRequest("Invalid URL format")

    addr = _as_ip(host)
    if addr is not None and is_blocked_address(addr):
        raise UnsafeTargetError("Scanning private/internal IP addresses is not allowed")

    if is_blocked_hostname(host):
        raise UnsafeTargetError("Scanning internal hostnames is not allowed")

    return urlunsplit((scheme, parts.netloc, parts.path or "/", parts.query, parts.fragment))


async def resolves_to_private(host: str) -> bool:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except OSError:
        return False
    for _, _, _, _, sockaddr in infos:
        try:
            addr = ipaddress.ip_address(sockaddr[0].split("%", 1)[0])
        except ValueError:
            continue
        if is_blocked_address(addr):
            return True
    return False


async def assert_public_url(url: str, resolve_hostnames: bool | None = None) -> str:
    target = check_target(url)
    if resolve_hostnames is None:
        resolve_hostnames = settings.resolve_hostnames

    host = urlsplit(target).hostname or ""
    if resolve_hostnames and _as_ip(host) is None and await resolves_to_private(host):
        raise UnsafeTargetError("Scanning private/internal IP addresses is not allowed")
    return target


async def validate_target(raw: str, resolve_hostnames: bool | None = None) -> str:
    normalized = normalize_target(raw)
    try:
        return await assert_public_url(normalized, resolve_hostnames=resolve_hostnames)
    except UnsafeTargetError as e:
        scan_logger.log_unsafe_target(normalized, e.message)
        raise


async def guard_outbound_request(request: httpx.Request) -> None:
    """httpx request hook; runs for every hop, redirects included."""
    await assert_public_url(str(request.url))


def build_guarded_client(timeout: float, **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": settings.user_agent},
        event_hooks={"request": [guard_outbound_request]},
        **kwargs,
    )
