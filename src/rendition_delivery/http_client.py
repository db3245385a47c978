"""HTTP client construction shared by the token and metadata lookups."""

import logging

import httpx

from rendition_delivery.config import Settings

logger = logging.getLogger(__name__)


def create_http_client(settings: Settings) -> httpx.Client:
    """Create a synchronous client with the configured timeouts and proxy."""
    timeout = httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout)
    return httpx.Client(timeout=timeout, proxy=settings.proxy_url or None)


def parse_header_lines(lines: list[str] | None) -> dict[str, str]:
    """Turn ``Name:value`` strings into a header dict.

    Splits on the first colon only, so values may contain colons. Entries
    without a name or colon are skipped with a warning.
    """
    headers: dict[str, str] = {}
    for line in lines or []:
        name, separator, value = line.partition(":")
        name = name.strip()
        if not separator or not name:
            logger.warning(f"Ignoring malformed header definition: '{line}'")
            continue
        headers[name] = value.strip()
    return headers
