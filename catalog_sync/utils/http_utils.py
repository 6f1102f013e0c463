"""
HTTP response helpers shared by the platform clients.

Upstream responses are not trusted to be well formed: a Retry-After
header may carry an HTTP date and a 2xx body may not be JSON. Both are
turned into values or taxonomy errors here so callers only ever see
CatalogSyncException subclasses.
Version: 1.0.0
"""
import logging
from typing import Any, Optional

import httpx

from catalog_sync.core.exceptions import UpstreamAPIError

logger = logging.getLogger("http_utils")

DEFAULT_RETRY_AFTER = 60


def retry_after_seconds(value: Optional[str], default: int = DEFAULT_RETRY_AFTER) -> int:
    """Seconds from a Retry-After header; anything but a non-negative integer yields the default."""
    if value is None:
        return default
    try:
        seconds = int(float(value.strip()))
    except (TypeError, ValueError, OverflowError):
        return default
    return seconds if seconds >= 0 else default


def decode_json_body(resp: httpx.Response, service: str) -> Any:
    """JSON body of a successful response; an empty body is {}."""
    if not resp.text:
        return {}
    try:
        return resp.json()
    except ValueError as e:
        logger.warning(f"{service} returned non-JSON body status={resp.status_code}")
        raise UpstreamAPIError(service, "non-JSON response body", status_code=resp.status_code) from e
