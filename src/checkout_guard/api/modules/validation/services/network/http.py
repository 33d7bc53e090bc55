import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    retry_transport_errors: bool = True,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying once on transport failures.

    Timeouts and HTTP error statuses are not retried; the caller decides how
    to degrade.
    """
    attempts = 2 if retry_transport_errors else 1
    for attempt in range(1, attempts + 1):
        try:
            return await client.request(method, url, timeout=timeout, **kwargs)
        except httpx.TimeoutException:
            raise
        except httpx.TransportError as exc:
            if attempt >= attempts:
                raise
            logger.debug("Retrying %s %s after transport error: %s", method, url, exc)
    raise RuntimeError("unreachable")


__all__ = ("request_with_retry",)
