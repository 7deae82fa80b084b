"""
HTTP transport helpers.

One AsyncClient is created per fetch and closed when the fetch ends, so
no cookie or connection outlives the session it belongs to.
"""

import logging
from typing import Any, Optional

import httpx

from ..config.loader import PortalSettings
from .errors import NetworkError


def create_client(
    settings: PortalSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """Build the AsyncClient used for one fetch.

    Args:
        settings: Portal settings (user agent, timeout)
        transport: Optional transport override, used by tests

    Returns:
        A client with a bounded per-request timeout
    """
    return httpx.AsyncClient(
        headers={"User-Agent": settings.user_agent},
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=True,
        transport=transport,
    )


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    logger: logging.Logger,
    check_status: bool = True,
    **kwargs: Any
) -> httpx.Response:
    """Issue one request, mapping every transport failure to NetworkError.

    Args:
        client: Client owned by the current fetch
        method: HTTP method
        url: Target URL
        logger: Logger for the request trace
        check_status: Raise NetworkError on non-2xx status when True
        **kwargs: Passed to ``client.request``

    Returns:
        The response

    Raises:
        NetworkError: On timeout, transport failure or (if checked) bad status
    """
    logger.debug(f"{method} {url}")
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise NetworkError(f"Request to {url} timed out: {e.__class__.__name__}")
    except httpx.HTTPError as e:
        raise NetworkError(f"Request to {url} failed: {e}")

    logger.debug(f"{method} {url} -> {response.status_code}")
    if check_status and not response.is_success:
        raise NetworkError(
            f"{method} {url} returned HTTP {response.status_code}",
            status_code=response.status_code
        )
    return response
