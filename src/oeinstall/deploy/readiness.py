"""Bounded readiness polling.

Replaces fixed sleeps with polls against a concrete signal: an HTTP
response from the application, or a non-empty directory listing inside a
container. Polls run at a fixed interval until the signal appears or the
deadline passes; callers decide whether a timeout is fatal.

Tags:
    readiness, health-check, polling, httpx
"""

from __future__ import annotations

import time
from typing import Callable

import httpx

from oeinstall.core.logging import get_logger

logger = get_logger(__name__)


def probe_http(
    url: str,
    timeout: float = 10.0,
    client: httpx.Client | None = None,
    require_success: bool = True,
) -> bool:
    """``GET`` *url* once.

    With ``require_success`` only a 2xx/3xx answer counts; otherwise any
    HTTP response does (the server is up even if the page errors).
    Connection errors and timeouts return False.
    """
    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            response = httpx.get(url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.debug("http.probe_failed", url=url, error=str(exc))
        return False
    logger.debug("http.probe", url=url, status=response.status_code)
    if require_success:
        return response.status_code < 400
    return True


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 2.0,
    what: str = "condition",
) -> bool:
    """Call *predicate* every *interval* seconds until it is true or *timeout* passes."""
    deadline = time.monotonic() + timeout
    attempts = 0
    while True:
        attempts += 1
        if predicate():
            logger.debug("readiness.met", what=what, attempts=attempts)
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("readiness.timeout", what=what, timeout=timeout, attempts=attempts)
            return False
        time.sleep(min(interval, remaining))


def wait_for_http(
    url: str,
    timeout: float,
    interval: float = 2.0,
    probe_timeout: float = 10.0,
    client: httpx.Client | None = None,
) -> bool:
    """Poll *url* until the server answers with any HTTP response."""
    return wait_until(
        lambda: probe_http(url, timeout=probe_timeout, client=client, require_success=False),
        timeout=timeout,
        interval=interval,
        what=url,
    )
