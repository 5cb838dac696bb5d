from __future__ import annotations

import httpx

from .config import HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT, HTTP_USER_AGENT


def build_http_client() -> httpx.Client:
    """One client shape for every upstream: UA header, redirects, timeouts."""
    return httpx.Client(
        headers={"User-Agent": HTTP_USER_AGENT},
        follow_redirects=True,
        timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
    )
