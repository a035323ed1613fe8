"""
Shared HTTP client utilities.

Centralizes httpx client creation with connection pooling, explicit timeouts
and a consistent User-Agent. Every call against the eligibility service goes
through a client built here, so no request can hang without a bound.
"""

from __future__ import annotations

import os
from typing import Optional

import httpx

from zkdao_toolkit.shared.constants import ServiceConstants

USER_AGENT = os.getenv("ZKDAO_HTTP_UA", "zkdao-toolkit/1.x")

_async_client: Optional[httpx.AsyncClient] = None


def _build_limits() -> httpx.Limits:
    return httpx.Limits(max_keepalive_connections=20, max_connections=100)


def build_timeout(
    timeout: Optional[float] = None, connect: Optional[float] = None
) -> httpx.Timeout:
    return httpx.Timeout(
        timeout if timeout is not None else ServiceConstants.HTTP_TIMEOUT,
        connect=(
            connect
            if connect is not None
            else ServiceConstants.HTTP_CONNECT_TIMEOUT
        ),
    )


def _default_headers() -> dict:
    return {"User-Agent": USER_AGENT}


def build_async_client(
    base_url: str = "",
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build a dedicated AsyncClient (tests inject a MockTransport here)."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=build_timeout(timeout),
        limits=_build_limits(),
        headers=_default_headers(),
        transport=transport,
    )


def get_async_client() -> httpx.AsyncClient:
    """Get a shared asynchronous httpx client."""
    global _async_client
    if _async_client is None:
        _async_client = build_async_client()
    return _async_client


async def aclose_async_client() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
