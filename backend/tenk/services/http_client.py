"""
Shared long-lived httpx.AsyncClient for outbound Strava calls.
Created in the app lifespan (and by the test conftest) and closed on shutdown.
"""
from __future__ import annotations

import httpx

DEFAULT_TIMEOUT_SECONDS = 30.0

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    if _http_client is None:
        raise RuntimeError("HTTP client not initialized; call init_http_client() from the app lifespan.")
    return _http_client


def init_http_client(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=timeout, headers={"User-Agent": "tenk/1.0"})
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
