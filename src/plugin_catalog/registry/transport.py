from __future__ import annotations

import asyncio
import random
from typing import Any, Dict, Optional

import httpx

_TRANSIENT_STATUSES = {408, 425, 429, 500, 502, 503, 504}


def build_httpx_client(
    *,
    headers: Dict[str, str],
    connect_timeout_sec: float,
    read_timeout_sec: float,
    base_url: str = "",
    max_connections: int = 30,
    max_keepalive_connections: int = 10,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(connect=connect_timeout_sec, read=read_timeout_sec, write=read_timeout_sec, pool=5.0)
    limits = httpx.Limits(
        max_connections=max(1, int(max_connections)),
        max_keepalive_connections=max(1, int(max_keepalive_connections)),
    )
    return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, limits=limits)


async def get_json_with_retries(
    client: httpx.AsyncClient,
    url: str,
    *,
    attempts: int = 2,
    base_backoff_sec: float = 0.25,
) -> Any:
    last_exc: Optional[Exception] = None
    max_attempts = max(1, int(attempts))
    for idx in range(max_attempts):
        try:
            resp = await client.get(url)
            if resp.status_code in _TRANSIENT_STATUSES:
                if idx + 1 >= max_attempts:
                    resp.raise_for_status()
                await _sleep_backoff(idx, base_backoff_sec)
                continue
            resp.raise_for_status()
            return resp.json()
        except Exception as exc:
            last_exc = exc
            if idx + 1 >= max_attempts or (not _is_transient_error(exc)):
                raise
            await _sleep_backoff(idx, base_backoff_sec)
    if last_exc is not None:
        raise last_exc
    raise RuntimeError("get_json_with_retries exhausted without result")


def _is_transient_error(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSIENT_STATUSES
    return False


async def _sleep_backoff(attempt_idx: int, base_backoff_sec: float) -> None:
    # bounded exponential backoff with jitter
    delay = min(4.0, max(0.01, float(base_backoff_sec)) * (2 ** attempt_idx))
    delay = delay * (0.8 + random.random() * 0.4)
    await asyncio.sleep(delay)
