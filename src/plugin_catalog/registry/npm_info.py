"""npm registry metadata fetcher.

Looks up one package's readme, description, publish timestamps and
last-week download count. Every failure mode (unreachable registry,
unknown package, malformed payload, timeout) degrades to a default
``RegistryMetadata`` instead of raising, so a single bad package never
aborts a catalog regeneration.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from plugin_catalog.config import DEFAULT_DOWNLOADS_URL, DEFAULT_REGISTRY_URL
from plugin_catalog.domain.catalog import RegistryMetadata
from plugin_catalog.observability.structured_log import log_json
from plugin_catalog.registry.transport import build_httpx_client, get_json_with_retries

logger = logging.getLogger(__name__)

_USER_AGENT = "plugin-catalog"


def degraded_metadata(unreachable: bool = False) -> RegistryMetadata:
    return RegistryMetadata(degraded=True, unreachable=unreachable)


def registry_document_url(registry_url: str, package: str) -> str:
    # Scoped names must keep "@" but encode the slash: @scope%2Fname
    return f"{registry_url.rstrip('/')}/{quote(package, safe='@')}"


def downloads_url_for(downloads_url: str, package: str) -> str:
    return f"{downloads_url.rstrip('/')}/downloads/point/last-week/{quote(package, safe='@/')}"


def parse_registry_document(payload: Any) -> Tuple[str, str, str, str]:
    """Return ``(readme, created_at, updated_at, description)``."""
    if not isinstance(payload, dict):
        raise ValueError("registry document must be a JSON object")
    times = payload.get("time")
    if not isinstance(times, dict):
        times = {}
    return (
        str(payload.get("readme") or ""),
        str(times.get("created") or ""),
        str(times.get("modified") or ""),
        str(payload.get("description") or ""),
    )


def parse_weekly_downloads(payload: Any) -> int:
    if not isinstance(payload, dict):
        return 0
    raw = payload.get("downloads")
    if isinstance(raw, bool):
        return 0
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return 0
    return max(0, value)


class NpmInfoFetcher:
    """Fetches ``RegistryMetadata`` for npm packages.

    Args:
        client: Shared ``httpx.AsyncClient``; built internally when omitted.
        registry_url: Base URL of the package document API.
        downloads_url: Base URL of the download counts API.
        timeout_sec: Upper bound for one ``fetch_info`` call, both requests included.
        attempts: Request attempts for transient failures.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        registry_url: str = DEFAULT_REGISTRY_URL,
        downloads_url: str = DEFAULT_DOWNLOADS_URL,
        timeout_sec: float = 10.0,
        attempts: int = 2,
    ) -> None:
        self._owns_client = client is None
        self._client = client or build_httpx_client(
            headers={"Accept": "application/json", "User-Agent": _USER_AGENT},
            connect_timeout_sec=min(5.0, timeout_sec),
            read_timeout_sec=timeout_sec,
        )
        self._registry_url = registry_url.rstrip("/")
        self._downloads_url = downloads_url.rstrip("/")
        self._timeout_sec = max(0.001, float(timeout_sec))
        self._attempts = max(1, int(attempts))

    async def fetch_info(self, package: str) -> RegistryMetadata:
        name = str(package or "").strip()
        if not name:
            log_json(logger, "registry.fetch.degraded", logging.WARNING, package=name, reason="empty_package")
            return degraded_metadata()
        try:
            return await asyncio.wait_for(self._fetch(name), timeout=self._timeout_sec)
        except asyncio.TimeoutError:
            log_json(logger, "registry.fetch.degraded", logging.WARNING, package=name, reason="timeout")
            return degraded_metadata(unreachable=True)

    async def _fetch(self, package: str) -> RegistryMetadata:
        document, downloads = await asyncio.gather(
            get_json_with_retries(
                self._client, registry_document_url(self._registry_url, package), attempts=self._attempts
            ),
            get_json_with_retries(
                self._client, downloads_url_for(self._downloads_url, package), attempts=self._attempts
            ),
            return_exceptions=True,
        )
        if isinstance(downloads, BaseException):
            if isinstance(downloads, asyncio.CancelledError):
                raise downloads
            logger.info("registry: no download count for %s: %s", package, _describe(downloads))
            weekly_downloads = 0
        else:
            weekly_downloads = parse_weekly_downloads(downloads)

        if isinstance(document, BaseException):
            if isinstance(document, asyncio.CancelledError):
                raise document
            log_json(
                logger,
                "registry.fetch.degraded",
                logging.WARNING,
                package=package,
                reason=_describe(document),
            )
            return RegistryMetadata(
                weekly_downloads=weekly_downloads,
                degraded=True,
                unreachable=_is_unreachable(document),
            )
        try:
            readme, created_at, updated_at, description = parse_registry_document(document)
        except ValueError as exc:
            log_json(logger, "registry.fetch.degraded", logging.WARNING, package=package, reason=str(exc))
            return RegistryMetadata(weekly_downloads=weekly_downloads, degraded=True)
        return RegistryMetadata(
            readme=readme,
            created_at=created_at,
            updated_at=updated_at,
            description=description,
            weekly_downloads=weekly_downloads,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _is_unreachable(exc: BaseException) -> bool:
    # 404 and other client errors mean the registry answered: no published data
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status in (408, 429)
    return False


def _describe(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"http_{exc.response.status_code}"
    return type(exc).__name__


def metadata_to_dict(meta: RegistryMetadata) -> Dict[str, Any]:
    return {
        "readme": meta.readme,
        "createdAt": meta.created_at,
        "updatedAt": meta.updated_at,
        "description": meta.description,
        "weeklyNPMDownloads": meta.weekly_downloads,
    }
