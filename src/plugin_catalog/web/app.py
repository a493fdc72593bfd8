import os
import secrets
from contextlib import asynccontextmanager
from email.utils import format_datetime
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from plugin_catalog import __version__
from plugin_catalog.config import ADMIN_TOKEN_KEY
from plugin_catalog.domain.catalog import Snapshot
from plugin_catalog.presentation.marketplace import VIEW_NAMES, build_view_items, marketplace_props, view_entries
from plugin_catalog.registry.npm_info import NpmInfoFetcher
from plugin_catalog.services.snapshot_cache import SnapshotCache


class InvalidateRequest(BaseModel):
    reason: str = ""


def _cache_headers(snapshot: Snapshot, cache: SnapshotCache) -> Dict[str, str]:
    age = cache.status().get("age_sec") or 0.0
    remaining = max(0, int(snapshot.ttl_sec - age))
    return {
        "Cache-Control": f"public, s-maxage={remaining}, stale-while-revalidate={int(snapshot.ttl_sec)}",
        "Last-Modified": format_datetime(snapshot.generated_at, usegmt=True),
    }


def create_app(
    cache: SnapshotCache,
    admin_token: Optional[str] = None,
    fetcher: Optional[NpmInfoFetcher] = None,
) -> FastAPI:
    if admin_token is None:
        admin_token = (os.environ.get(ADMIN_TOKEN_KEY) or "").strip()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if fetcher is not None:
            await fetcher.aclose()

    app = FastAPI(title="Plugin Catalog", version=__version__, lifespan=lifespan)

    def _require_admin(request: Request) -> None:
        if not admin_token:
            raise HTTPException(status_code=503, detail="Catalog admin API disabled.")
        bearer = (request.headers.get("authorization") or "").strip()
        if not bearer.lower().startswith("bearer "):
            raise HTTPException(status_code=401, detail="Missing admin token.")
        if not secrets.compare_digest(bearer[7:].strip().encode("utf-8"), admin_token.encode("utf-8")):
            raise HTTPException(status_code=403, detail="Invalid admin token.")

    async def _snapshot_or_503() -> Snapshot:
        try:
            return await cache.get_snapshot()
        except Exception as exc:
            raise HTTPException(status_code=503, detail=f"Plugin catalog unavailable: {type(exc).__name__}") from exc

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "snapshot": cache.status()}

    @app.get("/api/plugins")
    async def api_plugins() -> JSONResponse:
        snapshot = await _snapshot_or_503()
        return JSONResponse(content=marketplace_props(snapshot), headers=_cache_headers(snapshot, cache))

    @app.get("/api/plugins/{view}")
    async def api_plugin_view(view: str) -> JSONResponse:
        if view not in VIEW_NAMES:
            raise HTTPException(status_code=404, detail=f"Unknown view: {view}")
        snapshot = await _snapshot_or_503()
        payload = {"view": view, "items": build_view_items(view_entries(snapshot, view), snapshot.icons)}
        return JSONResponse(content=payload, headers=_cache_headers(snapshot, cache))

    @app.post("/api/plugins/invalidate")
    async def api_invalidate(request: Request, body: Optional[InvalidateRequest] = None) -> Dict[str, Any]:
        _require_admin(request)
        cache.invalidate()
        return {"invalidated": True, "reason": body.reason if body is not None else ""}

    return app
