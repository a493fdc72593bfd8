"""Snapshot cache with time-bounded regeneration.

States:
  empty  - nothing generated yet; the first ``get_snapshot`` regenerates.
  fresh  - age < ttl; served as-is, no registry traffic.
  stale  - age >= ttl or invalidated; the next ``get_snapshot`` regenerates.

A regeneration either installs a complete new ``Snapshot`` with a single
reference swap or leaves the previous one in place. When it fails and a
previous snapshot exists, that snapshot keeps being served (fail-open);
only a cold start propagates the error.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Optional

from plugin_catalog.declarations import collect_tags
from plugin_catalog.domain.catalog import CatalogSource, Snapshot
from plugin_catalog.observability.structured_log import log_json
from plugin_catalog.services.aggregator import InfoFetcher, aggregate
from plugin_catalog.services.ranking import rank

logger = logging.getLogger(__name__)

DEFAULT_TTL_SEC = 60 * 60


class RegistryOutageError(RuntimeError):
    """The registry could not be reached for any package of a regeneration pass."""


class SnapshotCache:
    def __init__(
        self,
        load_source: Callable[[], CatalogSource],
        fetcher: InfoFetcher,
        ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
        max_concurrency: int = 16,
    ) -> None:
        self._load_source = load_source
        self._fetcher = fetcher
        self._ttl_sec = float(ttl_sec)
        self._clock = clock
        self._max_concurrency = max_concurrency
        self._snapshot: Optional[Snapshot] = None
        # bumped by invalidate(); a snapshot is fresh only for the generation it was built in
        self._generation = 0
        self._installed_generation = 0
        self._lock = asyncio.Lock()
        self._regenerations = 0
        self._last_error = ""

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def peek(self) -> Optional[Snapshot]:
        return self._snapshot

    def _is_fresh(self, snapshot: Optional[Snapshot]) -> bool:
        if snapshot is None or self._installed_generation != self._generation:
            return False
        return snapshot.is_fresh(self._clock())

    async def get_snapshot(self) -> Snapshot:
        current = self._snapshot
        if current is not None and self._is_fresh(current):
            return current
        async with self._lock:
            # another caller may have regenerated while we waited
            current = self._snapshot
            if current is not None and self._is_fresh(current):
                return current
            generation = self._generation
            try:
                fresh = await self._regenerate()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._last_error = f"{type(exc).__name__}: {exc}"
                log_json(
                    logger,
                    "catalog.regenerate.failed",
                    logging.ERROR,
                    error=self._last_error,
                    has_previous=current is not None,
                )
                if current is None:
                    raise
                log_json(
                    logger,
                    "catalog.snapshot.stale_served",
                    logging.WARNING,
                    age_sec=round(current.age_sec(self._clock()), 3),
                )
                return current
            self._snapshot = fresh
            # an invalidate() during the pass leaves the new snapshot stale
            self._installed_generation = generation
            self._last_error = ""
            return fresh

    def invalidate(self) -> None:
        self._generation += 1
        log_json(logger, "catalog.snapshot.invalidated", has_snapshot=self._snapshot is not None)

    async def _regenerate(self) -> Snapshot:
        started = self._clock()
        log_json(logger, "catalog.regenerate.start")
        source = self._load_source()
        entries = await aggregate(
            source.declarations,
            source.categories,
            self._fetcher,
            max_concurrency=self._max_concurrency,
        )
        if entries and all(e.unreachable for e in entries):
            raise RegistryOutageError(f"registry unreachable for all {len(entries)} packages")
        views = rank(entries)
        snapshot = Snapshot(
            views=views,
            all_tags=collect_tags(source.declarations),
            created_at=self._clock(),
            generated_at=datetime.now(timezone.utc),
            ttl_sec=self._ttl_sec,
            icons=MappingProxyType(dict(source.icons)),
        )
        self._regenerations += 1
        log_json(
            logger,
            "catalog.regenerate.done",
            entries=len(entries),
            trending=len(views.trending),
            degraded=sum(1 for e in entries if e.degraded),
            duration_sec=round(self._clock() - started, 3),
        )
        return snapshot

    def status(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        if snapshot is None:
            state = "empty"
        elif self._is_fresh(snapshot):
            state = "fresh"
        else:
            state = "stale"
        return {
            "state": state,
            "age_sec": round(snapshot.age_sec(self._clock()), 3) if snapshot is not None else None,
            "ttl_sec": self._ttl_sec,
            "generated_at": snapshot.generated_at.isoformat() if snapshot is not None else None,
            "entries": len(snapshot.views.all) if snapshot is not None else 0,
            "regenerations": self._regenerations,
            "last_error": self._last_error,
        }
