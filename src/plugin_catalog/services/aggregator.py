"""Catalog aggregation: static declarations joined with registry metadata.

One registry fetch is issued per declaration and all of them are joined
before any entry is built. Each task writes only to its own result slot,
so completion order never leaks into the output, which always follows
declaration order.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence, Tuple

from plugin_catalog.domain.catalog import CatalogEntry, CategoryMap, PluginDeclaration, RegistryMetadata
from plugin_catalog.observability.structured_log import log_json
from plugin_catalog.registry.npm_info import degraded_metadata

logger = logging.getLogger(__name__)


class InfoFetcher(Protocol):
    async def fetch_info(self, package: str) -> RegistryMetadata:
        ...


def resolve_category(identifier: str, category_map: CategoryMap) -> Optional[str]:
    """Return the first category (map order) listing ``identifier``, else ``None``."""
    matches = [category for category, members in category_map.items() if identifier in members]
    if not matches:
        return None
    if len(matches) > 1:
        log_json(
            logger,
            "catalog.category_ambiguous",
            logging.WARNING,
            identifier=identifier,
            categories=matches,
            chosen=matches[0],
        )
    return matches[0]


def build_link_href(category: str, identifier: str) -> str:
    return f"/plugins/{category}/{identifier}"


def merge_entry(decl: PluginDeclaration, meta: RegistryMetadata, category: str) -> CatalogEntry:
    return CatalogEntry(
        identifier=decl.identifier,
        category=category,
        title=decl.title,
        readme=meta.readme,
        created_at=meta.created_at,
        updated_at=meta.updated_at,
        description=meta.description,
        link_href=build_link_href(category, decl.identifier),
        weekly_downloads=max(0, int(meta.weekly_downloads)),
        icon=decl.icon,
        tags=tuple(decl.tags),
        degraded=meta.degraded,
        unreachable=meta.unreachable,
    )


async def aggregate(
    declarations: Sequence[PluginDeclaration],
    category_map: CategoryMap,
    fetcher: InfoFetcher,
    max_concurrency: int = 16,
) -> Tuple[CatalogEntry, ...]:
    semaphore = asyncio.Semaphore(max(1, int(max_concurrency)))

    async def _fetch_one(decl: PluginDeclaration) -> RegistryMetadata:
        async with semaphore:
            try:
                return await fetcher.fetch_info(decl.package)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log_json(
                    logger,
                    "registry.fetch.degraded",
                    logging.WARNING,
                    package=decl.package,
                    reason=type(exc).__name__,
                )
                return degraded_metadata(unreachable=True)

    results = await asyncio.gather(*(_fetch_one(decl) for decl in declarations))

    entries = []
    for decl, meta in zip(declarations, results):
        category = resolve_category(decl.identifier, category_map)
        if category is None:
            log_json(logger, "catalog.category_missing", logging.WARNING, identifier=decl.identifier)
            category = ""
        entries.append(merge_entry(decl, meta, category))

    logger.info(
        "aggregator: declarations=%d degraded=%d",
        len(entries),
        sum(1 for e in entries if e.degraded),
    )
    return tuple(entries)
