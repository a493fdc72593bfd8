import logging
from functools import partial
from typing import Optional

from plugin_catalog.config import CatalogConfig
from plugin_catalog.declarations import load_catalog_source
from plugin_catalog.registry.npm_info import NpmInfoFetcher
from plugin_catalog.services.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


def build_fetcher(config: CatalogConfig) -> NpmInfoFetcher:
    return NpmInfoFetcher(
        registry_url=config.registry_url,
        downloads_url=config.downloads_url,
        timeout_sec=config.fetch_timeout_sec,
        attempts=config.fetch_attempts,
    )


def build_snapshot_cache(config: CatalogConfig, fetcher: Optional[NpmInfoFetcher] = None) -> SnapshotCache:
    # declarations are re-read on every regeneration so site edits land without a restart
    load_source = partial(load_catalog_source, config.declarations_path)
    logger.info(
        "catalog: declarations=%s ttl_sec=%s registry=%s",
        config.declarations_path,
        config.ttl_sec,
        config.registry_url,
    )
    return SnapshotCache(
        load_source=load_source,
        fetcher=fetcher or build_fetcher(config),
        ttl_sec=config.ttl_sec,
        max_concurrency=config.max_concurrency,
    )
