from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from plugin_catalog.domain.catalog import CatalogEntry, RankedViews

OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        # accepts the full ISO 8601 profile of 3.11+, Z suffix and basic format included
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _updated_key(entry: CatalogEntry) -> datetime:
    return parse_timestamp(entry.updated_at) or OLDEST


def recently_updated(entries: Iterable[CatalogEntry]) -> Tuple[CatalogEntry, ...]:
    # sorted() is stable with reverse=True: equal keys keep input order
    return tuple(sorted(entries, key=_updated_key, reverse=True))


def trending(entries: Iterable[CatalogEntry]) -> Tuple[CatalogEntry, ...]:
    popular = [e for e in entries if e.weekly_downloads > 0]
    return tuple(sorted(popular, key=lambda e: e.weekly_downloads, reverse=True))


def rank(entries: Iterable[CatalogEntry]) -> RankedViews:
    ordered = tuple(entries)
    return RankedViews(
        trending=trending(ordered),
        recently_updated=recently_updated(ordered),
        all=ordered,
    )
