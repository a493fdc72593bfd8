from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from plugin_catalog.domain.catalog import CatalogEntry, IconAsset, Snapshot

MARKETPLACE_TITLE = "Explore Plugins"
SEARCH_PLACEHOLDER = "Find plugins..."
PAGE_SIZE = 10

VIEW_NAMES = ("trending", "recently-updated", "all")


def image_descriptor(entry: CatalogEntry, icons: Mapping[str, IconAsset]) -> Dict[str, Any]:
    asset = icons.get(entry.icon)
    if asset is not None:
        image: Dict[str, Any] = {"src": asset.src}
        if asset.width is not None:
            image["width"] = asset.width
        if asset.height is not None:
            image["height"] = asset.height
    else:
        # not a known icon key: treat it as a raw URL
        image = {"src": entry.icon}
    image.update({"placeholder": "empty", "loading": "eager", "alt": entry.title})
    return image


def to_display_item(entry: CatalogEntry, icons: Mapping[str, IconAsset]) -> Dict[str, Any]:
    return {
        "title": entry.title,
        "description": entry.description,
        "tags": list(entry.tags),
        "link": {
            "href": entry.link_href,
            "title": f"{entry.title} plugin details",
        },
        "update": entry.updated_at,
        "image": image_descriptor(entry, icons),
        "weeklyNPMDownloads": entry.weekly_downloads,
    }


def build_view_items(view: Iterable[CatalogEntry], icons: Mapping[str, IconAsset]) -> List[Dict[str, Any]]:
    return [to_display_item(entry, icons) for entry in view]


def view_entries(snapshot: Snapshot, name: str) -> Iterable[CatalogEntry]:
    if name == "trending":
        return snapshot.views.trending
    if name == "recently-updated":
        return snapshot.views.recently_updated
    if name == "all":
        return snapshot.views.all
    raise KeyError(name)


def marketplace_props(snapshot: Snapshot, icons: Optional[Mapping[str, IconAsset]] = None) -> Dict[str, Any]:
    """Props for the marketplace search widget: three paginated lists plus the tag filter."""
    if icons is None:
        icons = snapshot.icons
    return {
        "title": MARKETPLACE_TITLE,
        "tagsFilter": list(snapshot.all_tags),
        "placeholder": SEARCH_PLACEHOLDER,
        "primaryList": {
            "title": "Trending",
            "items": build_view_items(snapshot.views.trending, icons),
            "placeholder": "0 items",
            "pagination": PAGE_SIZE,
        },
        "secondaryList": {
            "title": "Recently Updated",
            "items": build_view_items(snapshot.views.recently_updated, icons),
            "placeholder": "0 items",
            "pagination": PAGE_SIZE,
        },
        "queryList": {
            "title": "Search Results",
            "items": build_view_items(snapshot.views.all, icons),
            "placeholder": "No results for {query}",
            "pagination": PAGE_SIZE,
        },
        "generatedAt": snapshot.generated_at.isoformat(),
    }
