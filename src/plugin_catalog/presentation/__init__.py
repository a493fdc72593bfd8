from plugin_catalog.presentation.marketplace import (
    VIEW_NAMES,
    build_view_items,
    image_descriptor,
    marketplace_props,
    to_display_item,
    view_entries,
)

__all__ = [
    "VIEW_NAMES",
    "build_view_items",
    "image_descriptor",
    "marketplace_props",
    "to_display_item",
    "view_entries",
]
