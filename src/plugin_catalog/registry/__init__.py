"""Package registry access (npm)."""
from plugin_catalog.registry.npm_info import NpmInfoFetcher, degraded_metadata
from plugin_catalog.registry.transport import build_httpx_client, get_json_with_retries

__all__ = [
    "NpmInfoFetcher",
    "build_httpx_client",
    "degraded_metadata",
    "get_json_with_retries",
]
