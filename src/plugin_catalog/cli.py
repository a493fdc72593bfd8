import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from plugin_catalog.app_container import build_fetcher, build_snapshot_cache
from plugin_catalog.config import DEFAULT_CONFIG_DIR, CatalogConfig, load_config
from plugin_catalog.presentation.marketplace import VIEW_NAMES, build_view_items, marketplace_props, view_entries
from plugin_catalog.registry.npm_info import metadata_to_dict


def _configure_logging(level: str) -> None:
    level = (level or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _print_config(config: CatalogConfig) -> None:
    print(f"Config dir: {config.config_dir}")
    print(f"Env file: {config.env_path}")
    print(f"Declarations: {config.declarations_path}")
    print(f"TTL (sec): {config.ttl_sec:g}")
    print(f"Fetch timeout (sec): {config.fetch_timeout_sec:g}")
    print(f"Fetch attempts: {config.fetch_attempts}")
    print(f"Max concurrency: {config.max_concurrency}")
    print(f"Registry: {config.registry_url}")
    print(f"Downloads API: {config.downloads_url}")
    print(f"Admin token set: {'yes' if config.admin_token else 'no'}")


async def _dump(config: CatalogConfig, view: Optional[str]) -> Dict[str, Any]:
    fetcher = build_fetcher(config)
    try:
        cache = build_snapshot_cache(config, fetcher=fetcher)
        snapshot = await cache.get_snapshot()
    finally:
        await fetcher.aclose()
    if view:
        return {"view": view, "items": build_view_items(view_entries(snapshot, view), snapshot.icons)}
    return marketplace_props(snapshot)


async def _info(config: CatalogConfig, package: str) -> Dict[str, Any]:
    fetcher = build_fetcher(config)
    try:
        return metadata_to_dict(await fetcher.fetch_info(package))
    finally:
        await fetcher.aclose()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Plugin catalog aggregation service")
    parser.add_argument(
        "--config-dir",
        default=str(DEFAULT_CONFIG_DIR),
        help="Directory holding the .env config (default: ~/.config/plugin-catalog)",
    )
    parser.add_argument("--declarations", default=None, help="Path to the plugin declarations JSON file")
    parser.add_argument("--print-config", action="store_true", help="Print active config summary")
    parser.add_argument("--dump", action="store_true", help="Regenerate once and print widget props as JSON")
    parser.add_argument("--view", choices=VIEW_NAMES, default=None, help="With --dump, print a single view")
    parser.add_argument("--info", metavar="PACKAGE", default=None, help="Print registry metadata for one package")
    parser.add_argument("--serve", action="store_true", help="Serve the catalog over HTTP")
    parser.add_argument("--host", default="127.0.0.1", help="HTTP bind host")
    parser.add_argument("--port", type=int, default=8780, help="HTTP bind port")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))

    args = parser.parse_args(argv)
    config_dir = Path(args.config_dir).expanduser().resolve()
    declarations = Path(args.declarations) if args.declarations else None

    _configure_logging(args.log_level)
    config = load_config(config_dir, declarations_path=declarations)

    if args.print_config:
        _print_config(config)
        return 0

    if args.info:
        print(json.dumps(asyncio.run(_info(config, args.info)), indent=2))
        return 0

    if args.dump:
        try:
            payload = asyncio.run(_dump(config, args.view))
        except Exception as exc:
            print(f"Catalog generation failed: {exc}", file=sys.stderr)
            return 1
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    if args.serve:
        from plugin_catalog.web.app import create_app
        import uvicorn

        fetcher = build_fetcher(config)
        app = create_app(
            build_snapshot_cache(config, fetcher=fetcher),
            admin_token=config.admin_token,
            fetcher=fetcher,
        )
        uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
