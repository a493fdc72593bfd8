#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

from plugin_catalog.declarations import CatalogSourceError, load_catalog_payload, validate_catalog_payload


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate plugin declarations JSON")
    parser.add_argument("declarations_path", help="Path to plugin declarations JSON file")
    args = parser.parse_args()

    try:
        payload = load_catalog_payload(Path(args.declarations_path))
    except CatalogSourceError as exc:
        print(f"Invalid declarations JSON: {exc}", file=sys.stderr)
        return 1

    errors = validate_catalog_payload(payload)
    if errors:
        print("Declarations validation failed:")
        for err in errors:
            print(f"- {err}")
        return 2
    print("Declarations validation passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
