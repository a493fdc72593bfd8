import json
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Tuple

from plugin_catalog.domain.catalog import CatalogSource, IconAsset, PluginDeclaration

PLUGIN_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


class CatalogSourceError(ValueError):
    """Raised when the static declarations file cannot be used."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid plugin declarations: " + "; ".join(self.errors))


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise CatalogSourceError([f"duplicate key '{key}'."])
        out[key] = value
    return out


def load_catalog_payload(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"), object_pairs_hook=_reject_duplicate_keys)
    except OSError as exc:
        raise CatalogSourceError([f"cannot read {path}: {exc}"]) from exc
    except json.JSONDecodeError as exc:
        raise CatalogSourceError([f"invalid JSON in {path}: {exc}"]) from exc
    if not isinstance(data, dict):
        raise CatalogSourceError(["declarations root must be a JSON object."])
    return data


def validate_catalog_payload(payload: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    plugins = payload.get("plugins")
    if not isinstance(plugins, dict) or not plugins:
        errors.append("plugins must be a non-empty object.")
        plugins = {}

    for identifier, item in plugins.items():
        if not PLUGIN_ID_RE.match(str(identifier)):
            errors.append(f"plugins['{identifier}'] identifier must match {PLUGIN_ID_RE.pattern}.")
        if not isinstance(item, dict):
            errors.append(f"plugins['{identifier}'] must be an object.")
            continue
        if not str(item.get("title") or "").strip():
            errors.append(f"plugins['{identifier}'].title is required.")
        if not str(item.get("icon") or "").strip():
            errors.append(f"plugins['{identifier}'].icon is required.")
        package = item.get("npmPackage")
        if package is not None and not str(package).strip():
            errors.append(f"plugins['{identifier}'].npmPackage must not be empty when provided.")
        tags = item.get("tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, str) and t.strip() for t in tags):
            errors.append(f"plugins['{identifier}'].tags must be an array of non-empty strings.")

    categories = payload.get("categories", {})
    if not isinstance(categories, dict):
        errors.append("categories must be an object when provided.")
    else:
        for key, members in categories.items():
            if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
                errors.append(f"categories['{key}'] must be an array of plugin identifiers.")

    icons = payload.get("icons", {})
    if not isinstance(icons, dict):
        errors.append("icons must be an object when provided.")
    else:
        for name, asset in icons.items():
            if not isinstance(asset, dict) or not str(asset.get("src") or "").strip():
                errors.append(f"icons['{name}'].src is required.")
                continue
            for dim in ("width", "height"):
                value = asset.get(dim)
                if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
                    errors.append(f"icons['{name}'].{dim} must be a positive integer.")

    return errors


def parse_catalog_source(payload: Dict[str, Any]) -> CatalogSource:
    errors = validate_catalog_payload(payload)
    if errors:
        raise CatalogSourceError(errors)

    declarations: List[PluginDeclaration] = []
    for identifier, item in payload["plugins"].items():
        declarations.append(
            PluginDeclaration(
                identifier=identifier,
                package=str(item.get("npmPackage") or identifier).strip(),
                title=str(item["title"]).strip(),
                icon=str(item["icon"]).strip(),
                tags=tuple(t.strip() for t in item.get("tags", [])),
            )
        )

    categories: Dict[str, Tuple[str, ...]] = {
        str(key): tuple(members) for key, members in (payload.get("categories") or {}).items()
    }
    icons = {
        str(name): IconAsset(src=str(asset["src"]), width=asset.get("width"), height=asset.get("height"))
        for name, asset in (payload.get("icons") or {}).items()
    }
    return CatalogSource(
        declarations=tuple(declarations),
        categories=MappingProxyType(categories),
        icons=MappingProxyType(icons),
    )


def load_catalog_source(path: Path) -> CatalogSource:
    return parse_catalog_source(load_catalog_payload(path))


def collect_tags(declarations: Iterable[PluginDeclaration]) -> Tuple[str, ...]:
    """All distinct tags in first-seen order, used as the widget's tag filter."""
    seen: Dict[str, None] = {}
    for decl in declarations:
        for tag in decl.tags:
            seen.setdefault(tag, None)
    return tuple(seen)
