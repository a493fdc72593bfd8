from dataclasses import dataclass, field
from types import MappingProxyType
from datetime import datetime
from typing import Mapping, Optional, Tuple

CategoryMap = Mapping[str, Tuple[str, ...]]


@dataclass(frozen=True)
class PluginDeclaration:
    identifier: str
    package: str
    title: str
    icon: str
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IconAsset:
    src: str
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class CatalogSource:
    declarations: Tuple[PluginDeclaration, ...]
    categories: CategoryMap = field(default_factory=lambda: MappingProxyType({}))
    icons: Mapping[str, IconAsset] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class RegistryMetadata:
    """Registry facts for one package.

    ``degraded`` marks defaults standing in for registry data. ``unreachable``
    additionally marks that the registry itself did not answer (timeout,
    transport error, server error), as opposed to a package with no
    published data.
    """

    readme: str = ""
    created_at: str = ""
    updated_at: str = ""
    description: str = ""
    weekly_downloads: int = 0
    degraded: bool = False
    unreachable: bool = False


@dataclass(frozen=True)
class CatalogEntry:
    identifier: str
    category: str
    title: str
    readme: str
    created_at: str
    updated_at: str
    description: str
    link_href: str
    weekly_downloads: int
    icon: str
    tags: Tuple[str, ...]
    degraded: bool = False
    unreachable: bool = False


@dataclass(frozen=True)
class RankedViews:
    trending: Tuple[CatalogEntry, ...]
    recently_updated: Tuple[CatalogEntry, ...]
    all: Tuple[CatalogEntry, ...]


@dataclass(frozen=True)
class Snapshot:
    """Immutable bundle of ranked views valid for ``ttl_sec`` seconds.

    ``created_at`` is a monotonic clock reading used only for age checks;
    ``generated_at`` is the wall-clock time shown to clients.
    """

    views: RankedViews
    all_tags: Tuple[str, ...]
    created_at: float
    generated_at: datetime
    ttl_sec: float
    icons: Mapping[str, IconAsset] = field(default_factory=lambda: MappingProxyType({}))

    def age_sec(self, now: float) -> float:
        return max(0.0, now - self.created_at)

    def is_fresh(self, now: float) -> bool:
        return self.age_sec(now) < self.ttl_sec
