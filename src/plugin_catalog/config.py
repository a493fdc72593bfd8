import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

DECLARATIONS_KEY = "PLUGIN_CATALOG_DECLARATIONS"
TTL_KEY = "PLUGIN_CATALOG_TTL_SEC"
FETCH_TIMEOUT_KEY = "PLUGIN_CATALOG_FETCH_TIMEOUT_SEC"
FETCH_ATTEMPTS_KEY = "PLUGIN_CATALOG_FETCH_ATTEMPTS"
MAX_CONCURRENCY_KEY = "PLUGIN_CATALOG_MAX_CONCURRENCY"
ADMIN_TOKEN_KEY = "PLUGIN_CATALOG_ADMIN_TOKEN"
REGISTRY_URL_KEY = "NPM_REGISTRY_URL"
DOWNLOADS_URL_KEY = "NPM_DOWNLOADS_URL"

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "plugin-catalog"
DEFAULT_DECLARATIONS_FILE = "plugins.json"
DEFAULT_TTL_SEC = 60 * 60
DEFAULT_FETCH_TIMEOUT_SEC = 10.0
DEFAULT_FETCH_ATTEMPTS = 2
DEFAULT_MAX_CONCURRENCY = 16
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_DOWNLOADS_URL = "https://api.npmjs.org"


@dataclass
class CatalogConfig:
    declarations_path: Path
    ttl_sec: float
    fetch_timeout_sec: float
    fetch_attempts: int
    max_concurrency: int
    admin_token: str
    registry_url: str
    downloads_url: str
    config_dir: Path
    env_path: Path


def load_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    if not path.exists():
        return data
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            data[k.strip()] = v.strip()
    except Exception as exc:
        print(f"Failed to read .env: {exc}", file=sys.stderr)
    return data


def get_env_value(key: str, env_file: Dict[str, str]) -> Optional[str]:
    return os.environ.get(key) or env_file.get(key)


def get_env_path(config_dir: Path) -> Path:
    return config_dir / ".env"


def parse_positive_float(raw: Optional[str], default: float) -> float:
    if not raw:
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def parse_positive_int(raw: Optional[str], default: int) -> int:
    if not raw:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def load_config(config_dir: Path, declarations_path: Optional[Path] = None) -> CatalogConfig:
    """Build the runtime config from the process env and ``<config_dir>/.env``.

    Process environment values win over the file. An explicit
    ``declarations_path`` (from the CLI) wins over both.
    """
    env_path = get_env_path(config_dir)
    env_file = load_env_file(env_path)

    if declarations_path is None:
        raw_path = get_env_value(DECLARATIONS_KEY, env_file) or DEFAULT_DECLARATIONS_FILE
        declarations_path = Path(raw_path)

    return CatalogConfig(
        declarations_path=Path(declarations_path).expanduser(),
        ttl_sec=parse_positive_float(get_env_value(TTL_KEY, env_file), float(DEFAULT_TTL_SEC)),
        fetch_timeout_sec=parse_positive_float(
            get_env_value(FETCH_TIMEOUT_KEY, env_file), DEFAULT_FETCH_TIMEOUT_SEC
        ),
        fetch_attempts=parse_positive_int(get_env_value(FETCH_ATTEMPTS_KEY, env_file), DEFAULT_FETCH_ATTEMPTS),
        max_concurrency=parse_positive_int(
            get_env_value(MAX_CONCURRENCY_KEY, env_file), DEFAULT_MAX_CONCURRENCY
        ),
        admin_token=(get_env_value(ADMIN_TOKEN_KEY, env_file) or "").strip(),
        registry_url=(get_env_value(REGISTRY_URL_KEY, env_file) or DEFAULT_REGISTRY_URL).rstrip("/"),
        downloads_url=(get_env_value(DOWNLOADS_URL_KEY, env_file) or DEFAULT_DOWNLOADS_URL).rstrip("/"),
        config_dir=config_dir,
        env_path=env_path,
    )
