"""
Configuration for nodekeep clients.

The configuration is a TOML file, ``nodekeep.toml``, in the config
directory (``NODEKEEP_CONFIG_DIR`` or ``~/.nodekeep``). It names the ledger
backend and transform to use and tunes the store and status display.

Environment variables override the file for secrets and per-shell identity:
NODEKEEP_LEDGER_URL, NODEKEEP_API_KEY, NODEKEEP_ADDRESS.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# tomli_w for writing TOML (tomllib is read-only)
try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore


CONFIG_FILENAME = "nodekeep.toml"
CONFIG_VERSION = 1

DEFAULT_LEDGER_BACKEND = "directory"
DEFAULT_TRANSFORM = "passthrough"


def get_config_dir() -> Path:
    """Config directory: NODEKEEP_CONFIG_DIR or ~/.nodekeep."""
    env = os.environ.get("NODEKEEP_CONFIG_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".nodekeep"


@dataclass
class LedgerConfig:
    """Which ledger to talk to.

    ``backend`` is "http", "directory", "memory", or the name of a
    ``nodekeep.ledgers`` entry point. ``params`` holds any other keys of the
    [ledger] table, passed to plugin backends.
    """
    backend: str = DEFAULT_LEDGER_BACKEND
    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 30.0
    path: Optional[Path] = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderConfig:
    """Configuration for a named provider (transform)."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class NodeKeepConfig:
    """Complete client configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    transform: ProviderConfig = field(default_factory=lambda: ProviderConfig(DEFAULT_TRANSFORM))
    address: Optional[str] = None

    read_workers: int = 8
    strict_index: bool = True
    success_interval: float = 2.0
    error_interval: float = 3.0

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def ledger_path(self) -> Path:
        """Directory used by the directory ledger."""
        return self.ledger.path or (self.path / "ledger")

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def _apply_env(config: NodeKeepConfig) -> NodeKeepConfig:
    url = os.environ.get("NODEKEEP_LEDGER_URL")
    if url:
        config.ledger.url = url
        if config.ledger.backend == DEFAULT_LEDGER_BACKEND:
            config.ledger.backend = "http"
    api_key = os.environ.get("NODEKEEP_API_KEY")
    if api_key:
        config.ledger.api_key = api_key
    address = os.environ.get("NODEKEEP_ADDRESS")
    if address:
        config.address = address
    return config


def load_config(config_dir: Path) -> NodeKeepConfig:
    """
    Load configuration from a config directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = config_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    meta = data.get("nodekeep", {})
    version = meta.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    ledger_section = dict(data.get("ledger", {}))
    ledger_path = ledger_section.pop("path", None)
    ledger = LedgerConfig(
        backend=ledger_section.pop("backend", DEFAULT_LEDGER_BACKEND),
        url=ledger_section.pop("url", None),
        api_key=ledger_section.pop("api_key", None),
        timeout=float(ledger_section.pop("timeout", 30.0)),
        path=Path(ledger_path).expanduser() if ledger_path else None,
        params=ledger_section,
    )

    transform_section = dict(data.get("transform", {"name": DEFAULT_TRANSFORM}))
    transform = ProviderConfig(
        name=transform_section.pop("name", DEFAULT_TRANSFORM),
        params=transform_section,
    )

    store = data.get("store", {})
    index = data.get("index", {})
    status = data.get("status", {})
    read_workers = int(store.get("read_workers", 8))
    if read_workers < 1:
        raise ValueError(f"store.read_workers must be at least 1 (got {read_workers})")

    return NodeKeepConfig(
        path=config_dir,
        version=version,
        created=meta.get("created", ""),
        ledger=ledger,
        transform=transform,
        address=data.get("identity", {}).get("address") or None,
        read_workers=read_workers,
        strict_index=bool(index.get("strict", True)),
        success_interval=float(status.get("success_interval", 2.0)),
        error_interval=float(status.get("error_interval", 3.0)),
    )


def save_config(config: NodeKeepConfig) -> None:
    """
    Save configuration to the config directory.

    Creates the directory if it doesn't exist. The API key is never
    written; keep it in NODEKEEP_API_KEY.
    """
    if tomli_w is None:
        raise RuntimeError("tomli_w is required to save config. Install with: pip install tomli-w")

    config.path.mkdir(parents=True, exist_ok=True)

    ledger: dict[str, Any] = {"backend": config.ledger.backend, "timeout": config.ledger.timeout}
    if config.ledger.url:
        ledger["url"] = config.ledger.url
    if config.ledger.path:
        ledger["path"] = str(config.ledger.path)
    ledger.update(config.ledger.params)

    transform: dict[str, Any] = {"name": config.transform.name}
    transform.update(config.transform.params)

    data: dict[str, Any] = {
        "nodekeep": {
            "version": config.version,
            "created": config.created,
        },
        "ledger": ledger,
        "transform": transform,
        "store": {"read_workers": config.read_workers},
        "index": {"strict": config.strict_index},
        "status": {
            "success_interval": config.success_interval,
            "error_interval": config.error_interval,
        },
    }
    if config.address:
        data["identity"] = {"address": config.address}

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(config_dir: Optional[Path] = None) -> NodeKeepConfig:
    """
    Load existing config or create a new one with defaults.

    Environment overrides are applied after loading and are not saved.
    This is the main entry point for config management.
    """
    config_dir = config_dir or get_config_dir()
    if (config_dir / CONFIG_FILENAME).exists():
        config = load_config(config_dir)
    else:
        config = NodeKeepConfig(path=config_dir)
        save_config(config)
    return _apply_env(config)
