"""
Pluggable ledger and transform factory.

Builds the collaborators of a NodeStore from configuration. Built-in
ledgers are ``http``, ``directory`` and ``memory``; the only built-in
transform is ``passthrough``. Other packages register more via entry
points::

    [project.entry-points."nodekeep.ledgers"]
    my-ledger = "my_package.ledger:create_ledger"      # (LedgerConfig) -> ledger

    [project.entry-points."nodekeep.transforms"]
    my-fhe = "my_package.fhe:create_transform"         # (**params) -> transform
"""

import logging
from typing import NamedTuple, Optional

from .config import LedgerConfig, NodeKeepConfig
from .protocol import ConfidentialityTransform, LedgerProtocol
from .session import Session
from .status import StatusReporter
from .store import NodeStore

logger = logging.getLogger(__name__)

LEDGER_GROUP = "nodekeep.ledgers"
TRANSFORM_GROUP = "nodekeep.transforms"


class PassthroughTransform:
    """Stores content as-is. Offers no confidentiality."""

    def __init__(self, **params):
        if params:
            logger.debug("passthrough transform ignores params: %s", sorted(params))
        logger.warning("Using passthrough transform: node content is stored unprotected")

    def transform(self, plain: bytes) -> bytes:
        return bytes(plain)


class ConfiguredIdentity:
    """Identity provider returning a fixed address (config or environment)."""

    def __init__(self, address: Optional[str]):
        self._address = address

    def current_address(self) -> Optional[str]:
        return self._address


class ClientBundle(NamedTuple):
    """A configured store and the session to mutate it with."""
    store: NodeStore
    session: Session


def _load_entry_point(group: str, name: str):
    from importlib.metadata import entry_points

    eps = entry_points(group=group)
    for ep in eps:
        if ep.name == name:
            return ep.load()

    available = [ep.name for ep in eps]
    if available:
        raise ValueError(f"Unknown {group} plugin: {name!r}. Available: {available}")
    raise ValueError(f"Unknown {group} plugin: {name!r}. No plugins registered.")


def create_ledger(config: NodeKeepConfig) -> LedgerProtocol:
    """Create the ledger client named by ``config.ledger.backend``."""
    ledger: LedgerConfig = config.ledger
    if ledger.backend == "http":
        from .ledger import HttpLedgerClient
        if not ledger.url:
            raise ValueError("HTTP ledger requires a url (set [ledger] url or NODEKEEP_LEDGER_URL)")
        return HttpLedgerClient(ledger.url, ledger.api_key, timeout=ledger.timeout)
    if ledger.backend == "directory":
        from .ledger import DirectoryLedger
        return DirectoryLedger(config.ledger_path)
    if ledger.backend == "memory":
        from .ledger import MemoryLedger
        return MemoryLedger()
    factory = _load_entry_point(LEDGER_GROUP, ledger.backend)
    return factory(ledger)


def create_transform(config: NodeKeepConfig) -> ConfidentialityTransform:
    """Create the transform named by ``config.transform.name``."""
    name = config.transform.name
    params = config.transform.params
    if name == "passthrough":
        return PassthroughTransform(**params)
    factory = _load_entry_point(TRANSFORM_GROUP, name)
    try:
        return factory(**params)
    except Exception as e:
        raise RuntimeError(f"Failed to create transform '{name}': {e}") from e


def create_reporter(config: NodeKeepConfig) -> StatusReporter:
    return StatusReporter(
        success_interval=config.success_interval,
        error_interval=config.error_interval,
    )


def create_client(
    config: NodeKeepConfig,
    *,
    reporter: Optional[StatusReporter] = None,
) -> ClientBundle:
    """
    Build a NodeStore and Session from configuration.

    The session's address comes from config/environment; without one the
    session can list but not create or archive.
    """
    ledger = create_ledger(config)
    store = NodeStore(
        ledger,
        create_transform(config),
        strict_index=config.strict_index,
        read_workers=config.read_workers,
        reporter=reporter,
    )
    session = Session.from_provider(ConfiguredIdentity(config.address))
    return ClientBundle(store=store, session=session)
