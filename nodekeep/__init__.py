"""
nodekeep: typed knowledge nodes on a primitive key-value ledger.

The ledger offers only read-by-key and write-by-key. nodekeep keeps an index
of node ids under one well-known key, writes each node under its own key,
and rebuilds the collection from those reads.

Quick start::

    from nodekeep import MemoryLedger, NodeStore, Session

    store = NodeStore(MemoryLedger(), transform)
    session = Session(address="0xabc")
    node = store.create(session, "concept", "hello")
    store.archive(session, node.id)
    store.list_nodes()
"""

from .errors import (
    CommitPhase,
    DecodeError,
    IndexDecodeError,
    LedgerUnavailable,
    NodeKeepError,
    NodeNotFound,
    NotAuthorized,
    PartialIndexFailure,
    TransportError,
    WriteRejected,
)
from .index import IndexManager
from .ledger import DirectoryLedger, HttpLedgerClient, MemoryLedger
from .protocol import ConfidentialityTransform, IdentityProvider, LedgerProtocol
from .session import Session
from .status import StatusEvent, StatusReporter, StatusState
from .store import NodeStore
from .types import (
    INDEX_KEY,
    KIND_CONCEPT,
    KIND_ENTITY,
    KIND_RELATION,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    NodeRecord,
    node_key,
)
from .views import filter_nodes, node_stats

__version__ = "0.1.0"

__all__ = [
    "CommitPhase",
    "ConfidentialityTransform",
    "DecodeError",
    "DirectoryLedger",
    "HttpLedgerClient",
    "INDEX_KEY",
    "IdentityProvider",
    "IndexDecodeError",
    "IndexManager",
    "KIND_CONCEPT",
    "KIND_ENTITY",
    "KIND_RELATION",
    "LedgerProtocol",
    "LedgerUnavailable",
    "MemoryLedger",
    "NodeKeepError",
    "NodeNotFound",
    "NodeRecord",
    "NodeStore",
    "NotAuthorized",
    "PartialIndexFailure",
    "STATUS_ACTIVE",
    "STATUS_ARCHIVED",
    "Session",
    "StatusEvent",
    "StatusReporter",
    "StatusState",
    "TransportError",
    "WriteRejected",
    "filter_nodes",
    "node_key",
    "node_stats",
]
