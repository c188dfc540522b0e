"""
Data types for knowledge nodes.
"""

import random
import re
import string
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any


# Well-known ledger key holding the ordered list of node ids
INDEX_KEY = "node_keys"

# Prefix of per-node record keys: node_<id>
NODE_KEY_PREFIX = "node_"

KIND_CONCEPT = "concept"
KIND_ENTITY = "entity"
KIND_RELATION = "relation"

# Kinds the CLI offers; stored kinds outside this set still round-trip
KNOWN_KINDS = (KIND_CONCEPT, KIND_ENTITY, KIND_RELATION)

STATUS_ACTIVE = "active"
STATUS_ARCHIVED = "archived"

STATUSES = (STATUS_ACTIVE, STATUS_ARCHIVED)

MAX_ID_LENGTH = 256

# IDs end up inside ledger keys and CLI output: no control chars,
# whitespace, path separators or quoting characters
_ID_BLOCKED_RE = re.compile(r'[\x00-\x20\x7f/\\`<>|;"\']')

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 7


@dataclass
class NodeRecord:
    """
    A single knowledge node as stored on the ledger.

    ``payload`` is the output of the confidentiality transform; the store
    never looks inside it. ``extra`` holds stored fields this version does
    not know about, so they survive a read-modify-write.
    """
    id: str
    payload: str
    kind: str
    owner: str
    created_at: int
    relations: list[str] = field(default_factory=list)
    status: str = STATUS_ACTIVE
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return node_key(self.id)

    @property
    def is_archived(self) -> bool:
        return self.status == STATUS_ARCHIVED

    def archived(self) -> "NodeRecord":
        """Copy of this record with status set to archived."""
        return replace(self, status=STATUS_ARCHIVED)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for JSON output."""
        return {
            "id": self.id,
            "kind": self.kind,
            "status": self.status,
            "owner": self.owner,
            "created_at": self.created_at,
            "relations": list(self.relations),
            "payload": self.payload,
        }


def node_key(node_id: str) -> str:
    """Ledger key for a node record."""
    return f"{NODE_KEY_PREFIX}{node_id}"


def validate_id(node_id: str) -> None:
    """Validate a node ID: length and no dangerous characters."""
    if not node_id or len(node_id) > MAX_ID_LENGTH:
        raise ValueError(f"Node ID must be 1-{MAX_ID_LENGTH} characters")
    if _ID_BLOCKED_RE.search(node_id):
        raise ValueError(f"Node ID contains invalid characters: {node_id!r}")


def validate_kind(kind: str) -> None:
    if not isinstance(kind, str) or not kind.strip():
        raise ValueError("Node kind must be a non-empty string")


def now_seconds() -> int:
    """Current time as integer Unix seconds."""
    return int(time.time())


class IdGenerator:
    """
    Mints node ids as ``<millis>-<random suffix>``.

    The millisecond part never goes backwards within one generator, even if
    the wall clock does. Uniqueness is best effort: two processes minting in
    the same millisecond only collide if they also draw the same suffix.
    """

    def __init__(self, clock=time.time, rng: random.Random | None = None):
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._last_ms = 0
        self._lock = threading.Lock()

    def _millis(self) -> int:
        with self._lock:
            ms = max(int(self._clock() * 1000), self._last_ms)
            self._last_ms = ms
            return ms

    def __call__(self) -> str:
        suffix = "".join(self._rng.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
        return f"{self._millis()}-{suffix}"


new_node_id = IdGenerator()
