"""
Error types and error logging for nodekeep.

The exception hierarchy mirrors the failure model of the node store:
whole-operation failures (ledger unavailable, missing authorization),
single-target failures (not found, undecodable record), and the
partial-commit outcome of a create whose index append failed.

``log_exception`` keeps full stack traces in a log file while the CLI
shows a one-line message.
"""

import enum
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .types import NodeRecord


class NodeKeepError(Exception):
    """Base class for all nodekeep errors."""


class LedgerUnavailable(NodeKeepError):
    """The ledger liveness probe failed; nothing was read or written."""


class NotAuthorized(NodeKeepError):
    """A mutating operation was attempted without an identity context."""


class NodeNotFound(NodeKeepError, KeyError):
    """No record is stored under the requested node key."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"


class DecodeError(NodeKeepError, ValueError):
    """A stored payload could not be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Cannot decode {key}: {reason}")
        self.key = key
        self.reason = reason


class IndexDecodeError(DecodeError):
    """The node index payload is corrupt."""


class TransportError(NodeKeepError):
    """A ledger call failed at the network or authorization layer."""


class WriteRejected(TransportError):
    """The ledger (or the signer behind it) refused a write."""


class CommitPhase(enum.Enum):
    """The two steps of a node create."""
    RECORD = "record"
    INDEX = "index"


class PartialIndexFailure(NodeKeepError):
    """
    The record write succeeded but appending its id to the index failed.

    The record is now an orphan: readable by key, invisible to listings.
    Retrying the create is safe, it mints a new id.
    """

    phase = CommitPhase.INDEX

    def __init__(self, record: "NodeRecord", cause: Optional[BaseException] = None):
        super().__init__(
            f"Node {record.id} was written but could not be indexed: {cause}"
        )
        self.record = record
        self.cause = cause


def _error_log_path() -> Path:
    """Resolve error log path, respecting NODEKEEP_CONFIG_DIR."""
    config_dir = os.environ.get("NODEKEEP_CONFIG_DIR")
    if config_dir:
        return Path(config_dir) / "nodekeep-errors.log"
    return Path.home() / ".nodekeep" / "nodekeep-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
