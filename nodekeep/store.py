"""
Node store: a mutable, listable collection on top of a byte ledger.

Ledger layout:

    node_keys   -> JSON list of node ids (see index.py)
    node_<id>   -> JSON record (see codec.py)

The ledger is the only source of truth. ``list_nodes`` rebuilds the whole
collection from the index and one read per id every time it is called.

Creating a node is a two-step commit with no transaction around it:

    1. RECORD: write node_<id>
    2. INDEX:  append <id> to node_keys

The record goes first. If step 2 fails the record is an orphan: it exists
and can be read by key, but listings do not show it. The reverse order
would leave index entries pointing at records that never existed. A failed
step 2 raises PartialIndexFailure; creating again is safe because every
attempt mints a new id.

One store instance runs one mutating operation at a time. Nothing here
coordinates separate processes: two clients appending to the index at the
same moment can lose one append.
"""

from __future__ import annotations

import base64
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from typing import Callable, Iterable, Optional, Union

from .codec import decode_record, encode_record
from .errors import (
    CommitPhase,
    LedgerUnavailable,
    NodeKeepError,
    NodeNotFound,
    PartialIndexFailure,
)
from .index import IndexManager
from .protocol import ConfidentialityTransform, LedgerProtocol
from .session import Session, require_session
from .status import StatusReporter
from .types import (
    KIND_CONCEPT,
    STATUS_ACTIVE,
    NodeRecord,
    new_node_id,
    node_key,
    now_seconds,
    validate_id,
    validate_kind,
)

logger = logging.getLogger(__name__)

DEFAULT_READ_WORKERS = 8


def payload_text(blob: Union[bytes, str]) -> str:
    """Store an opaque blob as text: ASCII verbatim, anything else base64."""
    if isinstance(blob, str):
        return blob
    try:
        return bytes(blob).decode("ascii")
    except UnicodeDecodeError:
        return base64.b64encode(bytes(blob)).decode("ascii")


class NodeStore:
    """
    Knowledge nodes stored on a ledger.

    Args:
        ledger: Ledger client used for reads (and writes, unless the
            session brings its own signing client)
        transform: Confidentiality transform applied to new node content
        strict_index: Treat a corrupt index as an error rather than empty
        read_workers: Max concurrent record reads during a listing
        reporter: Optional status reporter driven around each operation
        id_factory: Mints node ids
        clock: Returns integer Unix seconds for ``created_at``
    """

    def __init__(
        self,
        ledger: LedgerProtocol,
        transform: ConfidentialityTransform,
        *,
        strict_index: bool = True,
        read_workers: int = DEFAULT_READ_WORKERS,
        reporter: Optional[StatusReporter] = None,
        id_factory: Callable[[], str] = new_node_id,
        clock: Callable[[], int] = now_seconds,
    ):
        if read_workers < 1:
            raise ValueError("read_workers must be at least 1")
        self._ledger = ledger
        self._transform = transform
        self._index = IndexManager(ledger, strict=strict_index)
        self._read_workers = read_workers
        self._reporter = reporter
        self._new_id = id_factory
        self._clock = clock
        self._write_lock = threading.Lock()

    @property
    def ledger(self) -> LedgerProtocol:
        return self._ledger

    @property
    def index(self) -> IndexManager:
        return self._index

    @property
    def reporter(self) -> Optional[StatusReporter]:
        return self._reporter

    def _tracked(self, operation: str, pending: str, success: str):
        if self._reporter is None:
            return nullcontext()
        return self._reporter.track(operation, pending, success)

    @staticmethod
    def _require_available(ledger: LedgerProtocol) -> None:
        if not ledger.is_available():
            raise LedgerUnavailable("Ledger is not available")

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, node_id: str) -> Optional[NodeRecord]:
        """
        Read one record directly by key, indexed or not.

        Returns None if nothing is stored under the key. Raises DecodeError
        for a malformed record.
        """
        validate_id(node_id)
        self._require_available(self._ledger)
        data = self._ledger.get(node_key(node_id))
        if not data:
            return None
        return decode_record(node_id, data)

    def _read_listed(self, node_id: str) -> Optional[NodeRecord]:
        """Read one indexed record; failures drop the record, not the listing."""
        try:
            data = self._ledger.get(node_key(node_id))
        except Exception as e:
            logger.error("Error loading node %s: %s", node_id, e)
            return None
        if not data:
            # Indexed but never written (or lost): skip quietly
            logger.debug("Index entry %s has no record", node_id)
            return None
        try:
            return decode_record(node_id, data)
        except Exception as e:
            logger.error("Error parsing node data for %s: %s", node_id, e)
            return None

    def list_nodes(self) -> list[NodeRecord]:
        """
        Rebuild the full collection from the ledger.

        Returns active and archived nodes, newest first. Nodes created in
        the same second keep index order. Records that cannot be read or
        decoded are logged and left out.

        Raises:
            LedgerUnavailable: the probe failed; nothing was read
            IndexDecodeError: the index is corrupt (strict mode)
            TransportError: the index itself could not be read
        """
        with self._tracked("refresh", "Loading nodes...", "Nodes loaded"):
            self._require_available(self._ledger)
            # First occurrence wins if the index holds an id twice
            ids = list(dict.fromkeys(self._index.load()))
            if not ids:
                return []

            workers = min(self._read_workers, len(ids))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="nodekeep-read") as pool:
                results = list(pool.map(self._read_listed, ids))

            records = [r for r in results if r is not None]
            # list.sort is stable, also with reverse=True
            records.sort(key=lambda r: r.created_at, reverse=True)
            if len(records) < len(ids):
                logger.info("Listed %d of %d indexed nodes", len(records), len(ids))
            return records

    refresh = list_nodes

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def _commit_record(self, writer: LedgerProtocol, record: NodeRecord) -> None:
        writer.set(record.key, encode_record(record))
        logger.info("Wrote node %s (%s)", record.id, CommitPhase.RECORD.value)

    def _commit_index(self, writer: LedgerProtocol, record: NodeRecord) -> None:
        try:
            self._index.append(record.id, writer)
        except NodeKeepError as e:
            logger.error("Node %s written but not indexed: %s", record.id, e)
            raise PartialIndexFailure(record, e) from e
        logger.info("Indexed node %s (%s)", record.id, CommitPhase.INDEX.value)

    def create(
        self,
        session: Optional[Session],
        kind: str = KIND_CONCEPT,
        raw_payload: Union[bytes, str] = b"",
        relations: Iterable[str] = (),
    ) -> NodeRecord:
        """
        Create a node: transform the content, write the record, index it.

        Args:
            session: Authorized identity context; its address becomes owner
            kind: Node kind ("concept", "entity", "relation" or any other)
            raw_payload: Plaintext content, passed to the transform
            relations: Ids of related nodes (not checked for existence)

        Returns:
            The stored record

        Raises:
            NotAuthorized: no identity; nothing was written
            LedgerUnavailable: probe failed; nothing was read or written
            TransportError: the record write failed; the index is untouched
            PartialIndexFailure: the record exists but is not indexed
        """
        validate_kind(kind)
        relations = list(relations)
        for rel in relations:
            if not isinstance(rel, str):
                raise ValueError(f"Relation ids must be strings: {rel!r}")
        if isinstance(raw_payload, str):
            raw_payload = raw_payload.encode("utf-8")

        with self._tracked("creation", "Creating node...", "Node created"):
            session = require_session(session)
            owner = session.require_address()
            writer = session.writer(self._ledger)
            self._require_available(writer)

            with self._write_lock:
                payload = payload_text(self._transform.transform(raw_payload))
                node_id = self._new_id()
                validate_id(node_id)
                record = NodeRecord(
                    id=node_id,
                    payload=payload,
                    kind=kind,
                    owner=owner,
                    created_at=int(self._clock()),
                    relations=relations,
                    status=STATUS_ACTIVE,
                )
                self._commit_record(writer, record)
                self._commit_index(writer, record)
            return record

    def archive(self, session: Optional[Session], node_id: str) -> NodeRecord:
        """
        Mark a node archived. Archiving an archived node changes nothing.

        The index is never written.

        Returns:
            The record as stored after the call

        Raises:
            NotAuthorized: no identity; nothing was written
            LedgerUnavailable: probe failed; nothing was read or written
            NodeNotFound: nothing is stored under node_<id>
            DecodeError: the stored record is malformed
            TransportError: the read or write failed
        """
        validate_id(node_id)
        with self._tracked("archive", "Archiving node...", "Node archived"):
            session = require_session(session)
            writer = session.writer(self._ledger)
            self._require_available(writer)

            with self._write_lock:
                key = node_key(node_id)
                data = writer.get(key)
                if not data:
                    raise NodeNotFound(node_id)
                record = decode_record(node_id, data)
                if record.is_archived:
                    logger.debug("Node %s already archived", node_id)
                    return record
                updated = record.archived()
                writer.set(key, encode_record(updated))
                logger.info("Archived node %s", node_id)
                return updated

    def close(self) -> None:
        close = getattr(self._ledger, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "NodeStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
