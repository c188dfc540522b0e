"""
Index of node ids.

The ledger cannot enumerate keys, so the ids of all nodes ever created are
kept as one JSON list under ``node_keys``. Appending is a read-modify-write
of the whole list and is not atomic with the record write it follows: an
append can fail after the record landed (orphan record), and two processes
appending at once can lose one of the appends. Neither is masked here.
"""

from __future__ import annotations

import logging

from .codec import decode_index, encode_index
from .errors import IndexDecodeError
from .protocol import LedgerProtocol
from .types import INDEX_KEY

logger = logging.getLogger(__name__)


class IndexManager:
    """
    Reads and appends to the node index.

    Args:
        ledger: Ledger to read the index from
        strict: If True (default), a corrupt index raises IndexDecodeError.
            If False, it is logged and treated as empty, and the next append
            replaces it.
    """

    def __init__(self, ledger: LedgerProtocol, *, strict: bool = True):
        self._ledger = ledger
        self._strict = strict

    @property
    def key(self) -> str:
        return INDEX_KEY

    def load(self, ledger: LedgerProtocol | None = None) -> list[str]:
        """Current list of node ids, oldest first."""
        data = (ledger or self._ledger).get(INDEX_KEY)
        if not data:
            return []
        try:
            return decode_index(data)
        except IndexDecodeError as e:
            if self._strict:
                raise
            logger.error("Ignoring corrupt node index: %s", e)
            return []

    def append(self, node_id: str, ledger: LedgerProtocol | None = None) -> list[str]:
        """
        Append an id and write the whole list back.

        No duplicate check: ids are minted unique. ``ledger`` overrides the
        ledger used for this read-modify-write (the caller's signing ledger).

        Returns:
            The list as written
        """
        target = ledger or self._ledger
        ids = self.load(target)
        ids.append(node_id)
        logger.debug(
            "Appending %s to index (%d ids); concurrent writers may overwrite this append",
            node_id, len(ids),
        )
        target.set(INDEX_KEY, encode_index(ids))
        return ids
