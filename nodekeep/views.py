"""
Pure views over a listed node collection: search, filters, statistics.

Nothing here reads the ledger. Callers list once and filter in memory.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .types import KNOWN_KINDS, STATUS_ACTIVE, STATUS_ARCHIVED, NodeRecord


def matches_search(node: NodeRecord, term: str) -> bool:
    """Case-insensitive substring match on id or kind."""
    if not term:
        return True
    term = term.lower()
    return term in node.id.lower() or term in node.kind.lower()


def filter_nodes(
    nodes: Iterable[NodeRecord],
    *,
    search: str = "",
    kind: Optional[str] = None,
    status: Optional[str] = None,
) -> list[NodeRecord]:
    """Nodes matching all given criteria, order preserved.

    ``kind`` or ``status`` of None (or "all") means no filter.
    """
    result = []
    for node in nodes:
        if kind not in (None, "all") and node.kind != kind:
            continue
        if status not in (None, "all") and node.status != status:
            continue
        if not matches_search(node, search):
            continue
        result.append(node)
    return result


@dataclass
class NodeStats:
    total: int = 0
    active: int = 0
    archived: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "active": self.active,
            "archived": self.archived,
            "by_kind": dict(self.by_kind),
        }


def node_stats(nodes: Iterable[NodeRecord]) -> NodeStats:
    """Counts by status and kind. Known kinds always appear, possibly as 0."""
    nodes = list(nodes)
    kinds = Counter(n.kind for n in nodes)
    by_kind = {k: kinds.get(k, 0) for k in KNOWN_KINDS}
    for k in sorted(kinds):
        by_kind.setdefault(k, kinds[k])
    return NodeStats(
        total=len(nodes),
        active=sum(1 for n in nodes if n.status == STATUS_ACTIVE),
        archived=sum(1 for n in nodes if n.status == STATUS_ARCHIVED),
        by_kind=by_kind,
    )
