"""
Byte codec for node records and the node index.

Both are stored as UTF-8 JSON text. Records are JSON objects keyed by the
canonical wire names below; the index is a JSON array of id strings.

Decoding is strict about shape and lenient about age: records written by
older clients may lack ``status`` and ``relations`` (filled with defaults)
or use the legacy field names of the earlier web client. Fields this
version does not recognize are kept in ``NodeRecord.extra`` and written
back unchanged.
"""

import json
from typing import Any, Iterable

from .errors import DecodeError, IndexDecodeError
from .types import INDEX_KEY, STATUS_ACTIVE, NodeRecord, node_key


# Python attribute -> canonical wire name
WIRE_FIELDS = {
    "payload": "payload",
    "kind": "kind",
    "relations": "relations",
    "created_at": "createdAt",
    "owner": "owner",
    "status": "status",
}

# Legacy wire name -> canonical wire name
LEGACY_FIELDS = {
    "data": "payload",
    "nodeType": "kind",
    "timestamp": "createdAt",
}

_CANONICAL_NAMES = frozenset(WIRE_FIELDS.values())


def _load_json(key: str, data: bytes) -> Any:
    try:
        raw = bytes(data)
    except TypeError as e:
        raise DecodeError(key, f"expected bytes, got {type(data).__name__}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(key, f"not UTF-8 ({e.reason})") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(key, f"invalid JSON ({e.msg})") from e
    except RecursionError as e:
        raise DecodeError(key, "nesting too deep") from e


def _dump_json(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False).encode("utf-8")


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------

def encode_record(record: NodeRecord) -> bytes:
    """Encode a record as it is stored under ``node_<id>``.

    The id is not part of the value; it lives in the key.
    """
    obj: dict[str, Any] = dict(record.extra)
    obj.update({
        "payload": record.payload,
        "kind": record.kind,
        "relations": list(record.relations),
        "createdAt": record.created_at,
        "owner": record.owner,
        "status": record.status,
    })
    return _dump_json(obj)


def _field(key: str, obj: dict, name: str, consumed: set) -> Any:
    """Fetch a wire field by canonical name, falling back to its legacy name.

    A legacy name that supplied the value is added to ``consumed``.
    """
    if name in obj:
        return obj[name]
    for legacy, canonical in LEGACY_FIELDS.items():
        if canonical == name and legacy in obj:
            consumed.add(legacy)
            return obj[legacy]
    raise DecodeError(key, f"missing field {name!r}")


def _require_str(key: str, name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise DecodeError(key, f"field {name!r} must be a string, got {type(value).__name__}")
    return value


def _require_seconds(key: str, value: Any) -> int:
    # bool is an int subclass; a boolean timestamp is corruption
    if isinstance(value, bool):
        raise DecodeError(key, "field 'createdAt' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise DecodeError(key, "field 'createdAt' must be an integer")


def decode_record(node_id: str, data: bytes) -> NodeRecord:
    """
    Decode the value stored under ``node_<node_id>``.

    Raises:
        DecodeError: payload is not a well-formed record
    """
    key = node_key(node_id)
    obj = _load_json(key, data)
    if not isinstance(obj, dict):
        raise DecodeError(key, f"expected an object, got {type(obj).__name__}")

    relations = obj.get("relations")
    if relations is None:
        relations = []
    if not isinstance(relations, list) or not all(isinstance(r, str) for r in relations):
        raise DecodeError(key, "field 'relations' must be a list of strings")

    status = obj.get("status")
    if status is None:
        status = STATUS_ACTIVE

    # Legacy names only count as known when they stood in for a missing field
    consumed: set[str] = set()
    payload = _require_str(key, "payload", _field(key, obj, "payload", consumed))
    kind = _require_str(key, "kind", _field(key, obj, "kind", consumed))
    owner = _require_str(key, "owner", _field(key, obj, "owner", consumed))
    created_at = _require_seconds(key, _field(key, obj, "createdAt", consumed))

    return NodeRecord(
        id=node_id,
        payload=payload,
        kind=kind,
        owner=owner,
        created_at=created_at,
        relations=list(relations),
        status=_require_str(key, "status", status),
        extra={
            k: v for k, v in obj.items()
            if k not in _CANONICAL_NAMES and k not in consumed
        },
    )


# -----------------------------------------------------------------------------
# Index
# -----------------------------------------------------------------------------

def encode_index(ids: Iterable[str]) -> bytes:
    return _dump_json(list(ids))


def decode_index(data: bytes) -> list[str]:
    """
    Decode the node index.

    Raises:
        IndexDecodeError: payload is not a JSON array of strings
    """
    try:
        value = _load_json(INDEX_KEY, data)
    except DecodeError as e:
        raise IndexDecodeError(INDEX_KEY, e.reason) from e
    if not isinstance(value, list):
        raise IndexDecodeError(INDEX_KEY, f"expected an array, got {type(value).__name__}")
    if not all(isinstance(item, str) for item in value):
        raise IndexDecodeError(INDEX_KEY, "index entries must be strings")
    return value
