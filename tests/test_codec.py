"""Tests for nodekeep.codec: record and index encoding."""

import json

import pytest

from nodekeep.codec import decode_index, decode_record, encode_index, encode_record
from nodekeep.errors import DecodeError, IndexDecodeError
from nodekeep.types import NodeRecord


def _record(**overrides) -> NodeRecord:
    fields = dict(
        id="1700000000000-abc1234",
        payload="FHE-aGVsbG8=",
        kind="concept",
        owner="0xabc",
        created_at=1_700_000_000,
        relations=["1699999999999-zzz0000"],
        status="active",
    )
    fields.update(overrides)
    return NodeRecord(**fields)


class TestRecordEncoding:
    def test_wire_fields(self):
        obj = json.loads(encode_record(_record()).decode("utf-8"))
        assert obj == {
            "payload": "FHE-aGVsbG8=",
            "kind": "concept",
            "relations": ["1699999999999-zzz0000"],
            "createdAt": 1_700_000_000,
            "owner": "0xabc",
            "status": "active",
        }

    def test_id_is_not_stored_in_value(self):
        obj = json.loads(encode_record(_record()))
        assert "id" not in obj

    def test_round_trip_record(self):
        original = encode_record(_record(status="archived"))
        decoded = decode_record("1700000000000-abc1234", original)
        assert json.loads(encode_record(decoded)) == json.loads(original)

    def test_field_order_irrelevant(self):
        data = json.dumps({
            "status": "active", "owner": "0xabc", "createdAt": 5,
            "relations": [], "kind": "entity", "payload": "x",
        }).encode()
        rec = decode_record("n1", data)
        assert rec.kind == "entity"
        assert rec.created_at == 5

    def test_non_ascii_payload(self):
        rec = _record(payload="知识")
        assert decode_record(rec.id, encode_record(rec)).payload == "知识"


class TestRecordDefaults:
    def test_missing_status_defaults_active(self):
        data = json.dumps({"payload": "x", "kind": "concept", "createdAt": 1, "owner": "o"}).encode()
        rec = decode_record("n1", data)
        assert rec.status == "active"
        assert rec.relations == []

    def test_null_relations_defaults_empty(self):
        data = json.dumps({
            "payload": "x", "kind": "concept", "createdAt": 1, "owner": "o", "relations": None,
        }).encode()
        assert decode_record("n1", data).relations == []

    def test_unknown_kind_round_trips(self):
        rec = _record(kind="hypothesis")
        assert decode_record(rec.id, encode_record(rec)).kind == "hypothesis"

    def test_unknown_fields_preserved(self):
        data = json.dumps({
            "payload": "x", "kind": "concept", "createdAt": 1, "owner": "o",
            "schema": 2, "tags": ["a"],
        }).encode()
        rec = decode_record("n1", data)
        assert rec.extra == {"schema": 2, "tags": ["a"]}
        again = json.loads(encode_record(rec))
        assert again["schema"] == 2
        assert again["tags"] == ["a"]

    def test_legacy_field_names(self):
        data = json.dumps({
            "data": "FHE-abc", "nodeType": "relation", "relations": ["a"],
            "timestamp": 1700000000, "owner": "0xabc", "status": "archived",
        }).encode()
        rec = decode_record("n1", data)
        assert rec.payload == "FHE-abc"
        assert rec.kind == "relation"
        assert rec.created_at == 1700000000
        assert rec.extra == {}
        # Re-encoding writes canonical names only
        obj = json.loads(encode_record(rec))
        assert "data" not in obj and "nodeType" not in obj and "timestamp" not in obj
        assert obj["payload"] == "FHE-abc"

    def test_legacy_name_beside_canonical_is_kept(self):
        data = json.dumps({
            "payload": "new", "data": "old", "kind": "concept", "createdAt": 1, "owner": "o",
        }).encode()
        rec = decode_record("n1", data)
        assert rec.payload == "new"
        assert rec.extra == {"data": "old"}
        assert json.loads(encode_record(rec))["data"] == "old"

    def test_integral_float_timestamp_accepted(self):
        data = json.dumps({"payload": "x", "kind": "c", "createdAt": 12.0, "owner": "o"}).encode()
        assert decode_record("n1", data).created_at == 12


class TestRecordDecodeErrors:
    @pytest.mark.parametrize("data", [
        b"\xff\xfe\x00",
        b"{not json",
        b"[1, 2, 3]",
        b'"string"',
    ])
    def test_malformed_payload(self, data):
        with pytest.raises(DecodeError) as exc:
            decode_record("bad", data)
        assert exc.value.key == "node_bad"

    def test_missing_required_field(self):
        data = json.dumps({"kind": "concept", "createdAt": 1, "owner": "o"}).encode()
        with pytest.raises(DecodeError, match="payload"):
            decode_record("n1", data)

    def test_bad_relations(self):
        data = json.dumps({
            "payload": "x", "kind": "c", "createdAt": 1, "owner": "o", "relations": "n2",
        }).encode()
        with pytest.raises(DecodeError, match="relations"):
            decode_record("n1", data)

    def test_boolean_timestamp_rejected(self):
        data = json.dumps({"payload": "x", "kind": "c", "createdAt": True, "owner": "o"}).encode()
        with pytest.raises(DecodeError, match="createdAt"):
            decode_record("n1", data)

    def test_deeply_nested_value(self):
        data = b"[" * 200_000 + b"]" * 200_000
        with pytest.raises(DecodeError, match="nesting too deep"):
            decode_record("n1", data)

    def test_non_bytes_value(self):
        with pytest.raises(DecodeError, match="expected bytes"):
            decode_record("n1", "{}")

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_record("n1", b"nope")


class TestIndex:
    def test_round_trip(self):
        ids = ["a", "b", "c"]
        assert decode_index(encode_index(ids)) == ids

    def test_empty_list(self):
        assert decode_index(b"[]") == []

    def test_encoding_is_json_array(self):
        assert json.loads(encode_index(["x"])) == ["x"]

    @pytest.mark.parametrize("data", [b"{}", b"not json", b'["a", 1]', b"\xff"])
    def test_corrupt_index(self, data):
        with pytest.raises(IndexDecodeError) as exc:
            decode_index(data)
        assert exc.value.key == "node_keys"

    def test_deeply_nested_index(self):
        with pytest.raises(IndexDecodeError, match="nesting too deep"):
            decode_index(b"[" * 200_000 + b"]" * 200_000)
