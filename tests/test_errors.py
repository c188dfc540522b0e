"""Tests for the error hierarchy, error log and ops log."""

import logging

import pytest

from nodekeep.errors import (
    CommitPhase,
    DecodeError,
    IndexDecodeError,
    NodeKeepError,
    NodeNotFound,
    PartialIndexFailure,
    TransportError,
    WriteRejected,
    log_exception,
)
from nodekeep.logging_config import configure_ops_log
from nodekeep.types import NodeRecord


class TestHierarchy:
    @pytest.mark.parametrize("exc", [
        NodeNotFound("x"),
        DecodeError("node_x", "bad"),
        IndexDecodeError("node_keys", "bad"),
        WriteRejected("no"),
    ])
    def test_all_are_nodekeep_errors(self, exc):
        assert isinstance(exc, NodeKeepError)

    def test_rejected_is_transport_error(self):
        assert issubclass(WriteRejected, TransportError)

    def test_not_found_message(self):
        assert str(NodeNotFound("abc")) == "Node not found: abc"

    def test_partial_index_failure_carries_record(self):
        record = NodeRecord(id="abc", payload="p", kind="concept", owner="o", created_at=1)
        cause = TransportError("down")
        exc = PartialIndexFailure(record, cause)
        assert exc.record is record
        assert exc.cause is cause
        assert exc.phase is CommitPhase.INDEX
        assert "abc" in str(exc)


class TestLogException:
    def test_writes_traceback(self, isolated_config):
        try:
            raise TransportError("ledger exploded")
        except TransportError as e:
            path = log_exception(e, "create")

        assert path == isolated_config / "nodekeep-errors.log"
        text = path.read_text()
        assert "create" in text
        assert "ledger exploded" in text
        assert "Traceback" in text


class TestOpsLog:
    def test_handler_added_once(self, tmp_path):
        logger = logging.getLogger("nodekeep")
        first = configure_ops_log(tmp_path)
        try:
            second = configure_ops_log(tmp_path)
            assert first is second
            logging.getLogger("nodekeep.store").info("hello ops")
            first.flush()
            assert "hello ops" in (tmp_path / "nodekeep-ops.log").read_text()
        finally:
            logger.removeHandler(first)
            first.close()
