"""Tests for nodekeep.session.Session."""

import pytest

from nodekeep.errors import NotAuthorized
from nodekeep.ledger import MemoryLedger
from nodekeep.session import Session, require_session


class FakeWallet:
    def __init__(self, address):
        self.address = address
        self.calls = 0

    def current_address(self):
        self.calls += 1
        return self.address


class TestSession:
    def test_from_provider_captures_once(self):
        wallet = FakeWallet("0xabc")
        session = Session.from_provider(wallet)
        wallet.address = "0xchanged"
        assert session.address == "0xabc"
        assert wallet.calls == 1

    def test_provider_without_account(self):
        assert not Session.from_provider(FakeWallet("")).is_authorized
        assert not Session.from_provider(FakeWallet(None)).is_authorized

    def test_require_address(self):
        assert Session(address="0x1").require_address() == "0x1"
        with pytest.raises(NotAuthorized):
            Session().require_address()

    def test_writer_defaults_to_store_ledger(self):
        default = MemoryLedger()
        assert Session(address="0x1").writer(default) is default

    def test_writer_uses_signing_ledger(self):
        signer = MemoryLedger()
        assert Session(address="0x1", ledger=signer).writer(MemoryLedger()) is signer

    def test_disconnect(self):
        session = Session(address="0x1", ledger=MemoryLedger())
        assert not session.disconnect().is_authorized
        assert session.is_authorized

    def test_require_session(self):
        with pytest.raises(NotAuthorized):
            require_session(None)
        with pytest.raises(NotAuthorized):
            require_session(Session.anonymous())
        session = Session(address="0x1")
        assert require_session(session) is session
