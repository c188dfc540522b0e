"""
Identity context for mutating operations.

A Session is the connected caller: the address recorded as owner of new
nodes and, optionally, a ledger client able to submit writes for that
address. It is created once per connection and passed explicitly into
``create`` and ``archive``; there is no global "current account".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import NotAuthorized
from .protocol import IdentityProvider, LedgerProtocol


@dataclass(frozen=True)
class Session:
    """
    An identity context.

    Attributes:
        address: Caller's address; None or empty means not connected
        ledger: Ledger client that signs writes for this address. When None,
            writes go through the store's own ledger client.
    """
    address: Optional[str] = None
    ledger: Optional[LedgerProtocol] = None

    @classmethod
    def from_provider(
        cls,
        provider: IdentityProvider,
        ledger: Optional[LedgerProtocol] = None,
    ) -> "Session":
        """Capture the provider's current address once."""
        return cls(address=provider.current_address() or None, ledger=ledger)

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    @property
    def is_authorized(self) -> bool:
        return bool(self.address)

    def require_address(self) -> str:
        """Return the address, or raise NotAuthorized."""
        if not self.address:
            raise NotAuthorized("Connect an identity before modifying nodes")
        return self.address

    def writer(self, default: LedgerProtocol) -> LedgerProtocol:
        """Ledger to submit writes through."""
        return self.ledger if self.ledger is not None else default

    def disconnect(self) -> "Session":
        """An unauthorized copy of this session."""
        return Session()


def require_session(session: Optional[Session]) -> Session:
    """Reject a missing or unauthorized session."""
    if session is None:
        raise NotAuthorized("Connect an identity before modifying nodes")
    session.require_address()
    return session
