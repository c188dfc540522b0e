"""
Protocol definitions for the collaborators of the node store.

- LedgerProtocol: the key-value substrate (HTTP ledger, directory, memory)
- IdentityProvider: supplies the address of the connected caller
- ConfidentialityTransform: turns plaintext into the opaque stored payload
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class LedgerProtocol(Protocol):
    """
    Primitive byte ledger: read by key, write by key, liveness probe.

    No enumeration and no multi-key atomicity. Each ``set`` is atomic on
    its own.

    Implemented by:
    - HttpLedgerClient (remote ledger over HTTP)
    - DirectoryLedger (one file per key)
    - MemoryLedger (in-process, tests)
    """

    def get(self, key: str) -> bytes:
        """Bytes stored under key; ``b""`` when the key was never written."""
        ...

    def set(self, key: str, data: bytes) -> None:
        """Durably store data under key, or raise TransportError."""
        ...

    def is_available(self) -> bool: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the caller's address (wallet, API principal, ...)."""

    def current_address(self) -> Optional[str]: ...


@runtime_checkable
class ConfidentialityTransform(Protocol):
    """
    One-way transform applied to node content before it is stored.

    Must be a pure function of its input. The store never inverts it.
    """

    def transform(self, plain: bytes) -> bytes: ...
