"""
Shared pytest fixtures for nodekeep tests.

Provides an in-memory ledger, a deterministic transform, clock and id
factory, and a ledger wrapper that fails on demand.
"""

import base64
import itertools
from typing import Callable, Optional

import pytest

from nodekeep.errors import TransportError
from nodekeep.ledger import MemoryLedger
from nodekeep.session import Session
from nodekeep.store import NodeStore


OWNER = "0x00000000000000000000000000000000000000aa"


class RecordingTransform:
    """Deterministic stand-in for a confidentiality transform.

    Produces "FHE-<base64>" like the original web client's simulation.
    """

    def __init__(self):
        self.calls: list[bytes] = []

    def transform(self, plain: bytes) -> bytes:
        self.calls.append(plain)
        return b"FHE-" + base64.b64encode(plain)


class FakeClock:
    """Integer seconds clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


class SequentialIds:
    """Id factory producing n-ordered, predictable ids."""

    def __init__(self):
        self._counter = itertools.count(1)
        self.minted: list[str] = []

    def __call__(self) -> str:
        n = next(self._counter)
        node_id = f"{1_700_000_000_000 + n}-t{n:06d}"
        self.minted.append(node_id)
        return node_id


class FailingLedger:
    """Ledger wrapper that raises TransportError for selected keys."""

    def __init__(self, real: MemoryLedger):
        self._real = real
        self.fail_set: Callable[[str], bool] = lambda key: False
        self.fail_get: Callable[[str], bool] = lambda key: False

    def __getattr__(self, name):
        return getattr(self._real, name)

    def get(self, key: str) -> bytes:
        if self.fail_get(key):
            raise TransportError(f"simulated read failure for {key}")
        return self._real.get(key)

    def set(self, key: str, data: bytes) -> None:
        if self.fail_set(key):
            raise TransportError(f"simulated write failure for {key}")
        self._real.set(key, data)

    def is_available(self) -> bool:
        return self._real.is_available()


class ManualScheduler:
    """Scheduler for StatusReporter that runs callbacks only on demand."""

    class Handle:
        def __init__(self, delay: float, fn):
            self.delay = delay
            self.fn = fn
            self.cancelled = False

        def cancel(self) -> None:
            self.cancelled = True

    def __init__(self):
        self.handles: list["ManualScheduler.Handle"] = []

    def __call__(self, delay: float, fn) -> "ManualScheduler.Handle":
        handle = self.Handle(delay, fn)
        self.handles.append(handle)
        return handle

    def run_pending(self) -> None:
        for handle in list(self.handles):
            if not handle.cancelled:
                handle.fn()
        self.handles.clear()


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def failing_ledger(ledger) -> FailingLedger:
    return FailingLedger(ledger)


@pytest.fixture
def transform() -> RecordingTransform:
    return RecordingTransform()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def session() -> Session:
    return Session(address=OWNER)


@pytest.fixture
def make_store(transform, clock, ids):
    """Factory for NodeStore over a given ledger with deterministic ids/time."""

    def _make(ledger, **kwargs) -> NodeStore:
        kwargs.setdefault("id_factory", ids)
        kwargs.setdefault("clock", clock)
        return NodeStore(ledger, transform, **kwargs)

    return _make


@pytest.fixture
def store(make_store, ledger) -> NodeStore:
    return make_store(ledger)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config/error logs at a temp dir and clear env overrides."""
    monkeypatch.setenv("NODEKEEP_CONFIG_DIR", str(tmp_path))
    for var in ("NODEKEEP_LEDGER_URL", "NODEKEEP_API_KEY", "NODEKEEP_ADDRESS", "NODEKEEP_VERBOSE"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path
