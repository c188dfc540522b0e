"""
Ledger clients.

A ledger stores bytes under string keys and nothing more: there is no way
to list keys and no transaction spanning two keys. ``get`` of a key that was
never written returns ``b""``; callers treat empty as absent.

HttpLedgerClient talks to a remote ledger service:

    GET  /v1/health        -> {"available": true}
    GET  /v1/keys/{key}    -> raw bytes (404: never written)
    PUT  /v1/keys/{key}    <- raw bytes (application/octet-stream)

Writes carry a bearer token; the service signs and submits them on the
caller's behalf.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from urllib.parse import quote, unquote, urlparse

import httpx

from .errors import TransportError, WriteRejected

logger = logging.getLogger(__name__)

# Timeouts
DEFAULT_TIMEOUT = 30.0
PROBE_TIMEOUT = 5.0


class HttpLedgerClient:
    """HTTP client for a remote key-value ledger."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._api_url = api_url.rstrip("/")

        # Refuse non-HTTPS for remote ledgers (bearer token would be sent in cleartext)
        if not self._api_url.startswith("https://"):
            host = urlparse(self._api_url).hostname or ""
            if host not in ("localhost", "127.0.0.1", "::1"):
                raise ValueError(
                    f"Ledger URL must use HTTPS (got {self._api_url}). "
                    "Use HTTPS to protect API credentials, or use localhost for local development."
                )

        headers: dict[str, str] = {}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.Client(
            base_url=self._api_url,
            headers=headers,
            timeout=timeout,
        )

    @staticmethod
    def _path(key: str) -> str:
        return f"/v1/keys/{quote(key, safe='')}"

    def get(self, key: str) -> bytes:
        """GET /v1/keys/{key} -> stored bytes, or b"" if never written."""
        try:
            resp = self._client.get(self._path(key))
            if resp.status_code == 404:
                return b""
            resp.raise_for_status()
            return resp.content
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Read of {key} failed: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Read of {key} failed: {e}") from e

    def set(self, key: str, data: bytes) -> None:
        """PUT /v1/keys/{key}. Returns once the ledger has applied the write."""
        try:
            resp = self._client.put(
                self._path(key),
                content=bytes(data),
                headers={"Content-Type": "application/octet-stream"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise WriteRejected(
                    f"Write of {key} rejected: {status} {e.response.text}"
                ) from e
            raise TransportError(f"Write of {key} failed: {status}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Write of {key} failed: {e}") from e
        logger.debug("Wrote %s (%d bytes)", key, len(data))

    def is_available(self) -> bool:
        """GET /v1/health. Any failure counts as unavailable."""
        try:
            resp = self._client.get("/v1/health", timeout=PROBE_TIMEOUT)
            resp.raise_for_status()
            return bool(resp.json().get("available", False))
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("Ledger health check failed: %s", e)
            return False

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "HttpLedgerClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class MemoryLedger:
    """
    In-process ledger backed by a dict.

    Counts reads and writes so callers can check what an operation touched.
    """

    def __init__(self, data: dict[str, bytes] | None = None, *, available: bool = True):
        self._data: dict[str, bytes] = dict(data or {})
        self._lock = threading.Lock()
        self.available = available
        self.get_calls = 0
        self.set_calls = 0
        self.written_keys: list[str] = []

    def get(self, key: str) -> bytes:
        with self._lock:
            self.get_calls += 1
            return self._data.get(key, b"")

    def set(self, key: str, data: bytes) -> None:
        with self._lock:
            self.set_calls += 1
            self.written_keys.append(key)
            self._data[key] = bytes(data)

    def is_available(self) -> bool:
        return self.available

    def keys(self) -> list[str]:
        """All written keys. Real ledgers cannot do this."""
        with self._lock:
            return list(self._data)

    def close(self) -> None:
        pass


class DirectoryLedger:
    """
    Ledger stored as one file per key in a local directory.

    Keys are percent-encoded into file names. Writes go to a temp file in
    the same directory and are moved into place, so each write is atomic.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path).expanduser()

    def _file(self, key: str) -> Path:
        return self._path / quote(key, safe="")

    def get(self, key: str) -> bytes:
        try:
            return self._file(key).read_bytes()
        except FileNotFoundError:
            return b""
        except OSError as e:
            raise TransportError(f"Read of {key} failed: {e}") from e

    def set(self, key: str, data: bytes) -> None:
        try:
            self._path.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(bytes(data))
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._file(key))
            except BaseException:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise TransportError(f"Write of {key} failed: {e}") from e

    def is_available(self) -> bool:
        if self._path.exists():
            return self._path.is_dir() and os.access(self._path, os.R_OK | os.W_OK)
        # Not created yet: available if it can be created on first write
        parent = self._path.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        return os.access(parent, os.W_OK)

    def keys(self) -> list[str]:
        """All stored keys, for offline inspection and orphan recovery."""
        if not self._path.is_dir():
            return []
        return sorted(
            unquote(p.name) for p in self._path.iterdir()
            if p.is_file() and not p.name.startswith(".tmp-")
        )

    def close(self) -> None:
        pass
