"""Registry stores: ordered key-value storage of registrations by owner.

Two backends share the ``RegistryStore`` contract:

- ``MemoryRegistryStore``: in-process, for tests and embedding.
- ``FileRegistryStore``: a JSON document in a local directory that
  survives restarts. Every mutation is committed by writing a temporary
  file and atomically replacing the document, so a failed write never
  leaves a partially applied change behind. Writers from other processes
  are serialized through a lock file and picked up on the next read.

Both iterate in key order (raw identity bytes) and hand out fresh copies
of stored registrations; mutating a returned value never changes the store.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ipledger.registry.codec import (
    decode_registration,
    encode_registration,
    registration_from_dict,
    registration_to_dict,
)
from ipledger.registry.errors import IPLedgerError, StorageError
from ipledger.registry.identity import Identity
from ipledger.registry.models import Registration
from ipledger.utils.logger import get_logger

logger = get_logger("registry.store")


class RegistryStore(ABC):
    """Durable mapping from owner identity to registration."""

    @abstractmethod
    def put(self, key: Identity, value: Registration) -> None:
        """Insert or overwrite the entry for ``key``."""

    @abstractmethod
    def get(self, key: Identity) -> Optional[Registration]:
        """Return the entry for ``key``, or None."""

    @abstractmethod
    def remove(self, key: Identity) -> None:
        """Delete the entry for ``key``; no-op when absent."""

    @abstractmethod
    def iterate(self) -> Iterator[tuple[Identity, Registration]]:
        """Yield every entry in key order."""

    @abstractmethod
    def move(self, old_key: Identity, new_key: Identity, value: Registration) -> None:
        """Remove ``old_key`` and store ``value`` under ``new_key`` as one commit."""

    @abstractmethod
    def __len__(self) -> int: ...

    def __contains__(self, key: Identity) -> bool:
        return self.get(key) is not None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store exclusively across a read-modify-write."""
        yield


class MemoryRegistryStore(RegistryStore):
    """In-process store. Values are kept encoded so callers never alias them."""

    def __init__(self) -> None:
        self._entries: dict[Identity, bytes] = {}

    def put(self, key: Identity, value: Registration) -> None:
        self._entries[key] = encode_registration(value)

    def get(self, key: Identity) -> Optional[Registration]:
        data = self._entries.get(key)
        return decode_registration(data) if data is not None else None

    def remove(self, key: Identity) -> None:
        self._entries.pop(key, None)

    def iterate(self) -> Iterator[tuple[Identity, Registration]]:
        for key in sorted(self._entries):
            yield key, decode_registration(self._entries[key])

    def move(self, old_key: Identity, new_key: Identity, value: Registration) -> None:
        encoded = encode_registration(value)
        self._entries.pop(old_key, None)
        self._entries[new_key] = encoded

    def __len__(self) -> int:
        return len(self._entries)


class FileRegistryStore(RegistryStore):
    """JSON-file-backed store under a local directory.

    The document is loaded on first use and reloaded whenever another
    process has replaced it since. Its layout is::

        {"format": 1, "entries": {"<principal text>": {<registration>}, ...}}

    Mutations hold an exclusive ``flock`` on a sidecar lock file and work
    from the document as it is on disk, so several processes can share one
    directory.
    """

    STORE_FILE = "registry.json"
    LOCK_FILE = ".registry.lock"
    FORMAT_VERSION = 1

    def __init__(self, store_dir: str | Path):
        self.store_dir = Path(store_dir)
        self.store_path = self.store_dir / self.STORE_FILE
        self.lock_path = self.store_dir / self.LOCK_FILE
        self._entries: Optional[dict[Identity, dict]] = None
        self._signature: Optional[tuple[int, int, int]] = None
        self._mutex = threading.RLock()
        self._depth = 0

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def put(self, key: Identity, value: Registration) -> None:
        with self.transaction():
            entries = dict(self._loaded())
            entries[key] = registration_to_dict(value)
            self._commit(entries)

    def get(self, key: Identity) -> Optional[Registration]:
        data = self._loaded().get(key)
        return registration_from_dict(data) if data is not None else None

    def remove(self, key: Identity) -> None:
        with self.transaction():
            if key not in self._loaded():
                return
            entries = dict(self._loaded())
            del entries[key]
            self._commit(entries)

    def iterate(self) -> Iterator[tuple[Identity, Registration]]:
        entries = self._loaded()
        for key in sorted(entries):
            yield key, registration_from_dict(entries[key])

    def move(self, old_key: Identity, new_key: Identity, value: Registration) -> None:
        with self.transaction():
            entries = dict(self._loaded())
            entries.pop(old_key, None)
            entries[new_key] = registration_to_dict(value)
            self._commit(entries)

    def __len__(self) -> int:
        return len(self._loaded())

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the directory's lock file exclusively. Nested use is a no-op."""
        with self._mutex:
            lock_fh = self._acquire() if self._depth == 0 else None
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if lock_fh is not None:
                    fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
                    lock_fh.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _acquire(self):
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            lock_fh = open(self.lock_path, "a")
        except OSError as exc:
            raise StorageError(f"Cannot open registry lock: {exc}", path=str(self.lock_path))
        try:
            fcntl.flock(lock_fh.fileno(), fcntl.LOCK_EX)
        except OSError as exc:
            lock_fh.close()
            raise StorageError(f"Cannot lock registry: {exc}", path=str(self.lock_path))
        return lock_fh

    def _loaded(self) -> dict[Identity, dict]:
        try:
            stat = os.stat(self.store_path)
        except FileNotFoundError:
            self._entries, self._signature = {}, None
            return self._entries
        except OSError as exc:
            raise StorageError(f"Cannot read registry document: {exc}", path=str(self.store_path))

        if self._entries is None or _signature(stat) != self._signature:
            self._entries, self._signature = self._load()
        return self._entries

    def _load(self) -> tuple[dict[Identity, dict], Optional[tuple[int, int, int]]]:
        try:
            with open(self.store_path, encoding="utf-8") as fh:
                signature = _signature(os.fstat(fh.fileno()))
                document = json.loads(fh.read())
        except FileNotFoundError:
            return {}, None
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read registry document: {exc}", path=str(self.store_path))

        if not isinstance(document, dict) or not isinstance(document.get("entries"), dict):
            raise StorageError("Registry document is malformed", path=str(self.store_path))

        entries: dict[Identity, dict] = {}
        try:
            for text, data in document["entries"].items():
                key = Identity.from_text(text)
                # Corrupt entries are rejected at load time
                registration_from_dict(data)
                entries[key] = data
        except (IPLedgerError, AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Registry document has an invalid entry: {exc}", path=str(self.store_path))

        logger.debug(f"Loaded {len(entries)} registrations from {self.store_path}")
        return entries, signature

    def _commit(self, entries: dict[Identity, dict]) -> None:
        document = {
            "format": self.FORMAT_VERSION,
            "entries": {key.to_text(): entries[key] for key in sorted(entries)},
        }
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.store_dir, prefix=".registry-", suffix=".json.tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                    signature = _signature(os.fstat(fh.fileno()))
                os.replace(tmp_name, self.store_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Cannot write registry document: {exc}", path=str(self.store_path))

        self._entries, self._signature = entries, signature


def _signature(stat: os.stat_result) -> tuple[int, int, int]:
    # A commit always lands as a new inode
    return stat.st_ino, stat.st_mtime_ns, stat.st_size
