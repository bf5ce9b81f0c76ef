"""A small transactional key-value store with named tables.

Values are serialized on write, so callers never share mutable state with
the store.  Write transactions collect their changes privately and apply
them atomically on commit; read transactions see the committed state as it
was when they began.  A store opened with a path persists every commit to a
file in that directory.
"""

from __future__ import annotations

import os
import pickle
import tempfile
import threading
from collections.abc import Hashable, Iterator
from pathlib import Path
from typing import Any

_DATA_FILE = "archive.db"
_DELETED = object()


class MissingKey(KeyError):
    """A key that must be present in a table is absent."""


class TransactionError(RuntimeError):
    """A transaction was used in a way it does not allow."""


def _order_key(key: Hashable) -> tuple[int, bytes]:
    if key is None:
        return (0, b"")
    if isinstance(key, (bytes, bytearray)):
        return (1, bytes(key))
    return (2, pickle.dumps(key, protocol=4))


class Store:
    """A set of named tables, optionally persisted under a directory."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._tables: dict[str, Table] = {}
        self._data: dict[str, dict[Hashable, bytes]] = {}
        if self.path is not None:
            self.path.mkdir(parents=True, exist_ok=True)
            data_file = self.path / _DATA_FILE
            if data_file.exists():
                with data_file.open("rb") as handle:
                    self._data = pickle.load(handle)

    def table(self, name: str) -> Table:
        """Return the table called ``name``, creating it if needed."""
        if name not in self._tables:
            self._tables[name] = Table(name)
        return self._tables[name]

    def read_txn(self) -> Txn:
        """Begin a read-only transaction."""
        return Txn(self, writable=False)

    def write_txn(self) -> Txn:
        """Begin a read-write transaction."""
        return Txn(self, writable=True)

    def _snapshot(self) -> dict[str, dict[Hashable, bytes]]:
        with self._lock:
            return self._data

    def _apply(self, pending: dict[str, dict[Hashable, Any]]) -> None:
        with self._lock:
            data = dict(self._data)
            for name, changes in pending.items():
                table = dict(data.get(name, {}))
                for key, value in changes.items():
                    if value is _DELETED:
                        table.pop(key, None)
                    else:
                        table[key] = value
                data[name] = table
            self._data = data
            self._persist()

    def _persist(self) -> None:
        if self.path is None:
            return
        fd, tmp_name = tempfile.mkstemp(dir=self.path, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as handle:
                pickle.dump(self._data, handle, protocol=4)
            os.replace(tmp_name, self.path / _DATA_FILE)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class Txn:
    """A transaction over a store; use it as a context manager.

    On leaving a ``with`` block a still-open transaction is committed, or
    aborted if the block raised.
    """

    def __init__(self, store: Store, writable: bool) -> None:
        self._store = store
        self._snapshot = store._snapshot()
        self._pending: dict[str, dict[Hashable, Any]] = {}
        self.writable = writable
        self.finished = False

    def commit(self) -> None:
        """Make this transaction's writes visible and end it."""
        self._check_open()
        self.finished = True
        if self.writable and self._pending:
            self._store._apply(self._pending)
        self._pending = {}

    def abort(self) -> None:
        """Discard this transaction's writes and end it."""
        self._check_open()
        self.finished = True
        self._pending = {}

    def __enter__(self) -> Txn:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.finished:
            if exc_type is None:
                self.commit()
            else:
                self.abort()
        return False

    def _check_open(self) -> None:
        if self.finished:
            raise TransactionError("transaction is already finished")

    def _check_writable(self) -> None:
        self._check_open()
        if not self.writable:
            raise TransactionError("cannot write in a read-only transaction")

    def _read(self, table: str, key: Hashable) -> bytes | None:
        self._check_open()
        changes = self._pending.get(table)
        if changes is not None and key in changes:
            value = changes[key]
            return None if value is _DELETED else value
        return self._snapshot.get(table, {}).get(key)

    def _write(self, table: str, key: Hashable, value: Any) -> None:
        self._check_writable()
        self._pending.setdefault(table, {})[key] = value

    def _merged(self, table: str) -> dict[Hashable, bytes]:
        self._check_open()
        merged = dict(self._snapshot.get(table, {}))
        for key, value in self._pending.get(table, {}).items():
            if value is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = value
        return merged


class Table:
    """A named table; every access goes through a transaction."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"Table({self.name!r})"

    def try_get(self, txn: Txn, key: Hashable) -> Any | None:
        """Return the value stored under ``key``, or None."""
        raw = txn._read(self.name, key)
        return None if raw is None else pickle.loads(raw)

    def get(self, txn: Txn, key: Hashable) -> Any:
        """Return the value stored under ``key``; raise MissingKey if absent."""
        raw = txn._read(self.name, key)
        if raw is None:
            raise MissingKey(f"key not found in table {self.name!r}: {key!r}")
        return pickle.loads(raw)

    def put(self, txn: Txn, key: Hashable, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        txn._write(self.name, key, pickle.dumps(value, protocol=4))

    def delete(self, txn: Txn, key: Hashable) -> bool:
        """Remove ``key``; return whether it was present."""
        present = txn._read(self.name, key) is not None
        txn._write(self.name, key, _DELETED)
        return present

    def items(self, txn: Txn) -> Iterator[tuple[Hashable, Any]]:
        """Yield ``(key, value)`` pairs in key order."""
        merged = txn._merged(self.name)
        for key in sorted(merged, key=_order_key):
            yield key, pickle.loads(merged[key])

    def keys(self, txn: Txn) -> Iterator[Hashable]:
        """Yield keys in order."""
        merged = txn._merged(self.name)
        yield from sorted(merged, key=_order_key)