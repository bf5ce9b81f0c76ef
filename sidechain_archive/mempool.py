"""Pool of pending transactions, keyed by txid, with spent-output tracking."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from itertools import islice
from typing import Any

from .models import CURRENT_VERSION
from .store import Store, Txn

_log = logging.getLogger(__name__)


class MemPoolError(Exception):
    """Base class for mempool failures."""


class UtxoDoubleSpent(MemPoolError):
    """A transaction spends an output already spent by a pooled transaction."""

    def __init__(self) -> None:
        super().__init__("can't add transaction, utxo double spent")


@dataclass(frozen=True)
class RegularOutPoint:
    """Reference to output ``vout`` of transaction ``txid``."""

    txid: bytes
    vout: int


class MemPool:
    """Pending transactions stored in a store.

    Pooled items are authorized transactions: objects with a ``transaction``
    attribute whose value has a ``txid()`` method, ``inputs`` as
    ``(outpoint, utxo_hash)`` pairs, ``outputs`` and a writable ``proof``.
    """

    NUM_DBS = 3

    def __init__(self, store: Store) -> None:
        self.store = store
        self.transactions = store.table("transactions")
        self.spent_utxos = store.table("spent_utxos")
        self.version = store.table("mempool_version")
        with store.write_txn() as txn:
            if self.version.try_get(txn, ()) is None:
                self.version.put(txn, (), CURRENT_VERSION)

    def put(self, txn: Txn, transaction: Any) -> None:
        """Add a transaction; raise UtxoDoubleSpent if an input is already spent."""
        txid = transaction.transaction.txid()
        _log.debug("adding transaction %s to mempool", txid.hex())
        for outpoint, _ in transaction.transaction.inputs:
            if self.spent_utxos.try_get(txn, outpoint) is not None:
                raise UtxoDoubleSpent()
            self.spent_utxos.put(txn, outpoint, txid)
        self.transactions.put(txn, txid, transaction)

    def delete(self, txn: Txn, txid: bytes) -> None:
        """Remove a transaction and, recursively, every pooled spender of it."""
        pending = deque([txid])
        while pending:
            current = pending.popleft()
            tx = self.transactions.try_get(txn, current)
            if tx is None:
                continue
            for outpoint, _ in tx.transaction.inputs:
                self.spent_utxos.delete(txn, outpoint)
            self.transactions.delete(txn, current)
            for vout in range(len(tx.transaction.outputs)):
                child = self.spent_utxos.try_get(txn, RegularOutPoint(current, vout))
                if child is not None:
                    pending.append(child)

    def take(self, txn: Txn, number: int) -> list[Any]:
        """Return up to ``number`` transactions in txid order."""
        return [tx for _, tx in islice(self.transactions.items(txn), number)]

    def take_all(self, txn: Txn) -> list[Any]:
        """Return every pooled transaction in txid order."""
        return [tx for _, tx in self.transactions.items(txn)]

    def regenerate_proofs(self, txn: Txn, accumulator: Any) -> None:
        """Recompute the inclusion proof of every pooled transaction."""
        for txid in list(self.transactions.keys(txn)):
            tx = self.transactions.get(txn, txid)
            targets = [utxo_hash for _, utxo_hash in tx.transaction.inputs]
            tx.transaction.proof = accumulator.prove(targets)
            self.transactions.put(txn, txid, tx)