# sidechain_archive

Storage and chain logic for a sidechain that is blind-merge-mined (BMM) on a
mainchain. It keeps sidechain headers and bodies, mainchain header and block
infos, BMM verification results and per-block accumulators. Ancestry
questions are answered through exponentially indexed ancestor lists, and a
fork-choice function decides which of two competing tips is better. A
mempool keeps pending transactions and refuses double spends.

The package has no dependencies beyond the standard library.

## Install

```
pip install .
pip install ".[test]"   # with the test dependencies
```

## Modules

- `sidechain_archive.store`: a small transactional key-value store.
  `Store(path=None)` keeps everything in memory; with a path it creates that
  directory and writes every commit to a file `archive.db` inside it, loading
  it again on the next open. `Store.table(name)` returns a `Table`;
  `Store.read_txn()` and `Store.write_txn()` return a `Txn`. A `Txn` is
  finished with `commit()` or `abort()`, or used as a context manager, which
  commits on a clean exit and aborts if the block raised. Read transactions
  see the state committed when they began; writing in one raises
  `TransactionError`. `Table` offers `get` (raises `MissingKey` when
  absent), `try_get` (returns `None`), `put`, `delete`, and `items`/`keys`,
  which iterate in key order. Values are pickled on write.
- `sidechain_archive.lookup.ArchiveReader`: read-only queries over the
  archive tables, such as `get_height`, `get_header`, `get_body`,
  `get_bmm_results`, `get_best_main_verification`, `get_nth_ancestor`,
  `get_nth_main_ancestor`, `get_block_locator`, `is_descendant`,
  `is_main_descendant`, `ancestors`, `main_ancestors`, `get_missing_bodies`,
  `last_common_ancestor`, `last_common_main_ancestor` and
  `shared_mainchain_lineage`. Each `get_*` raises an `ArchiveError` subclass
  where the matching `try_get_*` returns `None`.
- `sidechain_archive.archive.Archive`: everything the reader does, plus the
  writers `put_main_header_info`, `put_main_block_info`, `put_header`,
  `put_body` and `put_accumulator`. BMM results are worked out as headers
  and mainchain block infos arrive. Creating an `Archive` records the
  database version in a new store and refuses one older than 0.13.0 with
  `IncompatibleVersion`.
- `sidechain_archive.mempool.MemPool`: pending transactions keyed by txid.
  `put` raises `UtxoDoubleSpent` when an input is already spent by a pooled
  transaction; `delete` removes a transaction together with every pooled
  transaction spending its outputs (`RegularOutPoint`); `take` and
  `take_all` return transactions in txid order; `regenerate_proofs` asks a
  supplied accumulator for a new proof for each transaction.
- `sidechain_archive.forkchoice.better_tip`: compares two `Tip`s and returns
  the better one, or `None` if neither is better.
- `sidechain_archive.models`: `Version`, `BmmResult`, `Tip`,
  `MainHeaderInfo`, `MainBlockInfo`, the `HeaderLike` header dataclass
  (whose `hash()` gives its 32-byte identifier) and `ZERO_HASH`, the parent
  of the first mainchain block.
- `sidechain_archive.errors`: `ArchiveError` and its subclasses, such as
  `NoHeader`, `NoHeight`, `NoAncestor`, `InvalidPrevSideHash` and
  `IncompatibleVersion`.

## Example

```python
from sidechain_archive.archive import Archive
from sidechain_archive.forkchoice import better_tip
from sidechain_archive.models import (
    ZERO_HASH, HeaderLike, MainBlockInfo, MainHeaderInfo, Tip,
)
from sidechain_archive.store import Store

store = Store()            # or Store("archive-data") to keep it on disk
archive = Archive(store)

header = HeaderLike(prev_side_hash=None, prev_main_hash=ZERO_HASH)
main = MainHeaderInfo(block_hash=b"\x01" * 32, prev_block_hash=ZERO_HASH,
                      height=1, work=10)

with store.write_txn() as txn:
    archive.put_main_header_info(txn, main)
    archive.put_main_block_info(
        txn, main.block_hash, MainBlockInfo(bmm_commitment=header.hash())
    )
    archive.put_header(txn, header)

with store.read_txn() as txn:
    assert archive.get_height(txn, header.hash()) == 0
    verified_in = archive.get_best_main_verification(txn, header.hash())
    tip = Tip(block_hash=header.hash(), main_block_hash=verified_in)
    print(better_tip(archive, txn, tip, tip))   # None: a tip is not better than itself
```

## What it does not do

The package stores and reasons about blocks; it does not fetch them. There
is no networking, no mainchain client, no mining and no command-line tool.
Signatures and merkle roots are not checked, and transaction bodies,
accumulators and proofs are whatever objects the caller supplies: the
mempool only relies on a `transaction` attribute with `txid()`, `inputs`,
`outputs` and `proof`, and on the accumulator's `prove(targets)`.

## Tests

```
pytest
```