"""The block archive: stores headers, bodies and mainchain information."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .errors import IncompatibleVersion, InvalidPrevSideHash, NoMainHeaderInfo
from .lookup import ArchiveReader
from .models import (
    CURRENT_VERSION,
    MIN_COMPATIBLE_VERSION,
    ZERO_HASH,
    BmmResult,
    HeaderLike,
    MainBlockInfo,
    MainHeaderInfo,
)
from .store import Store, Txn

_log = logging.getLogger(__name__)


class Archive(ArchiveReader):
    """Read and write access to the archive tables of a store."""

    def __init__(self, store: Store) -> None:
        super().__init__(store)
        with store.write_txn() as txn:
            stored = self.version.try_get(txn, ())
            if stored is None:
                self.version.put(txn, (), CURRENT_VERSION)
            elif stored < MIN_COMPATIBLE_VERSION:
                raise IncompatibleVersion(stored, store.path)
            if self.main_successors.try_get(txn, ZERO_HASH) is None:
                self.main_successors.put(txn, ZERO_HASH, set())
            if self.successors.try_get(txn, None) is None:
                self.successors.put(txn, None, set())

    def put_accumulator(self, txn: Txn, block_hash: bytes, accumulator: Any) -> None:
        """Store the accumulator for a block."""
        self.accumulators.put(txn, block_hash, accumulator)

    def put_body(self, txn: Txn, block_hash: bytes, body: Any) -> None:
        """Store a block body. The header must already exist."""
        self.get_header(txn, block_hash)
        self.bodies.put(txn, block_hash, body)

    def _exponential_ancestors(
        self,
        txn: Txn,
        height: int,
        parent: bytes | None,
        nth_ancestor: Callable[[Txn, bytes, int], bytes],
    ) -> list[bytes]:
        if height < 2 or parent is None:
            return []
        ancestors = [nth_ancestor(txn, parent, 1)]
        depth = 4
        while height >= depth:
            ancestors.append(nth_ancestor(txn, ancestors[-1], depth // 2))
            depth *= 2
        return ancestors

    def _parent_verified(
        self, txn: Txn, parent_results: dict[bytes, BmmResult], main_block: bytes
    ) -> bool:
        """Whether the parent has a verified commitment in ``main_block``'s ancestry."""
        return any(
            result is BmmResult.VERIFIED
            and self.is_main_descendant(txn, bmm_block, main_block)
            for bmm_block, result in parent_results.items()
        )

    def _header_bmm_result(
        self,
        txn: Txn,
        header: HeaderLike,
        block_hash: bytes,
        main_block: bytes,
        parent_results: dict[bytes, BmmResult] | None,
    ) -> BmmResult:
        commitment = self.get_main_block_info(txn, main_block).bmm_commitment
        if commitment is None:
            _log.debug("Failed BMM @ %s: missing commitment", main_block.hex())
            return BmmResult.FAILED
        if commitment != block_hash:
            _log.debug(
                "Failed BMM @ %s: commitment to other block (%s)",
                main_block.hex(),
                commitment.hex(),
            )
            return BmmResult.FAILED
        main_info = self.get_main_header_info(txn, main_block)
        if header.prev_main_hash != main_info.prev_block_hash:
            _log.debug("Failed BMM @ %s: mismatched mainchain parent", main_block.hex())
            return BmmResult.FAILED
        if parent_results is None:
            _log.debug("Verified BMM @ %s: no parent", main_block.hex())
            return BmmResult.VERIFIED
        if self._parent_verified(txn, parent_results, main_block):
            _log.debug("Verified BMM @ %s: verified parent", main_block.hex())
            return BmmResult.VERIFIED
        _log.debug(
            "Failed BMM @ %s: no valid BMM commitment to parent in main ancestry",
            main_block.hex(),
        )
        return BmmResult.FAILED

    def put_header(self, txn: Txn, header: HeaderLike) -> None:
        """Store a header.

        Ancestor headers must be stored, and block infos must be stored for
        every known mainchain successor of ``header.prev_main_hash``.
        """
        parent = header.prev_side_hash
        if parent is None:
            height = 0
        else:
            parent_height = self.try_get_height(txn, parent)
            if parent_height is None:
                raise InvalidPrevSideHash()
            height = parent_height + 1
        block_hash = header.hash()
        self.block_hash_to_height.put(txn, block_hash, height)
        self.headers.put(txn, block_hash, header)

        pred_successors = set(self.get_successors(txn, parent))
        pred_successors.add(block_hash)
        self.successors.put(txn, parent, pred_successors)
        own_successors = self.try_get_successors(txn, block_hash) or set()
        self.successors.put(txn, block_hash, own_successors)

        self.exponential_ancestors.put(
            txn,
            block_hash,
            self._exponential_ancestors(txn, height, parent, self.get_nth_ancestor),
        )

        results = dict(self.get_bmm_results(txn, block_hash))
        parent_results = (
            self.get_bmm_results(txn, parent) if parent is not None else None
        )
        for main_block in sorted(self.get_main_successors(txn, header.prev_main_hash)):
            results[main_block] = self._header_bmm_result(
                txn, header, block_hash, main_block, parent_results
            )
        self.bmm_results.put(txn, block_hash, results)

    def put_main_block_info(
        self, txn: Txn, main_hash: bytes, block_info: MainBlockInfo
    ) -> None:
        """Store mainchain block info.

        The header info must be stored, as must the parent's block info.
        """
        main_info = self.get_main_header_info(txn, main_hash)
        if main_info.prev_block_hash != ZERO_HASH:
            self.get_main_block_info(txn, main_info.prev_block_hash)
        self.main_block_infos.put(txn, main_hash, block_info)
        commitment = block_info.bmm_commitment
        if commitment is None:
            return
        header = self.try_get_header(txn, commitment)
        if header is None:
            return
        if header.prev_main_hash != main_info.prev_block_hash:
            result = BmmResult.FAILED
        elif header.prev_side_hash is not None:
            parent_results = self.get_bmm_results(txn, header.prev_side_hash)
            result = (
                BmmResult.VERIFIED
                if self._parent_verified(txn, parent_results, main_hash)
                else BmmResult.FAILED
            )
        else:
            result = BmmResult.VERIFIED
        results = dict(self.get_bmm_results(txn, commitment))
        results[main_hash] = result
        self.bmm_results.put(txn, commitment, results)

    def put_main_header_info(self, txn: Txn, header_info: MainHeaderInfo) -> None:
        """Store mainchain header info; its parent must already be stored."""
        prev = header_info.prev_block_hash
        if prev != ZERO_HASH and self.try_get_main_header_info(txn, prev) is None:
            raise NoMainHeaderInfo(prev)
        block_hash = header_info.block_hash
        height = self.get_main_height(txn, prev) + 1
        total_work = header_info.work
        if prev != ZERO_HASH:
            total_work += self.get_total_work(txn, prev)
        self.main_block_hash_to_height.put(txn, block_hash, height)
        self.main_header_infos.put(txn, block_hash, header_info)
        self.total_work.put(txn, block_hash, total_work)

        pred_successors = set(self.get_main_successors(txn, prev))
        pred_successors.add(block_hash)
        self.main_successors.put(txn, prev, pred_successors)
        own_successors = self.try_get_main_successors(txn, block_hash) or set()
        self.main_successors.put(txn, block_hash, own_successors)

        self.exponential_main_ancestors.put(
            txn,
            block_hash,
            self._exponential_ancestors(txn, height, prev, self.get_nth_main_ancestor),
        )