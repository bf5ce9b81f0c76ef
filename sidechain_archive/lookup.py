"""Read access to the block archive: lookups and ancestry queries."""

from __future__ import annotations

from collections.abc import Iterator
from itertools import takewhile
from typing import Any

from .errors import (
    InvalidPrevSideHash,
    NoAccumulator,
    NoAncestor,
    NoBlockHash,
    NoBmmResult,
    NoBody,
    NoHeader,
    NoHeight,
    NoMainAncestor,
    NoMainBlockHash,
    NoMainBlockInfo,
    NoMainHeaderInfo,
    NoMainHeight,
)
from .models import ZERO_HASH, BmmResult, HeaderLike, MainBlockInfo, MainHeaderInfo
from .store import Store, Txn


class ArchiveReader:
    """Queries over the archive tables of a store.

    Exponential ancestor lists hold, at index ``i``, the ancestor
    ``2 ** (i + 1)`` blocks back.
    """

    NUM_DBS = 14

    def __init__(self, store: Store) -> None:
        self.store = store
        self.accumulators = store.table("accumulators")
        self.block_hash_to_height = store.table("hash_to_height")
        self.bmm_results = store.table("bmm_results")
        self.bodies = store.table("bodies")
        self.exponential_ancestors = store.table("exponential_ancestors")
        self.exponential_main_ancestors = store.table("exponential_main_ancestors")
        self.headers = store.table("headers")
        self.main_block_hash_to_height = store.table("main_hash_to_height")
        self.main_block_infos = store.table("main_block_infos")
        self.main_header_infos = store.table("main_header_infos")
        self.main_successors = store.table("main_successors")
        self.successors = store.table("successors")
        self.total_work = store.table("total_work")
        self.version = store.table("archive_version")

    # Simple lookups

    def try_get_accumulator(self, txn: Txn, block_hash: bytes) -> Any | None:
        return self.accumulators.try_get(txn, block_hash)

    def get_accumulator(self, txn: Txn, block_hash: bytes) -> Any:
        accumulator = self.try_get_accumulator(txn, block_hash)
        if accumulator is None:
            raise NoAccumulator(block_hash)
        return accumulator

    def try_get_height(self, txn: Txn, block_hash: bytes) -> int | None:
        return self.block_hash_to_height.try_get(txn, block_hash)

    def get_height(self, txn: Txn, block_hash: bytes) -> int:
        height = self.try_get_height(txn, block_hash)
        if height is None:
            raise NoHeight(block_hash)
        return height

    def get_bmm_results(self, txn: Txn, block_hash: bytes) -> dict[bytes, BmmResult]:
        return self.bmm_results.try_get(txn, block_hash) or {}

    def try_get_bmm_result(
        self, txn: Txn, block_hash: bytes, main_hash: bytes
    ) -> BmmResult | None:
        return self.get_bmm_results(txn, block_hash).get(main_hash)

    def get_bmm_result(self, txn: Txn, block_hash: bytes, main_hash: bytes) -> BmmResult:
        result = self.try_get_bmm_result(txn, block_hash, main_hash)
        if result is None:
            raise NoBmmResult(block_hash)
        return result

    def try_get_body(self, txn: Txn, block_hash: bytes) -> Any | None:
        return self.bodies.try_get(txn, block_hash)

    def get_body(self, txn: Txn, block_hash: bytes) -> Any:
        body = self.try_get_body(txn, block_hash)
        if body is None:
            raise NoBody(block_hash)
        return body

    def try_get_header(self, txn: Txn, block_hash: bytes) -> HeaderLike | None:
        return self.headers.try_get(txn, block_hash)

    def get_header(self, txn: Txn, block_hash: bytes) -> HeaderLike:
        header = self.try_get_header(txn, block_hash)
        if header is None:
            raise NoHeader(block_hash)
        return header

    def try_get_main_block_info(self, txn: Txn, main_hash: bytes) -> MainBlockInfo | None:
        return self.main_block_infos.try_get(txn, main_hash)

    def get_main_block_info(self, txn: Txn, main_hash: bytes) -> MainBlockInfo:
        info = self.try_get_main_block_info(txn, main_hash)
        if info is None:
            raise NoMainBlockInfo(main_hash)
        return info

    def try_get_main_height(self, txn: Txn, block_hash: bytes) -> int | None:
        if block_hash == ZERO_HASH:
            return 0
        return self.main_block_hash_to_height.try_get(txn, block_hash)

    def get_main_height(self, txn: Txn, block_hash: bytes) -> int:
        height = self.try_get_main_height(txn, block_hash)
        if height is None:
            raise NoMainHeight(block_hash)
        return height

    def try_get_main_header_info(
        self, txn: Txn, block_hash: bytes
    ) -> MainHeaderInfo | None:
        return self.main_header_infos.try_get(txn, block_hash)

    def get_main_header_info(self, txn: Txn, block_hash: bytes) -> MainHeaderInfo:
        info = self.try_get_main_header_info(txn, block_hash)
        if info is None:
            raise NoMainHeaderInfo(block_hash)
        return info

    def try_get_main_successors(self, txn: Txn, block_hash: bytes) -> set[bytes] | None:
        return self.main_successors.try_get(txn, block_hash)

    def get_main_successors(self, txn: Txn, block_hash: bytes) -> set[bytes]:
        successors = self.try_get_main_successors(txn, block_hash)
        if successors is None:
            raise NoMainBlockHash(block_hash)
        return successors

    def try_get_successors(self, txn: Txn, block_hash: bytes | None) -> set[bytes] | None:
        """Successors of a block; with ``None``, the genesis blocks."""
        return self.successors.try_get(txn, block_hash)

    def get_successors(self, txn: Txn, block_hash: bytes | None) -> set[bytes]:
        """Successors of a block; with ``None``, the genesis blocks."""
        successors = self.try_get_successors(txn, block_hash)
        if successors is None:
            raise NoBlockHash(block_hash)
        return successors

    def try_get_total_work(self, txn: Txn, block_hash: bytes) -> int | None:
        return self.total_work.try_get(txn, block_hash)

    def get_total_work(self, txn: Txn, block_hash: bytes) -> int:
        work = self.try_get_total_work(txn, block_hash)
        if work is None:
            raise NoMainHeaderInfo(block_hash)
        return work

    # BMM verification

    def try_get_best_main_verification(self, txn: Txn, block_hash: bytes) -> bytes | None:
        """The verifying mainchain block with the most total work, if any."""
        verified = [
            main_hash
            for main_hash, result in self.get_bmm_results(txn, block_hash).items()
            if result is BmmResult.VERIFIED
        ]
        if not verified:
            return None
        works = {main_hash: self.get_total_work(txn, main_hash) for main_hash in verified}
        return max(verified, key=works.__getitem__)

    def get_best_main_verification(self, txn: Txn, block_hash: bytes) -> bytes:
        best = self.try_get_best_main_verification(txn, block_hash)
        if best is None:
            raise NoBmmResult(block_hash)
        return best

    # Ancestry

    def get_nth_ancestor(self, txn: Txn, block_hash: bytes, n: int) -> bytes:
        if n < 0:
            raise ValueError("ancestor depth must be non-negative")
        orig_hash, orig_n = block_hash, n
        while n > 0:
            height = self.get_height(txn, block_hash)
            if n > height:
                raise NoAncestor(orig_hash, orig_n)
            if n == 1:
                parent = self.get_header(txn, block_hash).prev_side_hash
                if parent is None:
                    raise InvalidPrevSideHash()
                return parent
            index = n.bit_length() - 2
            block_hash = self.exponential_ancestors.get(txn, block_hash)[index]
            n -= 2 << index
        return block_hash

    def get_nth_main_ancestor(self, txn: Txn, block_hash: bytes, n: int) -> bytes:
        if n < 0:
            raise ValueError("ancestor depth must be non-negative")
        orig_hash, orig_n = block_hash, n
        while n > 0:
            height = self.get_main_height(txn, block_hash)
            if n > height:
                raise NoMainAncestor(orig_hash, orig_n)
            if n == 1:
                return self.get_main_header_info(txn, block_hash).prev_block_hash
            index = n.bit_length() - 2
            block_hash = self.exponential_main_ancestors.get(txn, block_hash)[index]
            n -= 2 << index
        return block_hash

    def get_block_locator(self, txn: Txn, block_hash: bytes) -> list[bytes]:
        """The parent followed by the exponentially spaced ancestors."""
        header = self.get_header(txn, block_hash)
        locator = list(self.exponential_ancestors.get(txn, block_hash))
        if header.prev_side_hash is not None:
            locator.insert(0, header.prev_side_hash)
        return locator

    def is_descendant(self, txn: Txn, ancestor: bytes, descendant: bytes) -> bool:
        if ancestor == descendant:
            return True
        ancestor_height = self.get_height(txn, ancestor)
        descendant_height = self.get_height(txn, descendant)
        if ancestor_height > descendant_height:
            return False
        return ancestor == self.get_nth_ancestor(
            txn, descendant, descendant_height - ancestor_height
        )

    def is_main_descendant(self, txn: Txn, ancestor: bytes, descendant: bytes) -> bool:
        if ancestor == descendant:
            return True
        ancestor_height = self.get_main_height(txn, ancestor)
        descendant_height = self.get_main_height(txn, descendant)
        if ancestor_height > descendant_height:
            return False
        return ancestor == self.get_nth_main_ancestor(
            txn, descendant, descendant_height - ancestor_height
        )

    def ancestors(self, txn: Txn, block_hash: bytes) -> Iterator[bytes]:
        """Yield the block and then each ancestor, newest first."""
        current: bytes | None = block_hash
        while current is not None:
            header = self.get_header(txn, current)
            yield current
            current = header.prev_side_hash

    def main_ancestors(self, txn: Txn, block_hash: bytes) -> Iterator[bytes]:
        """Yield the mainchain block and then each ancestor, newest first."""
        current = block_hash
        while current != ZERO_HASH:
            info = self.get_main_header_info(txn, current)
            yield current
            current = info.prev_block_hash

    def get_missing_bodies(
        self, txn: Txn, block_hash: bytes, ancestor: bytes | None
    ) -> list[bytes]:
        """Blocks without bodies back to ``ancestor`` (exclusive), oldest first."""
        lineage = takewhile(
            lambda candidate: ancestor is None or candidate != ancestor,
            self.ancestors(txn, block_hash),
        )
        missing = [
            candidate
            for candidate in lineage
            if self.try_get_body(txn, candidate) is None
        ]
        missing.reverse()
        return missing

    def last_common_ancestor(
        self, txn: Txn, block_hash0: bytes, block_hash1: bytes
    ) -> bytes | None:
        """The last common ancestor of two blocks, or None if unrelated."""
        height0 = self.get_height(txn, block_hash0)
        height1 = self.get_height(txn, block_hash1)
        if height0 < height1:
            block_hash1 = self.get_nth_ancestor(txn, block_hash1, height1 - height0)
        elif height0 > height1:
            block_hash0 = self.get_nth_ancestor(txn, block_hash0, height0 - height1)
            height0 = height1
        if block_hash0 == block_hash1:
            return block_hash0
        if self.get_nth_ancestor(txn, block_hash0, height0) != self.get_nth_ancestor(
            txn, block_hash1, height0
        ):
            return None
        lo, hi = 1, height0
        while lo < hi:
            mid = (lo + hi) // 2
            if self.get_nth_ancestor(txn, block_hash0, mid) == self.get_nth_ancestor(
                txn, block_hash1, mid
            ):
                hi = mid
            else:
                lo = mid + 1
        return self.get_nth_ancestor(txn, block_hash0, hi)

    def last_common_main_ancestor(
        self, txn: Txn, block_hash0: bytes, block_hash1: bytes
    ) -> bytes:
        """The last common mainchain ancestor; the zero hash if unrelated."""
        height0 = self.get_main_height(txn, block_hash0)
        height1 = self.get_main_height(txn, block_hash1)
        if height0 < height1:
            block_hash1 = self.get_nth_main_ancestor(txn, block_hash1, height1 - height0)
        elif height0 > height1:
            block_hash0 = self.get_nth_main_ancestor(txn, block_hash0, height0 - height1)
            height0 = height1
        if block_hash0 == block_hash1:
            return block_hash0
        lo, hi = 1, height0
        while lo < hi:
            mid = (lo + hi) // 2
            if self.get_nth_main_ancestor(
                txn, block_hash0, mid
            ) == self.get_nth_main_ancestor(txn, block_hash1, mid):
                hi = mid
            else:
                lo = mid + 1
        return self.get_nth_main_ancestor(txn, block_hash0, hi)

    def shared_mainchain_lineage(
        self, txn: Txn, block_hash0: bytes, block_hash1: bytes
    ) -> bool:
        """Whether one mainchain block descends from the other."""
        height0 = self.get_main_height(txn, block_hash0)
        height1 = self.get_main_height(txn, block_hash1)
        if height0 < height1:
            block_hash1 = self.get_nth_main_ancestor(txn, block_hash1, height1 - height0)
        elif height0 > height1:
            block_hash0 = self.get_nth_main_ancestor(txn, block_hash0, height0 - height1)
        return block_hash0 == block_hash1