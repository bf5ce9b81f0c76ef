"""Choosing the better of two sidechain tips."""

from __future__ import annotations

from .lookup import ArchiveReader
from .models import Tip
from .store import Txn


def _sign(a: object, b: object) -> int:
    return (a > b) - (a < b)  # type: ignore[operator]


def _optional_key(value: int | None) -> tuple[int, int]:
    """Order None before every value."""
    return (0, 0) if value is None else (1, value)


def _first_ancestor_before(
    archive: ArchiveReader, txn: Txn, block_hash: bytes, main_ancestor: bytes
) -> bytes | None:
    """First ancestor whose mainchain parent strictly precedes ``main_ancestor``."""
    for candidate in archive.ancestors(txn, block_hash):
        header = archive.get_header(txn, candidate)
        if not archive.is_main_descendant(txn, header.prev_main_hash, main_ancestor):
            continue
        if header.prev_main_hash == main_ancestor:
            continue
        return candidate
    return None


def _height_before(
    archive: ArchiveReader, txn: Txn, block_hash: bytes, main_ancestor: bytes
) -> int | None:
    candidate = _first_ancestor_before(archive, txn, block_hash, main_ancestor)
    if candidate is None:
        return None
    return archive.get_height(txn, candidate)


def _height_and_work_before(
    archive: ArchiveReader,
    txn: Txn,
    block_hash: bytes,
    main_ancestor: bytes,
    main_ancestor_height: int,
) -> tuple[int | None, int | None]:
    candidate = _first_ancestor_before(archive, txn, block_hash, main_ancestor)
    if candidate is None:
        return None, None
    header = archive.get_header(txn, candidate)
    height = archive.get_height(txn, candidate)
    main_height = archive.get_main_height(txn, header.prev_main_hash) + 1
    main_block = archive.get_nth_main_ancestor(
        txn, main_ancestor, main_ancestor_height - main_height
    )
    return height, archive.get_total_work(txn, main_block)


def better_tip(archive: ArchiveReader, txn: Txn, tip0: Tip, tip1: Tip) -> Tip | None:
    """Return the better of two tips, or None if neither is better.

    Headers for both tips must be in the archive.  Within a shared mainchain
    lineage the taller tip wins, and at equal height the one with less work.
    Across diverging mainchain lineages the heights reached before the common
    mainchain ancestor decide where height and work disagree.
    """
    if tip0 == tip1:
        return None
    block_hash0, block_hash1 = tip0.block_hash, tip1.block_hash
    height0 = archive.get_height(txn, block_hash0)
    height1 = archive.get_height(txn, block_hash1)
    if height0 == 0 and height1 == 0:
        return None
    if height0 == 0:
        return tip1
    if height1 == 0:
        return tip0

    work0 = archive.get_total_work(txn, tip0.main_block_hash)
    work1 = archive.get_total_work(txn, tip1.main_block_hash)
    work_cmp = _sign(work0, work1)
    height_cmp = _sign(height0, height1)

    if work_cmp <= 0 and height_cmp < 0:
        return tip1
    if work_cmp >= 0 and height_cmp > 0:
        return tip0
    if height_cmp == 0 and work_cmp != 0:
        shared = archive.shared_mainchain_lineage(
            txn, tip0.main_block_hash, tip1.main_block_hash
        )
        lower_work, greater_work = (tip0, tip1) if work_cmp < 0 else (tip1, tip0)
        return lower_work if shared else greater_work

    main_ancestor = archive.last_common_main_ancestor(
        txn, tip0.main_block_hash, tip1.main_block_hash
    )
    if work_cmp < 0:
        # Less work but greater height.
        ancestor_height = _height_before(archive, txn, block_hash0, main_ancestor)
        if _optional_key(ancestor_height) >= _optional_key(height1):
            return tip0
        return tip1
    if work_cmp > 0:
        # Greater work but less height.
        ancestor_height = _height_before(archive, txn, block_hash1, main_ancestor)
        if _optional_key(ancestor_height) < _optional_key(height0):
            return tip0
        return tip1

    if block_hash0 == block_hash1:
        return tip0
    main_ancestor_height = archive.get_main_height(txn, main_ancestor)
    anc_height0, anc_work0 = _height_and_work_before(
        archive, txn, block_hash0, main_ancestor, main_ancestor_height
    )
    anc_height1, anc_work1 = _height_and_work_before(
        archive, txn, block_hash1, main_ancestor, main_ancestor_height
    )
    anc_work_cmp = _sign(_optional_key(anc_work0), _optional_key(anc_work1))
    anc_height_cmp = _sign(_optional_key(anc_height0), _optional_key(anc_height1))
    if anc_height_cmp > 0 or (anc_height_cmp == 0 and anc_work_cmp <= 0):
        return tip0
    return tip1