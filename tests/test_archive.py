import pytest

from sidechain_archive.archive import Archive
from sidechain_archive.errors import (
    IncompatibleVersion,
    InvalidPrevSideHash,
    NoAccumulator,
    NoBmmResult,
    NoHeader,
    NoMainAncestor,
    NoMainBlockInfo,
    NoMainHeaderInfo,
)
from sidechain_archive.models import (
    CURRENT_VERSION,
    ZERO_HASH,
    BmmResult,
    HeaderLike,
    MainBlockInfo,
    MainHeaderInfo,
    Version,
)
from sidechain_archive.store import Store


def mhash(tag, i):
    return bytes([tag, i]) + bytes(30)


def add_main_chain(archive, txn, hashes, prev=ZERO_HASH, works=None):
    for i, block_hash in enumerate(hashes):
        work = works[i] if works else 1
        archive.put_main_header_info(txn, MainHeaderInfo(block_hash, prev, 0, work))
        prev = block_hash


def side_chain(archive, txn, length, parent=None, prev_main=ZERO_HASH, salt=0):
    hashes = []
    for i in range(length):
        header = HeaderLike(parent, prev_main, bytes([salt, i]) + bytes(30))
        archive.put_header(txn, header)
        parent = header.hash()
        hashes.append(parent)
    return hashes


@pytest.fixture
def archive():
    return Archive(Store())


def test_fresh_archive_has_empty_genesis_successors(archive):
    with archive.store.read_txn() as txn:
        assert archive.get_successors(txn, None) == set()
        assert archive.get_main_successors(txn, ZERO_HASH) == set()
        assert archive.version.get(txn, ()) == CURRENT_VERSION


def test_reopen_keeps_version(tmp_path):
    Archive(Store(tmp_path))
    archive = Archive(Store(tmp_path))
    with archive.store.read_txn() as txn:
        assert archive.version.get(txn, ()) == CURRENT_VERSION


def test_incompatible_version_rejected():
    store = Store()
    old = Version(0, 12, 0)
    with store.write_txn() as txn:
        store.table("archive_version").put(txn, (), old)
    with pytest.raises(IncompatibleVersion) as info:
        Archive(store)
    assert info.value.version == old


def test_main_chain_heights_and_work(archive):
    chain = [mhash(1, i) for i in range(20)]
    works = list(range(1, 21))
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, chain, works=works)
        for i, block_hash in enumerate(chain):
            assert archive.get_main_height(txn, block_hash) == i + 1
            assert archive.get_total_work(txn, block_hash) == sum(works[: i + 1])
        assert archive.get_main_successors(txn, ZERO_HASH) == {chain[0]}
        assert archive.get_main_successors(txn, chain[3]) == {chain[4]}
        assert archive.get_main_successors(txn, chain[-1]) == set()


def test_nth_main_ancestor_matches_walk(archive):
    chain = [mhash(2, i) for i in range(37)]
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, chain)
        for j, block_hash in enumerate(chain):
            for k in range(j + 2):
                expected = chain[j - k] if j - k >= 0 else ZERO_HASH
                assert archive.get_nth_main_ancestor(txn, block_hash, k) == expected
            with pytest.raises(NoMainAncestor):
                archive.get_nth_main_ancestor(txn, block_hash, j + 2)
        assert list(archive.main_ancestors(txn, chain[-1])) == chain[::-1]
        assert archive.is_main_descendant(txn, chain[5], chain[30])
        assert not archive.is_main_descendant(txn, chain[30], chain[5])


def test_main_fork_common_ancestor(archive):
    trunk = [mhash(3, i) for i in range(6)]
    branch = [mhash(4, i) for i in range(4)]
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, trunk)
        add_main_chain(archive, txn, branch, prev=trunk[2])
        assert archive.last_common_main_ancestor(txn, trunk[-1], branch[-1]) == trunk[2]
        assert not archive.shared_mainchain_lineage(txn, trunk[-1], branch[-1])
        assert archive.shared_mainchain_lineage(txn, trunk[1], branch[-1])
        assert archive.get_main_successors(txn, trunk[2]) == {trunk[3], branch[0]}


def test_put_main_header_info_unknown_parent(archive):
    missing = mhash(5, 0)
    with archive.store.write_txn() as txn:
        with pytest.raises(NoMainHeaderInfo) as info:
            archive.put_main_header_info(txn, MainHeaderInfo(mhash(5, 1), missing, 0, 1))
    assert info.value.block_hash == missing


def test_side_chain_ancestry(archive):
    with archive.store.write_txn() as txn:
        chain = side_chain(archive, txn, 25)
        assert archive.get_successors(txn, None) == {chain[0]}
        for j, block_hash in enumerate(chain):
            assert archive.get_height(txn, block_hash) == j
            for k in range(j + 1):
                assert archive.get_nth_ancestor(txn, block_hash, k) == chain[j - k]
        tip = chain[-1]
        locator = archive.get_block_locator(txn, tip)
        assert locator[0] == chain[-2]
        for i, entry in enumerate(locator[1:], start=1):
            assert entry == archive.get_nth_ancestor(txn, tip, 2**i)
        assert list(archive.ancestors(txn, tip)) == chain[::-1]
        assert archive.is_descendant(txn, chain[3], tip)
        assert not archive.is_descendant(txn, tip, chain[3])


def test_put_header_unknown_parent(archive):
    with archive.store.write_txn() as txn:
        with pytest.raises(InvalidPrevSideHash):
            archive.put_header(txn, HeaderLike(mhash(6, 0), ZERO_HASH))


def test_last_common_ancestor_with_fork(archive):
    with archive.store.write_txn() as txn:
        trunk = side_chain(archive, txn, 6, salt=1)
        branch = side_chain(archive, txn, 2, parent=trunk[2], salt=2)
        other = side_chain(archive, txn, 3, salt=3)
        assert archive.last_common_ancestor(txn, trunk[-1], branch[-1]) == trunk[2]
        assert archive.last_common_ancestor(txn, trunk[-1], other[-1]) is None
        assert archive.get_successors(txn, trunk[2]) == {trunk[3], branch[0]}


def test_bodies_and_missing_bodies(archive):
    with archive.store.write_txn() as txn:
        chain = side_chain(archive, txn, 4)
        with pytest.raises(NoHeader):
            archive.put_body(txn, mhash(7, 0), {"txs": []})
        archive.put_body(txn, chain[1], {"txs": [1]})
        assert archive.get_body(txn, chain[1]) == {"txs": [1]}
        assert archive.get_missing_bodies(txn, chain[-1], None) == [
            chain[0],
            chain[2],
            chain[3],
        ]
        assert archive.get_missing_bodies(txn, chain[-1], chain[1]) == [chain[2], chain[3]]


def test_accumulator_round_trip(archive):
    with archive.store.write_txn() as txn:
        chain = side_chain(archive, txn, 1)
        with pytest.raises(NoAccumulator):
            archive.get_accumulator(txn, chain[0])
        archive.put_accumulator(txn, chain[0], ["root-a", "root-b"])
        assert archive.get_accumulator(txn, chain[0]) == ["root-a", "root-b"]


def test_bmm_verified_when_block_info_precedes_header(archive):
    main = [mhash(8, i) for i in range(5)]
    h0 = HeaderLike(None, main[0])
    h1 = HeaderLike(h0.hash(), main[1])
    commitments = {main[1]: h0.hash(), main[2]: h1.hash()}
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, main)
        for block_hash in main:
            archive.put_main_block_info(
                txn, block_hash, MainBlockInfo(commitments.get(block_hash))
            )
        archive.put_header(txn, h0)
        archive.put_header(txn, h1)
        assert archive.get_bmm_result(txn, h0.hash(), main[1]) is BmmResult.VERIFIED
        assert archive.get_bmm_result(txn, h1.hash(), main[2]) is BmmResult.VERIFIED
        assert archive.get_best_main_verification(txn, h1.hash()) == main[2]


def test_bmm_verified_when_header_precedes_block_info(archive):
    m1, m2 = mhash(9, 1), mhash(9, 2)
    h0 = HeaderLike(None, m1)
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, [m1])
        archive.put_main_block_info(txn, m1, MainBlockInfo())
        archive.put_header(txn, h0)
        assert archive.get_bmm_results(txn, h0.hash()) == {}
        add_main_chain(archive, txn, [m2], prev=m1)
        archive.put_main_block_info(txn, m2, MainBlockInfo(h0.hash()))
        assert archive.get_bmm_results(txn, h0.hash()) == {m2: BmmResult.VERIFIED}


def test_bmm_failed_for_commitment_to_other_block(archive):
    main = [mhash(10, i) for i in range(2)]
    h0 = HeaderLike(None, main[0])
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, main)
        archive.put_main_block_info(txn, main[0], MainBlockInfo())
        archive.put_main_block_info(txn, main[1], MainBlockInfo(mhash(11, 0)))
        archive.put_header(txn, h0)
        assert archive.get_bmm_result(txn, h0.hash(), main[1]) is BmmResult.FAILED
        with pytest.raises(NoBmmResult):
            archive.get_best_main_verification(txn, h0.hash())


def test_bmm_failed_when_parent_unverified(archive):
    main = [mhash(12, i) for i in range(3)]
    h0 = HeaderLike(None, main[0])
    h1 = HeaderLike(h0.hash(), main[1])
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, main)
        archive.put_main_block_info(txn, main[0], MainBlockInfo())
        archive.put_main_block_info(txn, main[1], MainBlockInfo())
        archive.put_main_block_info(txn, main[2], MainBlockInfo(h1.hash()))
        archive.put_header(txn, h0)
        archive.put_header(txn, h1)
        assert archive.get_bmm_result(txn, h0.hash(), main[1]) is BmmResult.FAILED
        assert archive.get_bmm_result(txn, h1.hash(), main[2]) is BmmResult.FAILED


def test_put_header_requires_successor_block_info(archive):
    main = [mhash(13, i) for i in range(2)]
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, main)
        with pytest.raises(NoMainBlockInfo):
            archive.put_header(txn, HeaderLike(None, main[0]))


def test_put_main_block_info_requires_parent_info(archive):
    main = [mhash(14, i) for i in range(2)]
    with archive.store.write_txn() as txn:
        add_main_chain(archive, txn, main)
        with pytest.raises(NoMainBlockInfo):
            archive.put_main_block_info(txn, main[1], MainBlockInfo())
        with pytest.raises(NoMainHeaderInfo):
            archive.put_main_block_info(txn, mhash(15, 0), MainBlockInfo())


def test_aborted_write_is_discarded(archive):
    with pytest.raises(InvalidPrevSideHash):
        with archive.store.write_txn() as txn:
            chain = side_chain(archive, txn, 2)
            archive.put_header(txn, HeaderLike(mhash(16, 0), ZERO_HASH))
    with archive.store.read_txn() as txn:
        assert archive.try_get_header(txn, chain[0]) is None
        assert archive.get_successors(txn, None) == set()