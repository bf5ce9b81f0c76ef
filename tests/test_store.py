import pytest

from sidechain_archive.store import MissingKey, Store, TransactionError


@pytest.fixture
def store():
    return Store()


def test_put_get_round_trip(store):
    table = store.table("things")
    with store.write_txn() as txn:
        table.put(txn, b"k", {"a": [1, 2]})
    with store.read_txn() as txn:
        assert table.get(txn, b"k") == {"a": [1, 2]}


def test_try_get_missing_is_none(store):
    table = store.table("things")
    with store.read_txn() as txn:
        assert table.try_get(txn, b"absent") is None


def test_get_missing_raises(store):
    table = store.table("things")
    with store.read_txn() as txn:
        with pytest.raises(MissingKey):
            table.get(txn, b"absent")


def test_write_visible_inside_txn_before_commit(store):
    table = store.table("things")
    txn = store.write_txn()
    table.put(txn, b"k", 5)
    assert table.get(txn, b"k") == 5
    with store.read_txn() as other:
        assert table.try_get(other, b"k") is None
    txn.commit()
    with store.read_txn() as other:
        assert table.get(other, b"k") == 5


def test_abort_discards(store):
    table = store.table("things")
    txn = store.write_txn()
    table.put(txn, b"k", 1)
    txn.abort()
    with store.read_txn() as txn:
        assert table.try_get(txn, b"k") is None


def test_context_manager_aborts_on_exception(store):
    table = store.table("things")
    with pytest.raises(ValueError):
        with store.write_txn() as txn:
            table.put(txn, b"k", 1)
            raise ValueError("boom")
    with store.read_txn() as txn:
        assert table.try_get(txn, b"k") is None


def test_read_txn_snapshot_isolated(store):
    table = store.table("things")
    reader = store.read_txn()
    with store.write_txn() as txn:
        table.put(txn, b"k", 1)
    assert table.try_get(reader, b"k") is None
    reader.abort()


def test_write_on_read_txn_rejected(store):
    table = store.table("things")
    with store.read_txn() as txn:
        with pytest.raises(TransactionError):
            table.put(txn, b"k", 1)


def test_finished_txn_rejected(store):
    table = store.table("things")
    txn = store.write_txn()
    txn.commit()
    with pytest.raises(TransactionError):
        table.try_get(txn, b"k")
    with pytest.raises(TransactionError):
        txn.commit()


def test_delete(store):
    table = store.table("things")
    with store.write_txn() as txn:
        table.put(txn, b"k", 1)
    with store.write_txn() as txn:
        assert table.delete(txn, b"k") is True
        assert table.delete(txn, b"k") is False
        assert table.try_get(txn, b"k") is None
    with store.read_txn() as txn:
        assert list(table.keys(txn)) == []


def test_items_ordered_by_key(store):
    table = store.table("things")
    with store.write_txn() as txn:
        for key in (b"c", b"a", b"b"):
            table.put(txn, key, key.upper())
    with store.read_txn() as txn:
        assert list(table.items(txn)) == [(b"a", b"A"), (b"b", b"B"), (b"c", b"C")]
        assert list(table.keys(txn)) == [b"a", b"b", b"c"]


def test_none_key_supported(store):
    table = store.table("things")
    with store.write_txn() as txn:
        table.put(txn, None, {b"x"})
        table.put(txn, b"y", set())
    with store.read_txn() as txn:
        assert table.get(txn, None) == {b"x"}
        assert list(table.keys(txn))[0] is None


def test_returned_values_are_copies(store):
    table = store.table("things")
    with store.write_txn() as txn:
        table.put(txn, b"k", {1})
    with store.read_txn() as txn:
        value = table.get(txn, b"k")
        value.add(2)
        assert table.get(txn, b"k") == {1}


def test_tables_are_separate(store):
    first = store.table("first")
    second = store.table("second")
    with store.write_txn() as txn:
        first.put(txn, b"k", 1)
    with store.read_txn() as txn:
        assert second.try_get(txn, b"k") is None
        assert store.table("first") is first


def test_persistence(tmp_path):
    store = Store(tmp_path)
    with store.write_txn() as txn:
        store.table("things").put(txn, b"k", [1, 2, 3])
    reopened = Store(tmp_path)
    with reopened.read_txn() as txn:
        assert reopened.table("things").get(txn, b"k") == [1, 2, 3]