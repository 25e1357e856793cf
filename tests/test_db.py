import threading

import pytest

from db import DB, prefixEnd
from errors import StorageError


def test_prefix_end():
    assert prefixEnd(b"ab") == b"ac"
    assert prefixEnd(b"a\xff") == b"b"
    assert prefixEnd(b"\xff\xff") is None
    assert prefixEnd(b"") is None


def test_put_get_delete(db):
    with db.update() as tx:
        tx.bucket("UserData").put("k", b"v")
    with db.view() as tx:
        assert tx.bucket("UserData").get("k") == b"v"
        assert tx.bucket("UserArticles").get("k") is None

    with db.update() as tx:
        tx.bucket("UserData").delete("k")
        tx.bucket("UserData").delete("never-there")
    with db.view() as tx:
        assert tx.bucket("UserData").get("k") is None


def test_scan_returns_only_the_prefix_range_in_key_order(db):
    keys = [
        "u@x.com:article:/b.md",
        "u@x.com:index",
        "u@x.com:article:/a.md",
        "u@x.co:article:/z.md",
        "v@x.com:article:/c.md",
    ]
    with db.update() as tx:
        b = tx.bucket("UserArticles")
        for k in keys:
            b.put(k, k.upper())

    with db.view() as tx:
        rows = tx.bucket("UserArticles").scan("u@x.com:article:")

    assert [k for k, _ in rows] == [b"u@x.com:article:/a.md", b"u@x.com:article:/b.md"]
    assert rows[0][1] == b"U@X.COM:ARTICLE:/A.MD"


def test_delete_prefix(db):
    with db.update() as tx:
        b = tx.bucket("UserArticles")
        for k in ("a:1", "a:2", "ab:1", "b:1"):
            b.put(k, b"x")
    with db.update() as tx:
        assert tx.bucket("UserArticles").deletePrefix("a:") == 2
    with db.view() as tx:
        assert [k for k, _ in tx.bucket("UserArticles").scan("")] == [b"ab:1", b"b:1"]


def test_read_only_transaction_rejects_writes(db):
    with db.view() as tx:
        b = tx.bucket("UserData")
        with pytest.raises(StorageError):
            b.put("k", b"v")
        with pytest.raises(StorageError):
            b.delete("k")
        with pytest.raises(StorageError):
            b.deletePrefix("k")


def test_missing_bucket(db):
    with pytest.raises(StorageError):
        with db.view() as tx:
            tx.bucket("Nope")


def test_failed_update_rolls_back(db):
    with pytest.raises(RuntimeError):
        with db.update() as tx:
            tx.bucket("UserData").put("k", b"v")
            raise RuntimeError("boom")
    with db.view() as tx:
        assert tx.bucket("UserData").get("k") is None


def test_reader_keeps_its_snapshot(db):
    with db.update() as tx:
        tx.bucket("UserData").put("k", b"old")

    with db.view() as tx:
        b = tx.bucket("UserData")
        assert b.get("k") == b"old"
        with db.update() as wtx:
            wtx.bucket("UserData").put("k", b"new")
        assert b.get("k") == b"old"

    with db.view() as tx:
        assert tx.bucket("UserData").get("k") == b"new"


def test_memory_store(memdb):
    with memdb.update() as tx:
        tx.bucket("UserData").put("k", b"v")
    with memdb.view() as tx:
        assert tx.bucket("UserData").get("k") == b"v"


def test_closed_store_is_not_reopened(tmp_path):
    store = DB(tmp_path / "x.db").connect(["UserData"])
    store.close()
    with pytest.raises(StorageError):
        with store.view():
            pass
    with pytest.raises(StorageError):
        store.connect()


def test_open_failure_is_a_storage_error(tmp_path):
    # a directory is not a database file
    with pytest.raises(StorageError):
        DB(tmp_path).connect(["UserData"])


def test_data_survives_reopen(tmp_path):
    path = tmp_path / "blog.db"
    store = DB(path).connect(["UserData"])
    with store.update() as tx:
        tx.bucket("UserData").put("k", b"v")
    store.close()

    store = DB(path).connect(["UserData"])
    with store.view() as tx:
        assert tx.bucket("UserData").get("k") == b"v"
    store.close()


def test_short_lived_threads_do_not_leak_readers(db):
    with db.update() as tx:
        tx.bucket("UserData").put("k", b"v")

    def read():
        with db.view() as tx:
            assert tx.bucket("UserData").get("k") == b"v"

    for _ in range(200):
        t = threading.Thread(target=read)
        t.start()
        t.join()
    assert db.openReaders <= db.maxIdleReaders


def test_concurrent_readers_shrink_back_to_the_idle_limit(db):
    n = db.maxIdleReaders * 3
    barrier = threading.Barrier(n, timeout=10)

    def read():
        with db.view() as tx:
            tx.bucket("UserData").get("k")
            barrier.wait()

    threads = [threading.Thread(target=read) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert db.openReaders == db.maxIdleReaders


def test_reader_in_use_at_close_is_closed_on_release(tmp_path):
    store = DB(tmp_path / "x.db").connect(["UserData"])
    with store.view() as tx:
        tx.bucket("UserData").get("k")
        store.close()
    assert store.openReaders == 0
