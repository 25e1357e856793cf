"""
Embedded key-value engine on top of a single SQLite file.

Values live in named buckets and are addressed by byte keys, ordered by raw
byte comparison so every key sharing a prefix is one contiguous range:

    with db.update() as tx:
        tx.bucket("UserArticles").put("a@b.c:article:/x.md", b"{...}")

    with db.view() as tx:
        for key, value in tx.bucket("UserArticles").scan("a@b.c:article:"):
            ...

update() transactions are serialized process-wide; view() transactions run
on pooled reader connections and see a snapshot. At most maxIdleReaders
readers stay open between transactions. A ":memory:" store
keeps one connection, so its readers queue behind the writer.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS buckets (
    name TEXT PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS kv (
    bucket TEXT NOT NULL,
    key BLOB NOT NULL,
    value BLOB NOT NULL,
    PRIMARY KEY (bucket, key)
) WITHOUT ROWID;
"""

Key = Union[str, bytes]


def _bytes(v: Key) -> bytes:
    return v.encode("utf-8") if isinstance(v, str) else bytes(v)


def prefixEnd(prefix: bytes) -> Optional[bytes]:
    """Smallest key greater than every key starting with `prefix` (None: no bound)."""
    end = bytearray(prefix)
    while end and end[-1] == 0xFF:
        end.pop()
    if not end:
        return None
    end[-1] += 1
    return bytes(end)


class Bucket:
    def __init__(self, tx: "Tx", name: str):
        self.tx = tx
        self.name = name

    def get(self, key: Key) -> Optional[bytes]:
        row = self.tx.execute(
            "SELECT value FROM kv WHERE bucket = ? AND key = ?",
            (self.name, _bytes(key)),
        ).fetchone()
        return bytes(row[0]) if row else None

    def put(self, key: Key, value: Key) -> None:
        self.tx.requireWritable()
        self.tx.execute(
            "INSERT OR REPLACE INTO kv (bucket, key, value) VALUES (?, ?, ?)",
            (self.name, _bytes(key), _bytes(value)),
        )

    def delete(self, key: Key) -> None:
        self.tx.requireWritable()
        self.tx.execute(
            "DELETE FROM kv WHERE bucket = ? AND key = ?",
            (self.name, _bytes(key)),
        )

    def _range(self, prefix: Key) -> Tuple[str, tuple]:
        start = _bytes(prefix)
        end = prefixEnd(start)
        if end is None:
            return "bucket = ? AND key >= ?", (self.name, start)
        return "bucket = ? AND key >= ? AND key < ?", (self.name, start, end)

    def scan(self, prefix: Key = b"") -> List[Tuple[bytes, bytes]]:
        """All (key, value) pairs whose key starts with `prefix`, in key order."""
        where, params = self._range(prefix)
        rows = self.tx.execute(
            f"SELECT key, value FROM kv WHERE {where} ORDER BY key", params
        ).fetchall()
        return [(bytes(k), bytes(v)) for k, v in rows]

    def deletePrefix(self, prefix: Key) -> int:
        self.tx.requireWritable()
        where, params = self._range(prefix)
        cur = self.tx.execute(f"DELETE FROM kv WHERE {where}", params)
        return cur.rowcount


class Tx:
    def __init__(self, conn: sqlite3.Connection, writable: bool):
        self.conn = conn
        self.writable = writable

    def execute(self, sql: str, params=()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    def requireWritable(self) -> None:
        if not self.writable:
            raise StorageError("write attempted in a read-only transaction")

    def bucket(self, name: str) -> Bucket:
        row = self.execute("SELECT 1 FROM buckets WHERE name = ?", (name,)).fetchone()
        if not row:
            raise StorageError(f"bucket not found: {name}")
        return Bucket(self, name)

    def createBucketIfNotExists(self, name: str) -> Bucket:
        self.requireWritable()
        self.execute("INSERT OR IGNORE INTO buckets (name) VALUES (?)", (name,))
        return Bucket(self, name)


class DB:
    def __init__(self, dbFile, maxIdleReaders: int = 4):
        self.dbFile = str(dbFile)
        self.maxIdleReaders = maxIdleReaders
        self.openReaders = 0
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._idle: List[sqlite3.Connection] = []
        self._readersLock = threading.Lock()
        self._closed = False
        self.inMemory = self.dbFile == ":memory:"

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.dbFile, timeout=30, isolation_level=None, check_same_thread=False)
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def connect(self, buckets=()) -> "DB":
        """Open the file, create the schema and the given buckets."""
        if self._closed:
            raise StorageError(f"database {self.dbFile} is closed")
        if self._conn is not None:
            return self
        try:
            if not self.inMemory:
                Path(self.dbFile).parent.mkdir(parents=True, exist_ok=True)
            self._conn = self._open()
            self._conn.executescript(SCHEMA)
        except (OSError, sqlite3.Error) as e:
            self._conn = None
            raise StorageError(f"open {self.dbFile}: {e}") from e
        with self.update() as tx:
            for name in buckets:
                tx.createBucketIfNotExists(name)
        logger.info("opened %s", self.dbFile)
        return self

    def _writer(self) -> sqlite3.Connection:
        if self._closed or self._conn is None:
            raise StorageError(f"database {self.dbFile} is not open")
        return self._conn

    def _acquireReader(self) -> sqlite3.Connection:
        self._writer()
        with self._readersLock:
            if self._idle:
                return self._idle.pop()
        try:
            conn = self._open()
        except sqlite3.Error as e:
            raise StorageError(f"open reader {self.dbFile}: {e}") from e
        with self._readersLock:
            self.openReaders += 1
        return conn

    def _releaseReader(self, conn: sqlite3.Connection) -> None:
        with self._readersLock:
            if not self._closed and len(self._idle) < self.maxIdleReaders:
                self._idle.append(conn)
                return
            self.openReaders -= 1
        conn.close()

    @contextmanager
    def update(self) -> Iterator[Tx]:
        """Read-write transaction. Commits on success, rolls back on any error."""
        conn = self._writer()
        with self._lock:
            Tx(conn, True).execute("BEGIN IMMEDIATE")
            try:
                yield Tx(conn, True)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise StorageError(f"commit: {e}") from e

    @contextmanager
    def view(self) -> Iterator[Tx]:
        """Read-only snapshot transaction."""
        if self.inMemory:
            # one shared connection: readers wait for the writer
            with self._lock:
                yield from self._readTx(self._writer())
            return
        conn = self._acquireReader()
        try:
            yield from self._readTx(conn)
        finally:
            self._releaseReader(conn)

    def _readTx(self, conn: sqlite3.Connection) -> Iterator[Tx]:
        tx = Tx(conn, False)
        tx.execute("BEGIN")
        try:
            yield tx
        finally:
            conn.execute("ROLLBACK")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._readersLock:
            for conn in self._idle:
                conn.close()
            self.openReaders -= len(self._idle)
            self._idle = []
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        logger.info("closed %s", self.dbFile)
