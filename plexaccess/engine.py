"""
Engine
Embedded, ordered, transactional key-value storage on SQLite.

- Table schema: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- Keys and values are raw bytes; ordering is memcmp (lexicographic).
- view() runs a read-only transaction with a consistent snapshot (WAL).
- update() runs a read-write transaction; it commits when the block
  exits cleanly and rolls back if anything escapes it.
- One connection per thread; SQLite serializes writers (BEGIN IMMEDIATE).
- The data directory is held with an exclusive file lock for the life of
  the engine, so a second open against the same directory fails fast.
"""

import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

from plexaccess.config import DEFAULT_PRAGMAS
from plexaccess.errors import EngineError, StoreClosedError, StoreLockedError
from plexaccess.log import get_logger

log = get_logger(__name__)

LOCK_FILENAME = ".plexaccess.lock"


@contextmanager
def _engine_errors():
    """Surface sqlite3 failures as EngineError, keeping the original as cause."""
    try:
        yield
    except sqlite3.Error as exc:
        raise EngineError(str(exc)) from exc


class DirectoryLock:
    """Exclusive, non-blocking lock on a file inside the data directory."""

    def __init__(self, path: Path):
        self.path = path
        self._handle = None

    def acquire(self) -> None:
        handle = self.path.open("a+", encoding="utf-8")
        try:
            _lock_file(handle)
        except OSError as exc:
            handle.close()
            raise StoreLockedError(
                f"data directory is in use by another store: {self.path.parent}"
            ) from exc
        handle.seek(0)
        handle.truncate()
        handle.write(f"pid={os.getpid()}\n")
        handle.flush()
        self._handle = handle

    def release(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            _unlock_file(handle)
        finally:
            handle.close()


def _lock_file(handle) -> None:
    if os.name == "nt":
        import msvcrt

        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        return
    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock_file(handle) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return
    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class Txn:
    """A transaction handle; only valid inside view() / update()."""

    def __init__(self, conn: sqlite3.Connection, writable: bool):
        self._conn = conn
        self.writable = writable

    def get(self, key: bytes) -> Optional[bytes]:
        """Value stored under key, or None if absent."""
        with _engine_errors():
            row = self._conn.execute(
                "SELECT v FROM kv WHERE k = ?", (memoryview(key),)
            ).fetchone()
        return bytes(row[0]) if row is not None else None

    def set(self, key: bytes, value: bytes) -> None:
        self._require_writable()
        with _engine_errors():
            self._conn.execute(
                "INSERT INTO kv(k, v) VALUES(?, ?) "
                "ON CONFLICT(k) DO UPDATE SET v=excluded.v",
                (memoryview(key), memoryview(value)),
            )

    def delete(self, key: bytes) -> None:
        """Remove key if present. Deleting an absent key is not an error."""
        self._require_writable()
        with _engine_errors():
            self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def seek(self, start: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """
        Forward iterator over (key, value) pairs with key >= start, in key
        order. Callers stop it themselves (e.g. once keys leave a prefix).
        """
        with _engine_errors():
            cur = self._conn.execute(
                "SELECT k, v FROM kv WHERE k >= ? ORDER BY k", (memoryview(start),)
            )
        try:
            while True:
                with _engine_errors():
                    row = cur.fetchone()
                if row is None:
                    return
                yield bytes(row[0]), bytes(row[1])
        finally:
            cur.close()

    @property
    def active(self) -> bool:
        """False once the engine has aborted this transaction."""
        return self._conn.in_transaction

    def restart(self) -> None:
        """Begin a fresh write transaction after the engine aborted this one."""
        self._require_writable()
        if self._conn.in_transaction:
            return
        with _engine_errors():
            self._conn.execute("BEGIN IMMEDIATE")

    def _require_writable(self) -> None:
        if not self.writable:
            raise EngineError("write attempted in a read-only transaction")


class Engine:
    """
    SQLite-backed engine rooted at a directory.

    Use Engine.open(directory) to construct; it creates the directory,
    takes the directory lock and prepares the schema.
    """

    def __init__(self, db_path: Path, lock: DirectoryLock, pragmas: Optional[dict] = None):
        self.db_path = Path(db_path)
        self._lock = lock
        self._pragmas = dict(DEFAULT_PRAGMAS)
        self._pragmas.update(pragmas or {})
        self._local = threading.local()
        self._registry_lock = threading.Lock()
        # owning thread -> connection; connections of finished threads are
        # closed the next time a thread registers
        self._connections: dict[threading.Thread, sqlite3.Connection] = {}
        self.closed = False

    @classmethod
    def open(
        cls,
        directory: str | Path,
        db_filename: str = "plexaccess.db",
        pragmas: Optional[dict] = None,
    ) -> "Engine":
        directory = Path(directory)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise EngineError(f"cannot create data directory {directory}: {exc}") from exc

        lock = DirectoryLock(directory / LOCK_FILENAME)
        try:
            lock.acquire()
        except OSError as exc:
            raise EngineError(f"cannot open lock file in {directory}: {exc}") from exc

        engine = cls(directory / db_filename, lock, pragmas)
        try:
            with _engine_errors():
                conn = engine._connection()
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv ("
                    "k BLOB PRIMARY KEY, v BLOB NOT NULL) WITHOUT ROWID"
                )
        except BaseException:
            engine.close()
            raise
        return engine

    def _connection(self) -> sqlite3.Connection:
        if self.closed:
            raise StoreClosedError("datastore is closed")
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn

        with _engine_errors():
            conn = sqlite3.connect(
                str(self.db_path),
                isolation_level=None,     # we BEGIN/COMMIT explicitly
                check_same_thread=False,  # close() runs on any thread
                timeout=30.0,
            )
            for name, value in self._pragmas.items():
                conn.execute(f"PRAGMA {name}={value}")

        with self._registry_lock:
            if self.closed:
                conn.close()
                raise StoreClosedError("datastore is closed")
            stale = self._reap_finished_threads()
            self._connections[threading.current_thread()] = conn
        self._local.conn = conn

        for old in stale:
            try:
                old.close()
            except sqlite3.Error as exc:
                log.warning("failed to close connection of finished thread: %s", exc)
        return conn

    def _reap_finished_threads(self) -> list[sqlite3.Connection]:
        """Unregister connections whose thread has exited. Caller holds the registry lock."""
        finished = [t for t in self._connections if not t.is_alive()]
        return [self._connections.pop(t) for t in finished]

    @property
    def connection_count(self) -> int:
        with self._registry_lock:
            return len(self._connections)

    @contextmanager
    def view(self) -> Iterator[Txn]:
        """Read-only transaction."""
        conn = self._connection()
        with _engine_errors():
            conn.execute("BEGIN")
        try:
            yield Txn(conn, writable=False)
        finally:
            if conn.in_transaction:
                with _engine_errors():
                    conn.execute("ROLLBACK")

    @contextmanager
    def update(self) -> Iterator[Txn]:
        """Read-write transaction: all writes commit together or not at all."""
        conn = self._connection()
        with _engine_errors():
            conn.execute("BEGIN IMMEDIATE")
        try:
            yield Txn(conn, writable=True)
        except BaseException:
            # an aborted transaction is already rolled back
            if conn.in_transaction:
                with _engine_errors():
                    conn.execute("ROLLBACK")
            raise
        try:
            with _engine_errors():
                conn.execute("COMMIT")
        except EngineError:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def close(self) -> bool:
        """
        Close every connection and release the directory lock.

        Returns:
            False if the engine was already closed, True otherwise.

        Raises:
            EngineError: a connection or the lock failed to close. The
                engine is marked closed regardless.
        """
        with self._registry_lock:
            if self.closed:
                return False
            self.closed = True
            connections = list(self._connections.values())
            self._connections = {}

        errors = []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                errors.append(exc)
        try:
            self._lock.release()
        except OSError as exc:
            errors.append(exc)

        if errors:
            raise EngineError(f"engine failed to close cleanly: {errors[0]}") from errors[0]
        log.debug("engine closed: %s", self.db_path)
        return True
