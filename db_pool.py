"""SQLite connection pool shared by request handlers running in a threadpool."""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Generator, List

logger = logging.getLogger(__name__)

class SQLiteConnectionPool:
    """Thread-safe SQLite connection pool.

    Connections are handed to whichever worker thread asks for them, so they
    are opened with ``check_same_thread=False``; a connection is only ever
    used by one thread at a time because it leaves the queue while in use.
    """

    def __init__(self, database: str, max_connections: int = 5, busy_timeout: float = 5.0):
        self.database = database
        self.max_connections = max_connections
        self.busy_timeout = busy_timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=max_connections)
        self._lock = threading.Lock()
        self._created: List[sqlite3.Connection] = []

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database, timeout=self.busy_timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection, creating one while below ``max_connections``."""
        connection = None
        try:
            connection = self._pool.get(block=False)
        except Empty:
            with self._lock:
                if len(self._created) < self.max_connections:
                    connection = self._create_connection()
                    self._created.append(connection)
                    logger.debug("Created new connection (total: %d)", len(self._created))
            if connection is None:
                connection = self._pool.get(block=True)

        try:
            yield connection
        finally:
            try:
                # Discard anything the borrower left uncommitted
                connection.rollback()
                self._pool.put(connection)
            except sqlite3.Error as e:
                logger.error("Error returning connection to pool: %s", e)
                with self._lock:
                    if connection in self._created:
                        self._created.remove(connection)
                try:
                    connection.close()
                except sqlite3.Error:
                    pass

    def close_all(self) -> None:
        with self._lock:
            while True:
                try:
                    conn = self._pool.get(block=False)
                except Empty:
                    break
                conn.close()
                if conn in self._created:
                    self._created.remove(conn)
