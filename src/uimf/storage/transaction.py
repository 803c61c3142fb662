"""Time-based batching of the writer transaction.

The writer keeps one transaction open at all times. A non-forced flush only
commits once ``flush_interval`` seconds have passed since the previous commit,
so long bulk loads batch themselves; a forced flush always commits.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from typing import Callable

from uimf.contracts import storage_guard
from uimf.storage.session import WriterSession

logger = logging.getLogger(__name__)

MINIMUM_FLUSH_INTERVAL_SECONDS = 5.0
SETTLE_DELAY_SECONDS = 0.1


class TransactionCoordinator:
    """Owns the single writer-side transaction.

    Parameters
    ----------
    conn : sqlite3.Connection
        Connection opened with ``isolation_level=None`` so that transactions
        are controlled explicitly.
    session : WriterSession
        Holds ``last_flush`` and ``transaction_open``.
    flush_interval : float
        Minimum seconds between non-forced commits.
    settle_delay : float
        Pause between commit and the next ``BEGIN``.
    clock, sleep : callable
        Injectable for tests.
    """

    def __init__(self, conn: sqlite3.Connection, session: WriterSession,
                 flush_interval: float = MINIMUM_FLUSH_INTERVAL_SECONDS,
                 settle_delay: float = SETTLE_DELAY_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self._conn = conn
        self._session = session
        self.flush_interval = flush_interval
        self.settle_delay = settle_delay
        self._clock = clock
        self._sleep = sleep

    @property
    def in_transaction(self) -> bool:
        return self._session.transaction_open

    def begin(self) -> None:
        """Open the batch transaction with synchronous writes disabled."""
        if self._session.transaction_open:
            return
        with storage_guard("transaction_begin", path=self._session.path):
            # PRAGMA synchronous cannot change inside a transaction
            self._conn.execute("PRAGMA synchronous=0")
            self._conn.execute("BEGIN TRANSACTION")
        self._session.transaction_open = True

    def commit(self) -> None:
        """Commit the open transaction and restore synchronous writes."""
        if not self._session.transaction_open:
            return
        with storage_guard("transaction_commit", path=self._session.path):
            if self._conn.in_transaction:
                self._conn.execute("END TRANSACTION")
            self._session.transaction_open = False
            self._conn.execute("PRAGMA synchronous=1")
        self._session.commit_count += 1

    def flush(self, force: bool = False) -> bool:
        """Commit and reopen the transaction if due.

        Returns
        -------
        bool
            True if a commit happened.
        """
        now = self._clock()
        if not force and now - self._session.last_flush < self.flush_interval:
            return False

        self._session.last_flush = now
        self.commit()
        if self.settle_delay > 0:
            self._sleep(self.settle_delay)
        self.begin()
        logger.debug("Flushed writer transaction (commit #%d)", self._session.commit_count)
        return True

    def start(self) -> None:
        """Open the first batch of a session."""
        self._session.last_flush = self._clock()
        self.begin()

    @contextmanager
    def outside_transaction(self):
        """Commit, run the block in autocommit mode, then reopen the batch.

        Needed for statements SQLite refuses inside a transaction (``VACUUM``).
        """
        self.commit()
        if self.settle_delay > 0:
            self._sleep(self.settle_delay)
        try:
            yield self._conn
        finally:
            self._session.last_flush = self._clock()
            self.begin()

    def close(self) -> None:
        """Commit permanently; no new transaction is opened."""
        self.commit()
