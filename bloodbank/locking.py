# bloodbank/locking.py
"""
Per-blood-type serialization and bounded retry for ledger writes.

Writers for one blood type take three guards, outermost first:

1. an in-process re-entrant lock for the blood type (``LedgerLocks``),
2. a database row lock (``select_for_update`` inside ``transaction.atomic``),
3. an optimistic ``version`` compare-and-swap when the ledger is saved.

Only transient failures (``ConcurrentLedgerUpdate``, ``OperationalError``)
are retried, and only by the outermost caller; an attempt nested in a larger
transaction lets the failure roll the whole transaction back instead.
"""
import logging
import threading
import time
from contextlib import ExitStack, contextmanager

from django.db import OperationalError, transaction

from .conf import get_setting
from .exceptions import ConcurrentLedgerUpdate

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (ConcurrentLedgerUpdate, OperationalError)


class LedgerLocks:

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, blood_type):
        with self._guard:
            lock = self._locks.get(blood_type)
            if lock is None:
                lock = self._locks[blood_type] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *blood_types):
        # sorted so that two writers needing the same types never deadlock
        with ExitStack() as stack:
            for blood_type in sorted(set(blood_types)):
                stack.enter_context(self._lock_for(blood_type))
            yield


def in_transaction():
    return transaction.get_connection().in_atomic_block


def run_with_retry(attempt, attempts=None, backoff=None):
    """
    Call ``attempt()`` and retry it on transient errors with exponential
    backoff. Nested inside an open transaction it runs exactly once.
    """
    if in_transaction():
        return attempt()

    attempts = attempts or get_setting('RETRY_ATTEMPTS')
    backoff = get_setting('RETRY_BACKOFF_SECONDS') if backoff is None else backoff
    for n in range(1, attempts + 1):
        try:
            return attempt()
        except TRANSIENT_ERRORS as exc:
            if n == attempts:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                if isinstance(exc, ConcurrentLedgerUpdate):
                    raise
                raise ConcurrentLedgerUpdate(f"Store busy: {exc}") from exc
            delay = backoff * (2 ** (n - 1))
            logger.warning("Transient failure (attempt %d/%d), retrying in %.2fs: %s", n, attempts, delay, exc)
            time.sleep(delay)
