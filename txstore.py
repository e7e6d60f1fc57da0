"""In-memory key/value store with nested transactions and value counts.

The store is a stack of frames: the base dict holds committed state and each
open transaction adds a frame recording only what changed since its BEGIN.
A reverse index (value -> number of keys visibly holding it) is kept in step
with every write, rollback and commit, so count() never walks the stack.
"""

import logging
from collections import Counter

logger = logging.getLogger(__name__)


class NoOpenTransaction(RuntimeError):
    """Raised by rollback/commit when only the base frame is left."""

    def __init__(self, operation):
        super().__init__(f"{operation}: no active transaction")
        self.operation = operation


class _Deleted:
    def __repr__(self):
        return "DELETED"


# Tombstone for transaction frames; also what _lookup returns for "no value".
DELETED = _Deleted()


class _Frame:
    """One open transaction.

    *records* maps key -> value or DELETED for every write made in this
    frame. *prior* maps the same keys to what was visible just before this
    frame first touched them, which is all rollback needs to fix the counts.
    """

    __slots__ = ("records", "prior")

    def __init__(self):
        self.records = {}
        self.prior = {}


class TxStore:
    """Key/value store with nested transactions and an eager value-count index."""

    def __init__(self):
        self._store = {}
        self._transactions = []
        self._counts = {}

    @property
    def depth(self):
        """Number of open transactions; 0 when only the base frame exists."""
        return len(self._transactions)

    def __contains__(self, key):
        return self._lookup(key) is not DELETED

    def _lookup(self, key):
        # Search from the most recent transaction backwards
        for frame in reversed(self._transactions):
            if key in frame.records:
                return frame.records[key]
        return self._store.get(key, DELETED)

    def _require_transaction(self, operation):
        if not self._transactions:
            logger.warning("%s with no open transaction", operation)
            raise NoOpenTransaction(operation)

    def _incr(self, value):
        self._counts[value] = self._counts.get(value, 0) + 1

    def _decr(self, value):
        remaining = self._counts[value] - 1
        if remaining:
            self._counts[value] = remaining
        else:
            del self._counts[value]

    def _reindex(self, old, new):
        """Move one key's contribution in the count index from *old* to *new*."""
        if old is not DELETED and new is not DELETED and old == new:
            return
        if old is not DELETED:
            self._decr(old)
        if new is not DELETED:
            self._incr(new)

    def _write(self, key, record, old):
        if not self._transactions:
            # base frame never keeps tombstones
            if record is DELETED:
                self._store.pop(key, None)
            else:
                self._store[key] = record
            return
        frame = self._transactions[-1]
        frame.prior.setdefault(key, old)
        frame.records[key] = record

    def get(self, key, default=None):
        """Return the visible value of *key*, or *default* if it has none."""
        value = self._lookup(key)
        if value is DELETED:
            return default
        return value

    def set(self, key, value):
        """Set *key* to *value* in the innermost frame."""
        old = self._lookup(key)
        self._write(key, value, old)
        self._reindex(old, value)

    def delete(self, key):
        """Remove *key* from the visible state. Deleting a missing key is fine."""
        old = self._lookup(key)
        self._write(key, DELETED, old)
        self._reindex(old, DELETED)

    def count(self, value):
        """Number of keys whose visible value equals *value*."""
        return self._counts.get(value, 0)

    def begin(self):
        """Start a new transaction layer."""
        self._transactions.append(_Frame())
        logger.debug("BEGIN, depth now %d", len(self._transactions))

    def rollback(self):
        """Discard the most recent transaction and undo its effect on the counts."""
        self._require_transaction("ROLLBACK")
        frame = self._transactions.pop()
        for key, current in frame.records.items():
            self._reindex(current, frame.prior[key])
        logger.debug("ROLLBACK of %d key(s), depth now %d",
                     len(frame.records), len(self._transactions))

    def commit(self):
        """Merge the most recent transaction into the one below it.

        Only one level is collapsed per call. The merged records were already
        the topmost ones, so the count index does not change.
        """
        self._require_transaction("COMMIT")
        frame = self._transactions.pop()
        if self._transactions:
            parent = self._transactions[-1]
            for key, record in frame.records.items():
                parent.prior.setdefault(key, frame.prior[key])
                parent.records[key] = record
        else:
            for key, record in frame.records.items():
                if record is DELETED:
                    self._store.pop(key, None)
                else:
                    self._store[key] = record
        logger.debug("COMMIT of %d key(s), depth now %d",
                     len(frame.records), len(self._transactions))

    def commit_all(self):
        """Commit every open transaction down into the base store."""
        self._require_transaction("COMMIT")
        while self._transactions:
            self.commit()

    def recount(self):
        """Rebuild the value counts from the resolved state.

        Walks every frame, so it is only meant for checking the live index.
        """
        keys = set(self._store)
        for frame in self._transactions:
            keys.update(frame.records)
        counts = Counter()
        for key in keys:
            value = self._lookup(key)
            if value is not DELETED:
                counts[value] += 1
        return counts
