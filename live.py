# live.py
import threading

from logger import get_logger

log = get_logger("live")


class LiveQuery:
    """Latest snapshot of a store subscription, with a change counter."""

    def __init__(self, store, collection, filters=None):
        self._lock = threading.Lock()
        self._docs = []
        self.version = 0
        self._sub = store.subscribe(collection, filters, self._on_snapshot)

    def _on_snapshot(self, docs):
        with self._lock:
            self._docs = list(docs)
            self.version += 1

    def snapshot(self):
        with self._lock:
            return list(self._docs)

    @property
    def closed(self):
        return self._sub.closed

    def close(self):
        self._sub.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def live_key(collection, filters=None):
    items = ",".join(f"{k}={v}" for k, v in sorted((filters or {}).items()))
    return f"{collection}?{items}"


class LiveRegistry:
    """
    Shares one LiveQuery per (collection, filters) between the views showing
    it. The subscription is closed when the last view releases it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries = {}

    def acquire(self, store, collection, filters=None):
        key = live_key(collection, filters)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = [LiveQuery(store, collection, filters), 0]
                self._entries[key] = entry
                log.debug("Opened live query %s", key)
            entry[1] += 1
            return key, entry[0]

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            return entry[0] if entry else None

    def release(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] > 0:
                return
            del self._entries[key]
        entry[0].close()
        log.debug("Closed live query %s", key)

    def refcount(self, key):
        with self._lock:
            entry = self._entries.get(key)
            return entry[1] if entry else 0

    def close_all(self):
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for query, _ in entries:
            query.close()
