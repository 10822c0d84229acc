# store.py
"""
Document store used by the app: three collections with create, point read,
update, equality-filtered query and live subscription.

``MemoryStore`` keeps everything in process and is the default. ``MongoStore``
talks to a hosted MongoDB through pymongo.
"""
import copy
import threading
import uuid
from abc import ABC, abstractmethod

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from errors import StoreError
from logger import get_logger

log = get_logger("store")

ORGANIZATIONS = "organizations"
SUBMISSIONS = "submissions"
TECHNICAL_REVIEWERS = "technical_reviewers"

COLLECTIONS = (ORGANIZATIONS, SUBMISSIONS, TECHNICAL_REVIEWERS)


def _matches(doc, filters):
    return all(doc.get(k) == v for k, v in (filters or {}).items())


def _check_collection(name):
    if name not in COLLECTIONS:
        raise StoreError(f"Coleção desconhecida: {name}")


class Subscription:
    """
    Handle returned by ``Store.subscribe``. ``close()`` stops delivery; it is
    idempotent and also runs on leaving a ``with`` block.
    """

    def __init__(self, on_close=None):
        self._on_close = on_close
        self.closed = False

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._on_close:
            self._on_close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class Store(ABC):
    @abstractmethod
    def create(self, collection, data):
        """Insert ``data`` and return the new document id."""

    @abstractmethod
    def get(self, collection, doc_id):
        """Return the document with ``id`` set, or None."""

    @abstractmethod
    def update(self, collection, doc_id, changes):
        """Merge ``changes`` into an existing document."""

    @abstractmethod
    def query(self, collection, filters=None):
        """Return every document whose fields equal ``filters``."""

    @abstractmethod
    def subscribe(self, collection, filters, callback):
        """
        Call ``callback(docs)`` with the current matching documents now and
        again after every change to the collection. Returns a Subscription.
        """


class MemoryStore(Store):
    def __init__(self):
        self._lock = threading.RLock()
        self._data = {name: {} for name in COLLECTIONS}
        self._listeners = {name: [] for name in COLLECTIONS}

    def _snapshot(self, collection, filters):
        return [
            dict(copy.deepcopy(doc), id=doc_id)
            for doc_id, doc in self._data[collection].items()
            if _matches(doc, filters)
        ]

    def _notify(self, collection):
        with self._lock:
            listeners = list(self._listeners[collection])
            snapshots = [(cb, self._snapshot(collection, f)) for f, cb in listeners]
        for cb, docs in snapshots:
            try:
                cb(docs)
            except Exception:
                log.exception("Subscriber on %s failed", collection)

    def create(self, collection, data):
        _check_collection(collection)
        doc = {k: v for k, v in copy.deepcopy(dict(data)).items() if k != "id"}
        doc_id = uuid.uuid4().hex
        with self._lock:
            self._data[collection][doc_id] = doc
        self._notify(collection)
        return doc_id

    def get(self, collection, doc_id):
        _check_collection(collection)
        with self._lock:
            doc = self._data[collection].get(doc_id)
            return None if doc is None else dict(copy.deepcopy(doc), id=doc_id)

    def update(self, collection, doc_id, changes):
        _check_collection(collection)
        with self._lock:
            doc = self._data[collection].get(doc_id)
            if doc is None:
                raise StoreError(f"Documento {doc_id} não existe em {collection}")
            doc.update({k: v for k, v in copy.deepcopy(dict(changes)).items() if k != "id"})
        self._notify(collection)

    def query(self, collection, filters=None):
        _check_collection(collection)
        with self._lock:
            return self._snapshot(collection, filters)

    def subscribe(self, collection, filters, callback):
        _check_collection(collection)
        entry = (dict(filters or {}), callback)
        with self._lock:
            self._listeners[collection].append(entry)
            docs = self._snapshot(collection, filters)

        def _remove():
            with self._lock:
                if entry in self._listeners[collection]:
                    self._listeners[collection].remove(entry)

        callback(docs)
        return Subscription(_remove)


class MongoStore(Store):
    def __init__(self, uri, db_name, client=None):
        self._client = client or MongoClient(uri)
        self._db = self._client[db_name]

    @staticmethod
    def _out(doc):
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    @staticmethod
    def _oid(doc_id):
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            return None

    def create(self, collection, data):
        _check_collection(collection)
        doc = {k: v for k, v in dict(data).items() if k != "id"}
        try:
            result = self._db[collection].insert_one(doc)
        except PyMongoError as exc:
            log.error("insert into %s failed: %s", collection, exc)
            raise StoreError() from exc
        return str(result.inserted_id)

    def get(self, collection, doc_id):
        _check_collection(collection)
        oid = self._oid(doc_id)
        if oid is None:
            return None
        try:
            doc = self._db[collection].find_one({"_id": oid})
        except PyMongoError as exc:
            log.error("read from %s failed: %s", collection, exc)
            raise StoreError() from exc
        return None if doc is None else self._out(doc)

    def update(self, collection, doc_id, changes):
        _check_collection(collection)
        oid = self._oid(doc_id)
        if oid is None:
            raise StoreError(f"Documento {doc_id} não existe em {collection}")
        fields = {k: v for k, v in dict(changes).items() if k != "id"}
        try:
            result = self._db[collection].update_one({"_id": oid}, {"$set": fields})
        except PyMongoError as exc:
            log.error("update on %s failed: %s", collection, exc)
            raise StoreError() from exc
        if result.matched_count == 0:
            raise StoreError(f"Documento {doc_id} não existe em {collection}")

    def query(self, collection, filters=None):
        _check_collection(collection)
        try:
            return [self._out(d) for d in self._db[collection].find(dict(filters or {}))]
        except PyMongoError as exc:
            log.error("query on %s failed: %s", collection, exc)
            raise StoreError() from exc

    def subscribe(self, collection, filters, callback):
        """
        Live query backed by a change stream (requires a replica set, as on
        Atlas). Each change re-runs the query and delivers the full snapshot.
        """
        _check_collection(collection)
        filters = dict(filters or {})
        stop = threading.Event()
        try:
            stream = self._db[collection].watch(full_document="updateLookup")
        except PyMongoError as exc:
            log.error("cannot watch %s: %s", collection, exc)
            raise StoreError() from exc

        def _run():
            try:
                while not stop.is_set() and stream.alive:
                    change = stream.try_next()
                    if change is None:
                        stop.wait(0.2)
                        continue
                    callback(self.query(collection, filters))
            except (PyMongoError, StoreError) as exc:
                if not stop.is_set():
                    log.error("change stream on %s stopped: %s", collection, exc)
            finally:
                stream.close()

        callback(self.query(collection, filters))
        worker = threading.Thread(target=_run, name=f"watch-{collection}", daemon=True)
        worker.start()

        def _stop():
            stop.set()
            worker.join(timeout=2)

        return Subscription(_stop)


def get_store(settings):
    if settings.MONGO_URI:
        log.info("Using MongoDB store (%s)", settings.MONGO_DB)
        return MongoStore(settings.MONGO_URI, settings.MONGO_DB)
    log.info("AXION_MONGO_URI not set, using in-memory store")
    return MemoryStore()
