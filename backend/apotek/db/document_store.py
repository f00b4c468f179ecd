"""
Document store over SQLAlchemy.

Records are plain dicts grouped in named collections. Reads return the
record with its "id" merged in; writes strip "id" before storing.

Two multi-document primitives:

- run_atomic(body): body reads and writes through an AtomicTransaction.
  Writes are staged and committed together, conditional on every document
  the body read still having the version it had when read. A conflicting
  commit re-runs the whole body against fresh state.
- run_batch(body): body stages blind writes on a WriteBatch, committed
  all-or-nothing. No reads, no retry.

Subscribers get a snapshot of a collection on subscribe and again after
every commit that touches it.
"""
import logging
import random
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from apotek.core.config import settings
from apotek.core.exceptions import (
    AtomicRetryExhausted,
    DocumentNotFound,
    StoreConflict,
)
from apotek.db.init_db import init_db
from apotek.db.session import build_engine, build_sessionmaker
from apotek.models.document import Document

logger = logging.getLogger(__name__)

T = TypeVar("T")
Record = Dict[str, Any]
Predicate = Callable[[Record], bool]
Key = Tuple[str, str]

# Marks a document the atomic body wrote without reading first
_UNREAD = object()


def new_id() -> str:
    return uuid.uuid4().hex[:20]


def where_equals(**fields) -> Predicate:
    """Predicate matching records whose fields equal the given values."""
    def predicate(record: Record) -> bool:
        return all(record.get(name) == value for name, value in fields.items())
    return predicate


def _as_record(document_id: str, data: Dict[str, Any]) -> Record:
    return {"id": document_id, **data}


def _strip_id(record: Record) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k != "id"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_value(value):
    # None sorts last regardless of direction of the other values
    return (value is None, value if value is not None else "")


class AtomicTransaction:
    """Read/write handle passed to a run_atomic body. Valid for one attempt."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._read_versions: Dict[Key, Optional[int]] = {}
        self._read_data: Dict[Key, Optional[Dict[str, Any]]] = {}
        self._staged: Dict[Key, Tuple[str, Optional[Dict[str, Any]]]] = {}

    def read(self, collection: str, document_id: str) -> Optional[Record]:
        key = (collection, document_id)
        # Read-your-writes
        if key in self._staged:
            op, data = self._staged[key]
            return None if op == "delete" else _as_record(document_id, dict(data))

        if key not in self._read_versions:
            row = self._store._fetch(collection, document_id)
            self._read_versions[key] = row[0] if row else None
            self._read_data[key] = row[1] if row else None

        data = self._read_data[key]
        return None if data is None else _as_record(document_id, dict(data))

    def write(self, collection: str, document_id: str, record: Record):
        self._staged[(collection, document_id)] = ("set", _strip_id(record))

    def patch(self, collection: str, document_id: str, partial: Record):
        current = self.read(collection, document_id)
        if current is None:
            raise DocumentNotFound(collection, document_id)
        merged = {**_strip_id(current), **_strip_id(partial)}
        self._staged[(collection, document_id)] = ("set", merged)

    def delete(self, collection: str, document_id: str):
        self._staged[(collection, document_id)] = ("delete", None)


class WriteBatch:
    """Blind writes staged for one all-or-nothing commit."""

    def __init__(self):
        self._ops: List[Tuple[str, str, str, Optional[Dict[str, Any]]]] = []

    def set(self, collection: str, document_id: str, record: Record):
        self._ops.append(("set", collection, document_id, _strip_id(record)))

    def update(self, collection: str, document_id: str, partial: Record):
        self._ops.append(("update", collection, document_id, _strip_id(partial)))

    def delete(self, collection: str, document_id: str):
        self._ops.append(("delete", collection, document_id, None))

    def __len__(self):
        return len(self._ops)


class _Subscription:
    def __init__(self, collection, on_change, on_error, predicate, order_by, descending):
        self.collection = collection
        self.on_change = on_change
        self.on_error = on_error
        self.predicate = predicate
        self.order_by = order_by
        self.descending = descending


class DocumentStore:
    def __init__(self, engine: Engine, max_attempts: Optional[int] = None):
        self.engine = engine
        self.SessionLocal = build_sessionmaker(engine)
        self.max_attempts = max_attempts or settings.ATOMIC_MAX_ATTEMPTS
        self._subscriptions: List[_Subscription] = []
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, url: Optional[str] = None, max_attempts: Optional[int] = None) -> "DocumentStore":
        engine = build_engine(url)
        init_db(engine)
        return cls(engine, max_attempts=max_attempts)

    # ---- single-document operations ----

    def _fetch(self, collection: str, document_id: str) -> Optional[Tuple[int, Dict[str, Any]]]:
        with self.SessionLocal() as session:
            doc = session.get(Document, (collection, document_id))
            if doc is None:
                return None
            return doc.version, dict(doc.data)

    def read_document(self, collection: str, document_id: str) -> Optional[Record]:
        row = self._fetch(collection, document_id)
        return None if row is None else _as_record(document_id, row[1])

    def add_document(self, collection: str, record: Record) -> str:
        document_id = new_id()
        self.write_document(collection, document_id, record)
        return document_id

    def write_document(self, collection: str, document_id: str, record: Record):
        self.run_batch(lambda batch: batch.set(collection, document_id, record))

    def patch_document(self, collection: str, document_id: str, partial: Record):
        self.run_batch(lambda batch: batch.update(collection, document_id, partial))

    def delete_document(self, collection: str, document_id: str):
        self.run_batch(lambda batch: batch.delete(collection, document_id))

    def query_documents(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Record]:
        """All records of a collection, in creation order unless order_by is given."""
        with self.SessionLocal() as session:
            rows = session.execute(
                select(Document.id, Document.data)
                .where(Document.collection == collection)
                .order_by(Document.created_at, Document.id)
            ).all()

        records = [_as_record(doc_id, dict(data)) for doc_id, data in rows]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        if order_by:
            records.sort(key=lambda r: _sort_value(r.get(order_by)), reverse=descending)
        return records

    # ---- multi-document operations ----

    def run_atomic(self, body: Callable[[AtomicTransaction], T]) -> T:
        """
        Run body as one atomic unit, retrying on concurrent modification.

        Exceptions raised by body abort the attempt (nothing staged is
        committed) and propagate unchanged. Only StoreConflict is retried.
        """
        for attempt in range(1, self.max_attempts + 1):
            txn = AtomicTransaction(self)
            result = body(txn)
            try:
                touched = self._commit_atomic(txn)
            except StoreConflict as exc:
                logger.warning(f"Atomic commit conflict on {exc.collection}/{exc.document_id} (attempt {attempt}/{self.max_attempts})")
                time.sleep(random.uniform(0, 0.005 * attempt))
                continue
            self._notify(touched)
            return result

        logger.error(f"Atomic operation gave up after {self.max_attempts} attempts")
        raise AtomicRetryExhausted(self.max_attempts)

    def _commit_atomic(self, txn: AtomicTransaction) -> set:
        if not txn._staged:
            return set()

        session = self.SessionLocal()
        current_key: Key = ("", "")
        try:
            for key, (op, data) in txn._staged.items():
                current_key = key
                expected = txn._read_versions.get(key, _UNREAD)
                if op == "set":
                    self._set_checked(session, key, data, expected)
                else:
                    self._delete_checked(session, key, expected)

            # Documents only read must be unchanged as well
            for key, expected in txn._read_versions.items():
                if key in txn._staged:
                    continue
                current_key = key
                collection, document_id = key
                current = session.execute(
                    select(Document.version)
                    .where(Document.collection == collection, Document.id == document_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if current != expected:
                    raise StoreConflict(collection, document_id)

            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise StoreConflict(*current_key) from exc
        except OperationalError as exc:
            session.rollback()
            if "locked" in str(exc).lower():
                raise StoreConflict(*current_key) from exc
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        return {collection for collection, _ in txn._staged}

    def _set_checked(self, session: Session, key: Key, data, expected):
        collection, document_id = key
        if expected is _UNREAD:
            self._upsert(session, collection, document_id, data)
        elif expected is None:
            # Read as missing: a concurrent insert surfaces as IntegrityError
            session.add(Document(collection=collection, id=document_id, data=data, version=1))
            session.flush()
        else:
            result = session.execute(
                update(Document)
                .where(
                    Document.collection == collection,
                    Document.id == document_id,
                    Document.version == expected,
                )
                .values(data=data, version=expected + 1, updated_at=_utcnow())
            )
            if result.rowcount != 1:
                raise StoreConflict(collection, document_id)

    def _delete_checked(self, session: Session, key: Key, expected):
        collection, document_id = key
        stmt = delete(Document).where(Document.collection == collection, Document.id == document_id)
        if expected is _UNREAD:
            session.execute(stmt)
        elif expected is None:
            if session.execute(stmt).rowcount:
                raise StoreConflict(collection, document_id)
        else:
            if session.execute(stmt.where(Document.version == expected)).rowcount != 1:
                raise StoreConflict(collection, document_id)

    def _upsert(self, session: Session, collection: str, document_id: str, data):
        doc = session.get(Document, (collection, document_id))
        if doc is None:
            session.add(Document(collection=collection, id=document_id, data=data, version=1))
            session.flush()
        else:
            doc.data = data
            doc.version = doc.version + 1
            doc.updated_at = _utcnow()
            session.flush()

    def run_batch(self, body: Callable[[WriteBatch], Any]):
        """Stage writes with body, then commit them all or none."""
        batch = WriteBatch()
        body(batch)
        if not batch:
            return

        touched = set()
        with self.SessionLocal() as session:
            try:
                for op, collection, document_id, data in batch._ops:
                    touched.add(collection)
                    if op == "set":
                        self._upsert(session, collection, document_id, data)
                    elif op == "update":
                        doc = session.get(Document, (collection, document_id))
                        if doc is None:
                            raise DocumentNotFound(collection, document_id)
                        doc.data = {**doc.data, **data}
                        doc.version = doc.version + 1
                        doc.updated_at = _utcnow()
                        session.flush()
                    else:
                        session.execute(
                            delete(Document).where(
                                Document.collection == collection,
                                Document.id == document_id,
                            )
                        )
                session.commit()
            except Exception:
                session.rollback()
                raise

        self._notify(touched)

    # ---- subscriptions ----

    def subscribe(
        self,
        collection: str,
        on_change: Callable[[List[Record]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        predicate: Optional[Predicate] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """
        Watch a collection. on_change gets the current snapshot now and a
        fresh one after every commit touching the collection.

        Returns a function that cancels the subscription.
        """
        sub = _Subscription(collection, on_change, on_error, predicate, order_by, descending)
        with self._lock:
            self._subscriptions.append(sub)
        self._deliver(sub)

        def unsubscribe():
            with self._lock:
                if sub in self._subscriptions:
                    self._subscriptions.remove(sub)

        return unsubscribe

    def _notify(self, collections):
        if not collections:
            return
        with self._lock:
            targets = [s for s in self._subscriptions if s.collection in collections]
        for sub in targets:
            self._deliver(sub)

    def _deliver(self, sub: _Subscription):
        try:
            snapshot = self.query_documents(sub.collection, sub.predicate, sub.order_by, sub.descending)
        except Exception as exc:
            if sub.on_error is None:
                logger.exception(f"Snapshot of {sub.collection} failed")
            else:
                sub.on_error(exc)
            return
        try:
            sub.on_change(snapshot)
        except Exception:
            logger.exception(f"Subscriber on {sub.collection} raised")
