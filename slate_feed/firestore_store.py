import asyncio
import logging
from contextlib import contextmanager
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional, Type

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_document import DocumentSnapshot
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.collection import CollectionReference
from google.cloud.firestore_v1.watch import Watch

from .document import BaseDocument
from .errors import RemoteOperationFailed
from .firestore_client import FirestoreDB
from .store import (
    DocT,
    DocumentStore,
    ErrorCallback,
    FilterType,
    OrderByType,
    SnapshotCallback,
    Subscription,
    encode_value,
    normalize_filters,
    normalize_order_by,
    parse_document,
    parse_documents,
)

logger = logging.getLogger(__name__)

_REMOTE_ERRORS = (GoogleAPIError, GoogleAuthError)


@contextmanager
def _remote_call(description: str):
    """Convert SDK failures into :class:`RemoteOperationFailed`, message intact."""
    try:
        yield
    except _REMOTE_ERRORS as exc:
        logger.error(f"Firestore {description} failed: {exc}")
        raise RemoteOperationFailed(str(exc)) from exc


class _WatchListener:
    """
    Snapshot callback handed to the watch.

    Runs on the watch's background thread and hands every delivery to the
    event loop that opened the subscription, in arrival order. Nothing is
    delivered once the subscription is released.
    """

    def __init__(
        self,
        model_cls: Type[BaseDocument],
        subscription: Subscription,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback],
    ):
        self.model_cls = model_cls
        self.subscription = subscription
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        try:
            self.loop = asyncio.get_running_loop()
        except RuntimeError:
            self.loop = None

    def __call__(self, doc_snapshots, changes, read_time) -> None:
        documents = parse_documents(
            self.model_cls, ((snap.id, snap.to_dict()) for snap in doc_snapshots)
        )
        self._deliver(self.on_snapshot, documents)

    def fail(self, reason: Any) -> None:
        """Report the end of the watch stream."""
        logger.error(f"Listener on {self.model_cls.get_collection_name()} stopped: {reason}")
        if self.on_error is None:
            return
        error = RemoteOperationFailed(str(reason))
        if isinstance(reason, BaseException):
            error.__cause__ = reason
        self._deliver(self.on_error, error)

    def _run_if_active(self, callback, *args) -> None:
        if self.subscription.active:
            callback(*args)

    def _deliver(self, callback, *args) -> None:
        if self.loop is None:
            self._run_if_active(callback, *args)
        elif not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._run_if_active, callback, *args)


class _ReportingWatch(Watch):
    """
    Watch that reports why its stream ended.

    The SDK ends a failed stream by calling ``close(reason)`` on a thread of
    its own and raising the reason there, where nobody sees it. Here the
    reason goes to the listener's ``fail`` instead.
    """

    def close(self, reason=None):
        # Cleared by the first close; a second close reports nothing.
        listener = self._snapshot_callback
        super().close()
        if reason is not None and isinstance(listener, _WatchListener):
            listener.fail(reason)


class FirestoreStore(DocumentStore):
    """
    :class:`DocumentStore` backed by Cloud Firestore.

    One-shot reads and writes go through the ``AsyncClient``; live queries use
    a watch on the synchronous client, whose callbacks arrive on
    a background thread and are handed to the subscriber's event loop in
    arrival order.
    """

    def __init__(self, db: FirestoreDB):
        self._db = db

    @property
    def db(self) -> FirestoreDB:
        return self._db

    # --------------------------------------------------------------------------
    # CRUD operations
    # --------------------------------------------------------------------------
    async def insert(self, document: DocT) -> DocT:
        collection_name = document.get_collection_name()
        data = document.to_document()
        stamps = document.server_timestamp_fields()
        for field_name in stamps:
            data[field_name] = SERVER_TIMESTAMP

        with _remote_call(f"insert into {collection_name}"):
            doc_ref = self._db.client.collection(collection_name).document()
            write_result = await doc_ref.set(data)

        written_at = getattr(write_result, "update_time", None)
        stored = document.to_document()
        stored.update({field_name: written_at for field_name in stamps})
        logger.debug(f"Insert: {collection_name} - id={doc_ref.id}")
        return type(document).from_document(doc_ref.id, stored)

    async def update(
        self,
        model_cls: Type[BaseDocument],
        doc_id: str,
        changes: Dict[str, Any],
        touch: Iterable[str] = (),
    ) -> None:
        if not doc_id:
            raise ValueError("Cannot update a document without an ID.")
        collection_name = model_cls.get_collection_name()
        updates = {field_name: encode_value(value) for field_name, value in changes.items()}
        for field_name in touch:
            updates[field_name] = SERVER_TIMESTAMP

        logger.debug(f"Update: {collection_name} - id={doc_id}, updates={updates}")
        with _remote_call(f"update of {collection_name}/{doc_id}"):
            doc_ref = self._db.client.collection(collection_name).document(doc_id)
            await doc_ref.update(updates)

    async def delete(self, model_cls: Type[BaseDocument], doc_id: str) -> None:
        if not doc_id:
            raise ValueError("Cannot delete a document without an ID.")
        collection_name = model_cls.get_collection_name()
        with _remote_call(f"delete of {collection_name}/{doc_id}"):
            doc_ref = self._db.client.collection(collection_name).document(doc_id)
            await doc_ref.delete()

    async def get(self, model_cls: Type[DocT], doc_id: str) -> Optional[DocT]:
        collection_name = model_cls.get_collection_name()
        with _remote_call(f"get of {collection_name}/{doc_id}"):
            doc_ref = self._db.client.collection(collection_name).document(doc_id)
            doc_snap = await doc_ref.get()

        if doc_snap.exists:
            return model_cls.from_document(doc_snap.id, doc_snap.to_dict())
        return None

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------
    async def count(self, model_cls: Type[BaseDocument], filters: Optional[List[FilterType]] = None) -> int:
        """
        Return the number of documents matching the given filters.
        If the SDK does not support .count(), a manual approach is used.
        """
        with _remote_call(f"count of {model_cls.get_collection_name()}"):
            query = self._build_query(self._db.client, model_cls, filters=filters)
            try:
                count_snapshot = await query.count().get()
                return count_snapshot[0][0].value
            except AttributeError:
                logger.warning("Firestore: Performing count by fetching all items with empty select")
                docs = await query.select([]).get()
                return len(docs)

    async def find(
        self,
        model_cls: Type[DocT],
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
        limit: Optional[int] = None,
    ) -> AsyncGenerator[DocT, None]:
        with _remote_call(f"query of {model_cls.get_collection_name()}"):
            query = self._build_query(
                self._db.client, model_cls, filters=filters, order_by=order_by, limit=limit
            )
            async for doc in query.stream():
                document = parse_document(model_cls, doc.id, doc.to_dict())
                if document is not None:
                    yield document

    # --------------------------------------------------------------------------
    # Live queries
    # --------------------------------------------------------------------------
    def subscribe(
        self,
        model_cls: Type[DocT],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
    ) -> Subscription:
        watch = None

        def release() -> None:
            if watch is not None:
                watch.unsubscribe()

        subscription = Subscription(release)
        listener = _WatchListener(model_cls, subscription, on_snapshot, on_error)

        with _remote_call(f"listen on {model_cls.get_collection_name()}"):
            query = self._build_query(
                self._db.watch_client, model_cls, filters=filters, order_by=order_by
            )
            if isinstance(query, CollectionReference):
                # Watches take a query; an unfiltered collection is the query for all of it.
                query = query._query()
            watch = _ReportingWatch.for_query(query, listener, DocumentSnapshot)
        return subscription

    # --------------------------------------------------------------------------
    # Internal query builder
    # --------------------------------------------------------------------------
    @staticmethod
    def _build_query(
        client,
        model_cls: Type[BaseDocument],
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
        limit: Optional[int] = None,
    ):
        """Build a Firestore query applying filters, ordering and limit."""
        query = client.collection(model_cls.get_collection_name())

        for field_name, op_string, value in normalize_filters(filters):
            query = query.where(filter=FieldFilter(field_name, op_string, encode_value(value)))

        for field_name, direction in normalize_order_by(order_by):
            query = query.order_by(field_name, direction=str(direction))

        if limit is not None:
            query = query.limit(limit)
        return query
