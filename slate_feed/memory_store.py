import asyncio
import copy
import itertools
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Callable, Dict, Iterable, List, Optional, Tuple, Type

from google.cloud.firestore_v1.field_path import FieldPath

from .document import BaseDocument
from .enums import FirestoreOperators, OrderByDirection
from .errors import RemoteOperationFailed
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

_DOCUMENT_ID = FieldPath.document_id()
_MISSING = object()

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _resolve(doc_id: str, data: Dict[str, Any], field_path: str) -> Any:
    if field_path == _DOCUMENT_ID:
        return doc_id
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches(value: Any, op: str, expected: Any) -> bool:
    if value is _MISSING:
        return False
    try:
        if op == FirestoreOperators.EQ.value:
            return value == expected
        if op == FirestoreOperators.NE.value:
            return value != expected
        if op == FirestoreOperators.LT.value:
            return value < expected
        if op == FirestoreOperators.LTE.value:
            return value <= expected
        if op == FirestoreOperators.GT.value:
            return value > expected
        if op == FirestoreOperators.GTE.value:
            return value >= expected
    except TypeError:
        return False
    if op == FirestoreOperators.IN.value:
        return value in expected
    if op == FirestoreOperators.NOT_IN.value:
        return value not in expected
    if op == FirestoreOperators.ARRAY_CONTAINS.value:
        return isinstance(value, list) and expected in value
    if op == FirestoreOperators.ARRAY_CONTAINS_ANY.value:
        return isinstance(value, list) and any(item in value for item in expected)
    raise ValueError(f"Unsupported filter operator: {op}")


class _Listener:
    def __init__(self, model_cls, filters, order_by, on_snapshot, on_error):
        self.model_cls = model_cls
        self.filters = filters
        self.order_by = order_by
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        # Writes are not delivered until the initial snapshot has been.
        self.primed = False


class InMemoryStore(DocumentStore):
    """
    Dict-backed :class:`DocumentStore` for tests, demos and local runs.

    * Ids are random, like Firestore auto-ids.
    * Server timestamps come from a logical clock that advances on every
      write, so ``createdAt`` ordering is strict and deterministic.
    * Every operation yields to the event loop once before touching data, so
      concurrent workflows interleave the way they do against a remote store.
    * Live listeners get their first snapshot on the next loop iteration and
      then one complete snapshot synchronously after each matching write.

    ``fail_next`` and ``fail_subscriptions`` inject backend failures.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._listeners: Dict[str, List[_Listener]] = defaultdict(list)
        self._ticks = itertools.count(1)
        self._failures: List[BaseException] = []
        self._subscription_failure: Optional[BaseException] = None
        self._fail_on_establish = False

    # --------------------------------------------------------------------------
    # Failure injection
    # --------------------------------------------------------------------------
    def fail_next(self, exc: Optional[BaseException] = None, times: int = 1) -> None:
        """Make the next ``times`` operations raise ``exc``."""
        exc = exc or RemoteOperationFailed("Missing or insufficient permissions.")
        self._failures.extend([exc] * times)

    def fail_subscriptions(self, exc: Optional[BaseException] = None, on_establish: bool = False) -> None:
        """
        Make new listeners fail: with ``on_establish`` the ``subscribe`` call
        raises, otherwise ``on_error`` is called in place of the first snapshot.
        """
        self._subscription_failure = exc or RemoteOperationFailed("Project not found or not configured.")
        self._fail_on_establish = on_establish

    async def _enter(self) -> None:
        await asyncio.sleep(0)
        if self._failures:
            raise self._failures.pop(0)

    # --------------------------------------------------------------------------
    # Introspection helpers
    # --------------------------------------------------------------------------
    def documents(self, model_cls: Type[BaseDocument]) -> Dict[str, Dict[str, Any]]:
        """Raw stored documents of a collection, keyed by id."""
        return copy.deepcopy(self._collections[model_cls.get_collection_name()])

    def write_raw(self, model_cls: Type[BaseDocument], doc_id: str, data: Dict[str, Any]) -> None:
        """Store ``data`` unvalidated, as another client might have written it."""
        collection_name = model_cls.get_collection_name()
        self._collections[collection_name][doc_id] = copy.deepcopy(data)
        self._notify(collection_name)

    def listener_count(self, model_cls: Type[BaseDocument]) -> int:
        return len(self._listeners[model_cls.get_collection_name()])

    def _now(self) -> datetime:
        return _EPOCH + timedelta(milliseconds=next(self._ticks))

    # --------------------------------------------------------------------------
    # CRUD operations
    # --------------------------------------------------------------------------
    async def insert(self, document: DocT) -> DocT:
        await self._enter()
        collection_name = document.get_collection_name()
        data = document.to_document()
        now = self._now()
        for field_name in document.server_timestamp_fields():
            data[field_name] = now

        doc_id = uuid.uuid4().hex[:20]
        self._collections[collection_name][doc_id] = data
        logger.debug(f"Insert: {collection_name} - id={doc_id}")
        self._notify(collection_name)
        return type(document).from_document(doc_id, copy.deepcopy(data))

    async def update(
        self,
        model_cls: Type[BaseDocument],
        doc_id: str,
        changes: Dict[str, Any],
        touch: Iterable[str] = (),
    ) -> None:
        if not doc_id:
            raise ValueError("Cannot update a document without an ID.")
        await self._enter()
        collection_name = model_cls.get_collection_name()
        data = self._collections[collection_name].get(doc_id)
        if data is None:
            raise RemoteOperationFailed(f"No document to update: {collection_name}/{doc_id}")

        data.update({field_name: encode_value(value) for field_name, value in changes.items()})
        touch = list(touch)
        if touch:
            now = self._now()
            for field_name in touch:
                data[field_name] = now
        logger.debug(f"Update: {collection_name} - id={doc_id}, updates={changes}")
        self._notify(collection_name)

    async def delete(self, model_cls: Type[BaseDocument], doc_id: str) -> None:
        if not doc_id:
            raise ValueError("Cannot delete a document without an ID.")
        await self._enter()
        collection_name = model_cls.get_collection_name()
        # Deleting a missing document succeeds, as in Firestore.
        if self._collections[collection_name].pop(doc_id, None) is not None:
            self._notify(collection_name)

    async def get(self, model_cls: Type[DocT], doc_id: str) -> Optional[DocT]:
        await self._enter()
        data = self._collections[model_cls.get_collection_name()].get(doc_id)
        if data is None:
            return None
        return model_cls.from_document(doc_id, copy.deepcopy(data))

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------
    async def count(self, model_cls: Type[BaseDocument], filters: Optional[List[FilterType]] = None) -> int:
        await self._enter()
        return len(self._run_query(model_cls.get_collection_name(), normalize_filters(filters), []))

    async def find(
        self,
        model_cls: Type[DocT],
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
        limit: Optional[int] = None,
    ) -> AsyncGenerator[DocT, None]:
        await self._enter()
        rows = self._run_query(
            model_cls.get_collection_name(),
            normalize_filters(filters),
            normalize_order_by(order_by),
            limit,
        )
        for doc_id, data in rows:
            document = parse_document(model_cls, doc_id, data)
            if document is not None:
                yield document

    def _run_query(
        self,
        collection_name: str,
        filters: List[Tuple[str, str, Any]],
        order_by: List[Tuple[str, OrderByDirection]],
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Dict[str, Any]]]:
        rows = [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._collections[collection_name].items()
            if all(
                _matches(_resolve(doc_id, data, field_name), op, encode_value(value))
                for field_name, op, value in filters
            )
        ]
        # Documents without an ordering field are left out, as in Firestore.
        rows = [
            row for row in rows
            if all(_resolve(row[0], row[1], field_name) is not _MISSING for field_name, _ in order_by)
        ]
        rows.sort(key=lambda row: row[0])
        for field_name, direction in reversed(order_by):
            rows.sort(
                key=lambda row: _resolve(row[0], row[1], field_name),
                reverse=direction == OrderByDirection.DESCENDING,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows

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
        collection_name = model_cls.get_collection_name()
        failure = self._subscription_failure
        if failure is not None and self._fail_on_establish:
            raise failure

        listener = _Listener(
            model_cls,
            normalize_filters(filters),
            normalize_order_by(order_by),
            on_snapshot,
            on_error,
        )
        self._listeners[collection_name].append(listener)

        def release() -> None:
            if listener in self._listeners[collection_name]:
                self._listeners[collection_name].remove(listener)

        subscription = Subscription(release)

        def first_delivery() -> None:
            if not subscription.active:
                return
            if failure is not None:
                release()
                if on_error is not None:
                    on_error(failure)
                return
            listener.primed = True
            self._deliver(collection_name, listener)

        self._schedule(first_delivery)
        return subscription

    @staticmethod
    def _schedule(callback: Callable[[], None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback()
            return
        loop.call_soon(callback)

    def _deliver(self, collection_name: str, listener: _Listener) -> None:
        rows = self._run_query(collection_name, listener.filters, listener.order_by)
        documents = parse_documents(listener.model_cls, rows)
        listener.on_snapshot(documents)

    def _notify(self, collection_name: str) -> None:
        for listener in list(self._listeners[collection_name]):
            if not listener.primed:
                continue
            # The write has landed; a listener failure is logged, not raised to the writer.
            try:
                self._deliver(collection_name, listener)
            except Exception:
                logger.exception(f"Listener on {collection_name} failed")
