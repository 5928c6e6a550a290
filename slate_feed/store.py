import abc
import logging
import threading
from enum import Enum
from typing import (
    Any,
    AsyncGenerator,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from .document import BaseDocument
from .enums import FirestoreOperators, OrderByDirection
from .firestore_fields import FirestoreField
from .pydantic_compat import BaseModel, model_dump_compat

logger = logging.getLogger(__name__)

# Alias for the first element in order-by tuple
FieldType = Union[str, FirestoreField]
# Alias for field ordering tuples
FieldOrderType = Tuple[FieldType, OrderByDirection]
FilterType = Tuple[FieldType, Union[FirestoreOperators, str], Any]
OrderByType = Optional[
    Union[List[Union[FieldType, FieldOrderType]], Union[FieldType, FieldOrderType]]
]

DocT = TypeVar("DocT", bound=BaseDocument)

SnapshotCallback = Callable[[List[DocT]], None]
ErrorCallback = Callable[[BaseException], None]


def encode_value(value: Any) -> Any:
    """Convert models and enums to the plain values written to documents."""
    if isinstance(value, BaseModel):
        return model_dump_compat(value, by_alias=True, exclude_none=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    return value


def normalize_order_by(order_by: OrderByType) -> List[Tuple[str, OrderByDirection]]:
    """Turn the accepted ``order_by`` shapes into ``[(field, direction), ...]``."""
    if not order_by:
        return []
    if not isinstance(order_by, list):
        order_by = [order_by]
    normalized = []
    for order_by_field in order_by:
        if isinstance(order_by_field, tuple):
            field, direction = order_by_field
            normalized.append((str(field), OrderByDirection(str(direction))))
        else:
            normalized.append((str(order_by_field), OrderByDirection.ASCENDING))
    return normalized


def normalize_filters(filters: Optional[Iterable[FilterType]]) -> List[Tuple[str, str, Any]]:
    normalized = []
    for field, op, value in filters or []:
        op_string = op.value if isinstance(op, FirestoreOperators) else str(op)
        normalized.append((str(field), op_string, value))
    return normalized


def parse_documents(
    model_cls: Type[DocT], rows: Iterable[Tuple[str, Optional[Dict[str, Any]]]]
) -> List[DocT]:
    """
    Build models from ``(doc_id, data)`` rows, in order.

    A stored document that does not validate is logged and left out; the
    rest of the result is still returned.
    """
    documents = []
    for doc_id, data in rows:
        document = parse_document(model_cls, doc_id, data)
        if document is not None:
            documents.append(document)
    return documents


def parse_document(model_cls: Type[DocT], doc_id: str, data: Optional[Dict[str, Any]]) -> Optional[DocT]:
    try:
        return model_cls.from_document(doc_id, data)
    except ValueError as exc:
        logger.warning(
            f"Skipping invalid document {model_cls.get_collection_name()}/{doc_id}: {exc}"
        )
        return None


class Subscription:
    """
    Handle for a live query.

    ``unsubscribe`` may be called any number of times, from any exit path;
    the underlying listener is released exactly once. Also usable as a
    context manager.
    """

    def __init__(self, release: Callable[[], None]):
        self._release = release
        self._lock = threading.Lock()
        self.active = True

    def unsubscribe(self) -> None:
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class DocumentStore(abc.ABC):
    """
    Document database collaborator.

    Every method is keyed by a :class:`BaseDocument` subclass whose
    ``Settings.name`` selects the collection. Filters are
    ``(stored_field, operator, value)`` tuples, usually built from the
    model's field descriptors (``RSVP.post_id == post_id``).
    """

    @abc.abstractmethod
    async def insert(self, document: DocT) -> DocT:
        """
        Create ``document`` with a store-assigned id.

        The model's ``Settings.server_timestamps`` fields are written with the
        server clock; the returned copy carries the new id and timestamps.
        """

    @abc.abstractmethod
    async def update(
        self,
        model_cls: Type[BaseDocument],
        doc_id: str,
        changes: Dict[str, Any],
        touch: Iterable[str] = (),
    ) -> None:
        """Apply ``changes`` (stored field names) and stamp ``touch`` fields."""

    @abc.abstractmethod
    async def delete(self, model_cls: Type[BaseDocument], doc_id: str) -> None:
        ...

    @abc.abstractmethod
    async def get(self, model_cls: Type[DocT], doc_id: str) -> Optional[DocT]:
        ...

    @abc.abstractmethod
    def find(
        self,
        model_cls: Type[DocT],
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
        limit: Optional[int] = None,
    ) -> AsyncGenerator[DocT, None]:
        """Asynchronously yield the documents of a one-shot query."""

    @abc.abstractmethod
    async def count(self, model_cls: Type[BaseDocument], filters: Optional[List[FilterType]] = None) -> int:
        ...

    @abc.abstractmethod
    def subscribe(
        self,
        model_cls: Type[DocT],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
    ) -> Subscription:
        """
        Open a live query.

        ``on_snapshot`` receives the complete ordered result list after every
        matching change, one delivery at a time, until the returned
        subscription is released. ``on_error`` receives listener failures.
        """

    async def query(
        self,
        model_cls: Type[DocT],
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
        limit: Optional[int] = None,
    ) -> List[DocT]:
        results = [
            doc async for doc in self.find(model_cls, filters=filters, order_by=order_by, limit=limit)
        ]
        logger.debug(f"Query {model_cls.get_collection_name()}: {len(results)} documents")
        return results

    async def find_one(
        self,
        model_cls: Type[DocT],
        filters: Optional[List[FilterType]] = None,
        order_by: OrderByType = None,
    ) -> Optional[DocT]:
        """Return the first document matching filters, or None if no match."""
        async for obj in self.find(model_cls, filters=filters, order_by=order_by, limit=1):
            return obj
        return None
