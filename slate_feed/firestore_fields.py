from typing import Any, Iterable, Tuple

from .enums import FirestoreOperators

FilterTuple = Tuple[str, FirestoreOperators, Any]


class FirestoreField:
    """
    Class-level handle on one stored field, used to build store filters.

    >>> SavedPost.user_id == "uid-1"
    ('userId', FirestoreOperators.EQ, 'uid-1')
    >>> str(Post.created_at)
    'createdAt'

    ``stored_name`` is what the document holds (the camelCase alias);
    ``attribute`` is the python field it was installed for. On instances
    the pydantic value wins, so ``post.created_at`` is still a datetime.
    """

    def __init__(self, stored_name: str, attribute: str = ""):
        self.stored_name = stored_name
        self.attribute = attribute or stored_name

    @property
    def field_name(self) -> str:
        return self.stored_name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.__dict__.get(self.attribute)

    def __str__(self) -> str:
        return self.stored_name

    def __repr__(self) -> str:
        return f"FirestoreField({self.stored_name!r})"

    def __hash__(self) -> int:
        return hash(self.stored_name)

    def _filter(self, op: FirestoreOperators, value: Any) -> FilterTuple:
        return (self.stored_name, op, value)

    # Comparisons return filter tuples, not booleans.
    def __eq__(self, other):  # type: ignore[override]
        return self._filter(FirestoreOperators.EQ, other)

    def __ne__(self, other):  # type: ignore[override]
        return self._filter(FirestoreOperators.NE, other)

    def __lt__(self, other):
        return self._filter(FirestoreOperators.LT, other)

    def __le__(self, other):
        return self._filter(FirestoreOperators.LTE, other)

    def __gt__(self, other):
        return self._filter(FirestoreOperators.GT, other)

    def __ge__(self, other):
        return self._filter(FirestoreOperators.GTE, other)

    def in_(self, values: Iterable[Any]) -> FilterTuple:
        return self._filter(FirestoreOperators.IN, list(values))

    def not_in_(self, values: Iterable[Any]) -> FilterTuple:
        return self._filter(FirestoreOperators.NOT_IN, list(values))

    def array_contains(self, value: Any) -> FilterTuple:
        """Documents whose array field holds ``value``, e.g. a tag."""
        return self._filter(FirestoreOperators.ARRAY_CONTAINS, value)

    def array_contains_any(self, values: Iterable[Any]) -> FilterTuple:
        return self._filter(FirestoreOperators.ARRAY_CONTAINS_ANY, list(values))
