"""Live post feed: one subscription, derived category and search views."""
import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional, Sequence, Tuple, Union

from .enums import ALL_CATEGORIES, Category, OrderByDirection
from .errors import RemoteOperationFailed
from .identity import IdentitySession
from .models import ANONYMOUS_AUTHOR, Author, Post, PostDraft
from .pydantic_compat import BaseModel, ConfigDict, model_validate_compat
from .sample_data import SAMPLE_POSTS
from .store import DocumentStore, Subscription

logger = logging.getLogger(__name__)

FeedListener = Callable[["FeedState"], None]
CategoryFilter = Union[Category, str]


class FeedState(BaseModel):
    """
    One published view of the feed.

    ``FeedState(posts=(), is_loading=False)`` is published both for an empty
    collection and after a listener failure; the two cannot be told apart.
    """

    model_config = ConfigDict(frozen=True)

    posts: Tuple[Post, ...] = ()
    is_loading: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.is_loading and not self.posts


def filter_by_category(posts: Sequence[Post], category: CategoryFilter) -> Sequence[Post]:
    """Posts of ``category`` in their original order; ``"all"`` returns ``posts`` itself."""
    if category == ALL_CATEGORIES:
        return posts
    return type(posts)(post for post in posts if post.category == category)


def search_terms(query_text: str) -> List[str]:
    return query_text.lower().split()


def matches_query(post: Post, terms: Sequence[str]) -> bool:
    """True when every term is a substring of the post's searchable text."""
    text = post.searchable_text().lower()
    return all(term in text for term in terms)


class FeedController:
    """
    Keeps an always-current, newest-first view of every post.

    ``start`` opens a single live subscription ordered by ``createdAt``
    descending. Each delivery replaces the published :class:`FeedState`
    wholesale. ``is_loading`` is True until the first snapshot (or the first
    failure) and False afterwards. Listener failures are logged and published
    as an empty, loaded feed; they are never raised to consumers.

    Use it as a context manager (sync or async) so the subscription is
    released on every exit path::

        async with FeedController(store, session) as feed:
            async for state in feed.snapshots():
                ...
    """

    def __init__(self, store: DocumentStore, session: Optional[IdentitySession] = None):
        self._store = store
        self._session = session
        self._state = FeedState()
        self._listeners: List[FeedListener] = []
        self._subscription: Optional[Subscription] = None

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # --------------------------------------------------------------------------
    # Subscription lifecycle
    # --------------------------------------------------------------------------
    def start(self) -> "FeedController":
        if self._subscription is not None:
            return self
        try:
            self._subscription = self._store.subscribe(
                Post,
                self._on_snapshot,
                self._on_error,
                order_by=[(Post.created_at, OrderByDirection.DESCENDING)],
            )
        except Exception as exc:  # noqa: BLE001
            # There is no error channel to consumers: an unreachable or
            # misconfigured backend shows up as an empty feed.
            logger.error(f"Error setting up posts listener: {exc}")
            self._publish(FeedState(posts=(), is_loading=False))
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()

    def __enter__(self) -> "FeedController":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "FeedController":
        return self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_snapshot(self, posts: List[Post]) -> None:
        logger.debug(f"Feed snapshot: {len(posts)} posts")
        self._publish(FeedState(posts=tuple(posts), is_loading=False))

    def _on_error(self, exc: BaseException) -> None:
        logger.error(f"Error fetching posts: {exc}")
        self._publish(FeedState(posts=(), is_loading=False))

    # --------------------------------------------------------------------------
    # Publishing
    # --------------------------------------------------------------------------
    def add_listener(self, listener: FeedListener) -> Callable[[], None]:
        """Deliver the current state now and every later state; returns the remover."""
        self._listeners.append(listener)
        listener(self._state)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def snapshots(self) -> AsyncIterator[FeedState]:
        """Yield the current state, then each newly published state."""
        queue: "asyncio.Queue[FeedState]" = asyncio.Queue()
        remove = self.add_listener(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            remove()

    def _publish(self, state: FeedState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # --------------------------------------------------------------------------
    # Derived views
    # --------------------------------------------------------------------------
    def visible_posts(self, category: CategoryFilter = ALL_CATEGORIES) -> Sequence[Post]:
        return filter_by_category(self._state.posts, category)

    async def search(self, query_text: str, category: Optional[CategoryFilter] = None) -> List[Post]:
        """
        Keyword search over the stored posts.

        One query scoped to ``category`` (unless None or ``"all"``), newest
        first, then a conjunctive, case-insensitive substring match of the
        whitespace-separated terms against title, description, location and
        tags. Store failures yield an empty result.
        """
        terms = search_terms(query_text)
        if not terms:
            return []

        filters = []
        if category and category != ALL_CATEGORIES:
            filters.append(Post.category == category)

        logger.info(f"Searching posts for: {query_text!r} in category: {category}")
        try:
            posts = await self._store.query(
                Post,
                filters=filters,
                order_by=[(Post.created_at, OrderByDirection.DESCENDING)],
            )
        except RemoteOperationFailed as exc:
            logger.error(f"Error searching posts: {exc}")
            return []

        results = [post for post in posts if matches_query(post, terms)]
        logger.info(f"Found {len(results)} posts matching search")
        return results

    # --------------------------------------------------------------------------
    # Writes
    # --------------------------------------------------------------------------
    async def create_post(self, draft: Union[PostDraft, dict], author: Optional[Author] = None) -> Post:
        """
        Store a new post.

        The author snapshot is ``author`` when given, else the signed-in
        identity, else the fixed Anonymous author. ``createdAt`` is assigned
        by the store. Write failures propagate.
        """
        if not isinstance(draft, PostDraft):
            draft = model_validate_compat(PostDraft, draft)
        if author is None:
            identity = self._session.current() if self._session is not None else None
            author = identity.as_author() if identity is not None else ANONYMOUS_AUTHOR

        created = await self._store.insert(Post.from_draft(draft, author))
        logger.info(f"Post created: {created.id} ({created.category})")
        return created

    async def seed(self, sample_posts: Sequence[Post] = SAMPLE_POSTS) -> List[Post]:
        """
        Insert ``sample_posts`` one at a time, in order.

        Each write is awaited before the next starts, so a failure leaves the
        already written prefix in place and propagates. Calling it twice
        stores every sample twice.
        """
        created = []
        for post in sample_posts:
            created.append(await self._store.insert(post))
        logger.info(f"Seeded {len(created)} sample posts")
        return created

    async def count_posts(self) -> int:
        return await self._store.count(Post)
