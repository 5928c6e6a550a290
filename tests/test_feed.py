import random
from datetime import datetime, timezone

import pytest

from slate_feed import (
    ANONYMOUS_AUTHOR,
    SAMPLE_POSTS,
    Author,
    Category,
    FeedController,
    FeedState,
    InMemoryStore,
    Post,
    RemoteOperationFailed,
    filter_by_category,
    matches_query,
    search_terms,
)

from .fakes import ALICE, settle


def make_post(title, category="sale", **extra):
    return Post(title=title, image_urls=["u1"], user=ANONYMOUS_AUTHOR, category=category, **extra)


# No author; written by some other client.
MALFORMED_POST = {
    "title": "Bike broken",
    "category": "sale",
    "createdAt": datetime(2020, 1, 1, tzinfo=timezone.utc),
}


# -----------------------------------------------------------------------------
# Category filter
# -----------------------------------------------------------------------------
MIXED = [
    make_post("Jacket", "sale"),
    make_post("Market", "event"),
    make_post("Dog walking", "service"),
    make_post("Laptop", "sale"),
    make_post("Engineer", "job"),
]


@pytest.mark.parametrize("category", [c.value for c in Category])
def test_filter_by_category_keeps_only_matching_posts_in_order(category):
    result = filter_by_category(MIXED, category)

    assert all(post.category == category for post in result)
    assert result == [post for post in MIXED if post.category == category]


def test_filter_by_category_accepts_enum_members():
    assert [p.title for p in filter_by_category(MIXED, Category.SALE)] == ["Jacket", "Laptop"]


def test_filter_by_category_all_is_identity():
    assert filter_by_category(MIXED, "all") is MIXED
    posts = tuple(MIXED)
    assert filter_by_category(posts, "all") is posts


def test_filter_by_category_preserves_sequence_type():
    assert isinstance(filter_by_category(tuple(MIXED), "job"), tuple)


# -----------------------------------------------------------------------------
# Search matching
# -----------------------------------------------------------------------------
def test_search_terms_split_on_any_whitespace():
    assert search_terms("  Leather\tJACKET \n 80s ") == ["leather", "jacket", "80s"]


def test_matches_query_is_conjunctive_and_case_insensitive():
    post = make_post("Vintage Leather Jacket", location="Downtown", tags=["fashion"])
    assert matches_query(post, search_terms("leather DOWNTOWN"))
    assert matches_query(post, search_terms("fash"))
    assert not matches_query(post, search_terms("leather uptown"))


WORDS = ["bike", "red", "vintage", "jacket", "market", "dog", "tech", "party", "Park", "80s"]


def _random_post(rng):
    return make_post(
        " ".join(rng.sample(WORDS, rng.randint(1, 3))),
        rng.choice([c.value for c in Category]),
        description=" ".join(rng.sample(WORDS, rng.randint(0, 3))),
        location=rng.choice([None, "Downtown", "Central Park"]),
        tags=rng.choice([None, [], rng.sample(WORDS, 2)]),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(20))
async def test_search_results_match_the_term_rule_exactly(seed):
    rng = random.Random(seed)
    store = InMemoryStore()
    posts = [await store.insert(_random_post(rng)) for _ in range(rng.randint(0, 12))]
    query = " ".join(w.upper() if rng.random() < 0.3 else w for w in rng.sample(WORDS, rng.randint(1, 2)))
    terms = query.lower().split()

    results = await FeedController(store).search(query)

    expected_ids = {
        post.id for post in posts
        if all(term in post.searchable_text().lower() for term in terms)
    }
    assert {post.id for post in results} == expected_ids


# -----------------------------------------------------------------------------
# Search against the store
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_search_scopes_by_category_and_orders_newest_first(store, feed):
    await store.insert(make_post("Old tech laptop", "sale"))
    await store.insert(make_post("Tech job", "job"))
    await store.insert(make_post("New tech phone", "sale"))

    results = await feed.search("tech", category="sale")
    assert [p.title for p in results] == ["New tech phone", "Old tech laptop"]

    everything = await feed.search("TECH", category="all")
    assert [p.title for p in everything] == ["New tech phone", "Tech job", "Old tech laptop"]


@pytest.mark.asyncio
async def test_search_returns_empty_on_store_error(store, feed):
    await store.insert(make_post("Bike"))
    store.fail_next()
    assert await feed.search("bike") == []


@pytest.mark.asyncio
async def test_search_skips_malformed_posts(store, feed):
    await store.insert(make_post("Bike"))
    store.write_raw(Post, "broken", MALFORMED_POST)

    assert [p.title for p in await feed.search("bike")] == ["Bike"]


@pytest.mark.asyncio
async def test_blank_search_does_not_query(store, feed):
    store.fail_next()
    assert await feed.search("   ") == []
    # the injected failure was not consumed
    with pytest.raises(RemoteOperationFailed):
        await store.count(Post)


# -----------------------------------------------------------------------------
# Live feed
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_feed_is_loading_until_first_snapshot(store, feed):
    await store.insert(make_post("Bike"))
    assert feed.state == FeedState(posts=(), is_loading=True)

    feed.start()
    assert feed.state.is_loading
    await settle()

    assert feed.state.is_loading is False
    assert [p.title for p in feed.state.posts] == ["Bike"]


@pytest.mark.asyncio
async def test_malformed_post_does_not_blank_the_feed(store, feed):
    await store.insert(make_post("Bike"))
    store.write_raw(Post, "broken", MALFORMED_POST)

    feed.start()
    await settle()

    assert feed.state.is_loading is False
    assert [p.title for p in feed.state.posts] == ["Bike"]


@pytest.mark.asyncio
async def test_feed_publishes_replacement_snapshots_newest_first(store, feed):
    states = []
    feed.add_listener(states.append)
    feed.start()
    await settle()

    await store.insert(make_post("First"))
    await store.insert(make_post("Second", "event"))

    assert [[p.title for p in s.posts] for s in states] == [
        [],
        [],
        ["First"],
        ["Second", "First"],
    ]
    assert [s.is_loading for s in states] == [True, False, False, False]
    assert [p.title for p in feed.visible_posts("event")] == ["Second"]


@pytest.mark.asyncio
async def test_snapshots_are_immutable_replacements(store, feed):
    feed.start()
    await settle()
    await store.insert(make_post("First"))
    before = feed.state

    await store.insert(make_post("Second"))

    assert [p.title for p in before.posts] == ["First"]
    assert before is not feed.state
    assert isinstance(feed.state.posts, tuple)


@pytest.mark.asyncio
async def test_empty_feed_and_failed_subscription_look_the_same(store):
    empty = FeedController(store).start()
    await settle()

    broken_store = InMemoryStore()
    broken_store.fail_subscriptions()
    broken = FeedController(broken_store).start()
    await settle()

    failed_on_establish = InMemoryStore()
    failed_on_establish.fail_subscriptions(on_establish=True)
    unreachable = FeedController(failed_on_establish).start()

    expected = FeedState(posts=(), is_loading=False)
    assert empty.state == expected
    assert broken.state == expected
    assert unreachable.state == expected
    assert empty.state.is_empty and broken.state.is_empty


@pytest.mark.asyncio
async def test_start_twice_opens_one_subscription(store, feed):
    feed.start()
    feed.start()
    assert store.listener_count(Post) == 1


@pytest.mark.asyncio
async def test_context_manager_releases_subscription_on_error(store):
    with pytest.raises(RuntimeError):
        async with FeedController(store) as feed:
            assert feed.is_subscribed
            raise RuntimeError("view crashed")
    assert store.listener_count(Post) == 0
    assert not feed.is_subscribed


@pytest.mark.asyncio
async def test_no_deliveries_after_close(store, feed):
    states = []
    feed.start()
    await settle()
    feed.add_listener(states.append)
    feed.close()
    feed.close()

    await store.insert(make_post("Late"))
    assert len(states) == 1


@pytest.mark.asyncio
async def test_snapshots_iterator(store, feed):
    feed.start()
    seen = []
    async for state in feed.snapshots():
        seen.append(state)
        if not state.is_loading:
            break
    assert seen[0].is_loading is True
    assert seen[-1] == FeedState(posts=(), is_loading=False)


# -----------------------------------------------------------------------------
# Writes
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_create_post_while_signed_out_uses_anonymous_author(store, feed):
    created = await feed.create_post(
        {"title": "Bike", "category": "sale", "price": "$50", "location": "X", "imageUrls": ["u1"]}
    )

    raw = store.documents(Post)[created.id]
    assert raw["user"]["name"] == "Anonymous"
    assert created.user == ANONYMOUS_AUTHOR
    assert raw["price"] == "$50"
    assert "eventDate" not in raw
    assert raw["createdAt"] == created.created_at


@pytest.mark.asyncio
async def test_create_post_uses_signed_in_identity(store, feed, signed_in):
    created = await feed.create_post(
        {"title": "Market", "category": "event", "event_date": "Sat", "image_urls": ["m"]}
    )
    assert created.user.name == "Alice"
    assert created.user == ALICE.as_author()


@pytest.mark.asyncio
async def test_create_post_with_explicit_author(feed):
    author = Author(name="Shop", avatar_url="s.png", phone_number="+1555")
    created = await feed.create_post(
        {"title": "Desk", "category": "sale", "image_urls": ["d"]}, author=author
    )
    assert created.user == author


@pytest.mark.asyncio
async def test_create_post_propagates_store_errors(store, feed):
    store.fail_next()
    with pytest.raises(RemoteOperationFailed):
        await feed.create_post({"title": "Bike", "category": "sale", "image_urls": ["u1"]})


@pytest.mark.asyncio
async def test_created_post_reaches_the_feed_through_the_subscription(store, feed):
    feed.start()
    await settle()
    created = await feed.create_post({"title": "Bike", "category": "sale", "image_urls": ["u1"]})
    assert feed.state.posts[0].id == created.id


@pytest.mark.asyncio
async def test_seed_inserts_samples_in_order_and_is_not_idempotent(store, feed):
    created = await feed.seed()
    assert [p.title for p in created] == [p.title for p in SAMPLE_POSTS]
    assert await feed.count_posts() == len(SAMPLE_POSTS)

    await feed.seed()
    assert await feed.count_posts() == 2 * len(SAMPLE_POSTS)


@pytest.mark.asyncio
async def test_seed_failure_leaves_a_prefix(store, feed):
    calls = 0
    original_insert = store.insert

    async def flaky_insert(document):
        nonlocal calls
        calls += 1
        if calls == 3:
            raise RemoteOperationFailed("quota exceeded")
        return await original_insert(document)

    store.insert = flaky_insert
    with pytest.raises(RemoteOperationFailed):
        await feed.seed()

    titles = {doc["title"] for doc in store.documents(Post).values()}
    assert titles == {SAMPLE_POSTS[0].title, SAMPLE_POSTS[1].title}
