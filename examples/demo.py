import asyncio
import logging
import os
import sys
from functools import wraps

from slate_feed import (
    CATEGORY_LABELS,
    FeedController,
    IdentitySession,
    InMemoryStore,
    InteractionWorkflows,
    SlateConfig,
    connect,
)
from slate_feed.identity import IdentityToolkitProvider

CONFIG_PATH = os.getenv("SLATE_CONFIG_PATH")


def async_decorator(f):
    """Decorator to allow calling an async function like a sync function"""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


def build_backend():
    # "--memory" runs everything in-process with no project at all
    if "--memory" in sys.argv:
        return InMemoryStore(), IdentitySession(IdentityToolkitProvider(SlateConfig.placeholder()))
    return connect(SlateConfig.load(CONFIG_PATH))


@async_decorator
async def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    store, session = build_backend()

    async with FeedController(store, session) as feed:
        # 1. Populate an empty store
        if await feed.count_posts() == 0:
            await feed.seed()

        # 2. Wait for the first live snapshot
        async for state in feed.snapshots():
            if not state.is_loading:
                break

        for category, label in CATEGORY_LABELS.items():
            print(f"{label}: {len(feed.visible_posts(category))}")

        # 3. Keyword search
        for post in await feed.search("tech"):
            print("search:", post.title, post.price)

        # 4. Anonymous post: the feed picks it up through the subscription
        created = await feed.create_post(
            {"title": "Bike", "category": "sale", "price": "$50", "location": "Downtown",
             "imageUrls": ["https://picsum.photos/seed/bike/600/800"]}
        )
        print("created:", created.id, created.user.name)
        print("newest:", feed.state.posts[0].title if feed.state.posts else None)

    # 5. Workflows need a signed-in identity
    workflows = InteractionWorkflows(store, session)
    if session.current() is None:
        print("signed out: is_post_saved ->", await workflows.is_post_saved(created.id))


main()
