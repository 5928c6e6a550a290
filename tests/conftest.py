import pytest

from slate_feed import FeedController, IdentitySession, InMemoryStore, InteractionWorkflows

from .fakes import ALICE, FakeIdentityProvider


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def session(provider):
    return IdentitySession(provider)


@pytest.fixture
def signed_in(provider):
    provider.force_sign_in(ALICE)
    return ALICE


@pytest.fixture
def workflows(store, session):
    return InteractionWorkflows(store, session)


@pytest.fixture
def feed(store, session):
    controller = FeedController(store, session)
    yield controller
    controller.close()
