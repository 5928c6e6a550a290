# slate_feed/__init__.py
from typing import Optional, Tuple

from .config import SlateConfig
from .document import BaseDocument
from .enums import (
    ALL_CATEGORIES,
    CATEGORY_LABELS,
    ApplicationStatus,
    Category,
    FirestoreOperators,
    OfferStatus,
    OrderByDirection,
    ReportStatus,
    RsvpStatus,
)
from .errors import (
    IdentityProviderError,
    NotFound,
    RemoteOperationFailed,
    SlateError,
    Unauthenticated,
)
from .feed import FeedController, FeedState, filter_by_category, matches_query, search_terms
from .firestore_client import FirestoreDB
from .firestore_fields import FirestoreField
from .firestore_store import FirestoreStore
from .identity import IdentityProvider, IdentitySession, IdentityToolkitProvider
from .memory_store import InMemoryStore
from .models import (
    ALL_DOCUMENT_MODELS,
    ANONYMOUS_AUTHOR,
    RSVP,
    Author,
    Identity,
    JobApplication,
    Message,
    Offer,
    Post,
    PostDraft,
    ProfilePreferences,
    Report,
    RsvpCounts,
    SavedPost,
    UserProfile,
)
from .sample_data import SAMPLE_POSTS
from .store import DocumentStore, Subscription
from .workflows import InteractionWorkflows


def connect(
    config: Optional[SlateConfig] = None, credentials=None
) -> Tuple[FirestoreStore, IdentitySession]:
    """
    Build the store and identity session for one backend project.

    Reconfiguring means calling this again with the new config and
    re-subscribing any feed built on the old store.
    """
    config = config or SlateConfig.load()
    store = FirestoreStore(FirestoreDB(config, credentials=credentials))
    session = IdentitySession(IdentityToolkitProvider(config))
    return store, session


__all__ = [
    "ALL_CATEGORIES",
    "ALL_DOCUMENT_MODELS",
    "ANONYMOUS_AUTHOR",
    "ApplicationStatus",
    "Author",
    "BaseDocument",
    "CATEGORY_LABELS",
    "Category",
    "DocumentStore",
    "FeedController",
    "FeedState",
    "FirestoreDB",
    "FirestoreField",
    "FirestoreOperators",
    "FirestoreStore",
    "Identity",
    "IdentityProvider",
    "IdentityProviderError",
    "IdentitySession",
    "IdentityToolkitProvider",
    "InMemoryStore",
    "InteractionWorkflows",
    "JobApplication",
    "Message",
    "NotFound",
    "Offer",
    "OfferStatus",
    "OrderByDirection",
    "Post",
    "PostDraft",
    "ProfilePreferences",
    "RSVP",
    "RemoteOperationFailed",
    "Report",
    "ReportStatus",
    "RsvpCounts",
    "RsvpStatus",
    "SAMPLE_POSTS",
    "SavedPost",
    "SlateConfig",
    "SlateError",
    "Subscription",
    "Unauthenticated",
    "UserProfile",
    "connect",
    "filter_by_category",
    "matches_query",
    "search_terms",
]
