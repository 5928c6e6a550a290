"""
Stored entities of the Slate feed.

Python attributes are snake_case; documents are stored under the camelCase
names used by the web client (``imageUrls``, ``createdAt``, ``postId``...).
"""
from datetime import datetime
from typing import List, Optional

from .document import BaseDocument
from .enums import (
    ApplicationStatus,
    Category,
    OfferStatus,
    ReportStatus,
    RsvpStatus,
)
from .pydantic_compat import BaseModel, ConfigDict, Field, get_model_config

_SNAPSHOT_CONFIG = ConfigDict(
    **get_model_config(frozen=True, use_enum_values=True, extra="ignore")
)


# ------------------------------------------------------------------------------
# Identity and author snapshot
# ------------------------------------------------------------------------------
class Author(BaseModel):
    """
    Author snapshot embedded in a post.

    Copied from the identity when the post is created and never refreshed:
    later profile edits do not reach posts that already exist.
    """

    model_config = _SNAPSHOT_CONFIG

    name: str
    avatar_url: str = Field(alias="avatarUrl")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    total_posts: Optional[int] = Field(default=None, alias="totalPosts")
    total_likes: Optional[int] = Field(default=None, alias="totalLikes")


ANONYMOUS_AUTHOR = Author(
    name="Anonymous",
    avatar_url="https://picsum.photos/seed/anonymous/100/100",
    phone_number="+15550001111",
)


class Identity(BaseModel):
    """The signed-in user as reported by the identity provider."""

    model_config = _SNAPSHOT_CONFIG

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    photo_url: Optional[str] = Field(default=None, alias="photoURL")

    def as_author(self) -> Author:
        name = self.display_name or (self.email.split("@")[0] if self.email else None)
        return Author(
            name=name or ANONYMOUS_AUTHOR.name,
            avatar_url=self.photo_url or f"https://picsum.photos/seed/{self.uid}/100/100",
        )


# ------------------------------------------------------------------------------
# Posts
# ------------------------------------------------------------------------------
class PostDraft(BaseModel):
    """The caller-supplied part of a new post."""

    model_config = _SNAPSHOT_CONFIG

    title: str = Field(min_length=1)
    description: str = ""
    image_urls: List[str] = Field(alias="imageUrls", min_length=1)
    category: Category
    price: Optional[str] = None
    location: Optional[str] = None
    event_date: Optional[str] = Field(default=None, alias="eventDate")
    tags: Optional[List[str]] = None


class Post(BaseDocument):
    class Settings:
        name = "posts"
        server_timestamps = ("createdAt",)

    title: str
    description: str = ""
    image_urls: List[str] = Field(default_factory=list, alias="imageUrls")
    user: Author
    category: Category
    # Meaningful for sale/job posts only; not enforced.
    price: Optional[str] = None
    location: Optional[str] = None
    # Meaningful for event posts only; not enforced.
    event_date: Optional[str] = Field(default=None, alias="eventDate")
    tags: Optional[List[str]] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @classmethod
    def from_draft(cls, draft: PostDraft, author: Author) -> "Post":
        return cls(user=author, **draft.model_dump(exclude_none=True))

    def searchable_text(self) -> str:
        return " ".join(
            [
                self.title or "",
                self.description or "",
                self.location or "",
                " ".join(self.tags or []),
            ]
        )


# ------------------------------------------------------------------------------
# Interactions
# ------------------------------------------------------------------------------
class Message(BaseDocument):
    class Settings:
        name = "messages"
        server_timestamps = ("createdAt",)

    post_id: str = Field(alias="postId")
    sender_id: str = Field(alias="senderId")
    receiver_id: str = Field(alias="receiverId")
    content: str
    read: bool = False
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class Offer(BaseDocument):
    class Settings:
        name = "offers"
        server_timestamps = ("createdAt", "updatedAt")

    post_id: str = Field(alias="postId")
    buyer_id: str = Field(alias="buyerId")
    seller_id: str = Field(alias="sellerId")
    amount: str
    message: str = ""
    status: OfferStatus = OfferStatus.PENDING
    counter_offer: Optional[str] = Field(default=None, alias="counterOffer")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class RSVP(BaseDocument):
    class Settings:
        name = "rsvps"
        server_timestamps = ("createdAt",)

    post_id: str = Field(alias="postId")
    user_id: str = Field(alias="userId")
    status: RsvpStatus
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class RsvpCounts(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    attending: int = 0
    maybe: int = 0
    not_attending: int = Field(default=0, alias="notAttending")


class JobApplication(BaseDocument):
    class Settings:
        name = "job_applications"
        server_timestamps = ("createdAt", "updatedAt")

    post_id: str = Field(alias="postId")
    applicant_id: str = Field(alias="applicantId")
    resume_text: str = Field(default="", alias="resumeText")
    cover_letter: str = Field(default="", alias="coverLetter")
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class SavedPost(BaseDocument):
    """A bookmark: a row for (user, post) means the post is saved."""

    class Settings:
        name = "saved_posts"
        server_timestamps = ("createdAt",)

    user_id: str = Field(alias="userId")
    post_id: str = Field(alias="postId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class Report(BaseDocument):
    class Settings:
        name = "reports"
        server_timestamps = ("createdAt", "updatedAt")

    post_id: str = Field(alias="postId")
    reporter_id: str = Field(alias="reporterId")
    reason: str
    status: ReportStatus = ReportStatus.PENDING
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


# ------------------------------------------------------------------------------
# Profiles
# ------------------------------------------------------------------------------
class ProfilePreferences(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    notifications: bool = True
    email_updates: bool = Field(default=True, alias="emailUpdates")
    categories: List[str] = Field(default_factory=list)


class UserProfile(BaseDocument):
    """Richer per-user profile, looked up by the owning identity."""

    class Settings:
        name = "user_profiles"
        server_timestamps = ("createdAt", "updatedAt")

    user_id: str = Field(alias="userId")
    display_name: str = Field(alias="displayName")
    bio: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    premium: bool = False
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


ALL_DOCUMENT_MODELS = [
    Post,
    Message,
    Offer,
    RSVP,
    JobApplication,
    SavedPost,
    Report,
    UserProfile,
]
