"""
User-facing interactions: messages, offers, RSVPs, job applications,
bookmarks, reports and profiles.

Each workflow is a short read-modify-write against the injected store.
Workflows acting on behalf of a user check for a signed-in identity first and
raise :class:`~slate_feed.errors.Unauthenticated` before touching the store.
Store failures propagate unchanged: there is no retry and no local recovery.

Read-then-write sequences (RSVP upsert, profile save) are not transactional.
Two concurrent ``rsvp_to_event`` calls for the same post and user can both
miss the existing row and insert one each.
"""
import logging
from typing import Any, List, Optional, Union

from .enums import ApplicationStatus, OfferStatus, OrderByDirection, ReportStatus, RsvpStatus
from .errors import NotFound
from .identity import IdentitySession
from .models import (
    RSVP,
    JobApplication,
    Message,
    Offer,
    ProfilePreferences,
    Report,
    RsvpCounts,
    SavedPost,
    UserProfile,
)
from .pydantic_compat import model_validate_compat
from .store import DocumentStore

logger = logging.getLogger(__name__)

_EDITABLE_PROFILE_FIELDS = {
    "display_name",
    "bio",
    "location",
    "phone_number",
    "premium",
    "preferences",
}


class InteractionWorkflows:
    def __init__(self, store: DocumentStore, session: IdentitySession):
        self._store = store
        self._session = session

    # --------------------------------------------------------------------------
    # Messages
    # --------------------------------------------------------------------------
    async def send_message(self, post_id: str, receiver_id: str, content: str) -> Message:
        """Send ``content`` about a post. Every call stores a new message."""
        identity = self._session.require("send messages")
        logger.info(f"Sending message from {identity.uid} to {receiver_id}")
        message = await self._store.insert(
            Message(
                post_id=post_id,
                sender_id=identity.uid,
                receiver_id=receiver_id,
                content=content,
                read=False,
            )
        )
        logger.info(f"Message sent successfully: {message.id}")
        return message

    async def get_messages_for_post(self, post_id: str) -> List[Message]:
        """Messages the current user received about ``post_id``, newest first."""
        identity = self._session.require("view messages")
        messages = await self._store.query(
            Message,
            filters=[Message.post_id == post_id, Message.receiver_id == identity.uid],
            order_by=[(Message.created_at, OrderByDirection.DESCENDING)],
        )
        logger.debug(f"Retrieved {len(messages)} messages for post {post_id}")
        return messages

    async def mark_message_as_read(self, message_id: str) -> None:
        await self._store.update(Message, message_id, {str(Message.read): True})
        logger.info(f"Message marked as read: {message_id}")

    # --------------------------------------------------------------------------
    # Offers
    # --------------------------------------------------------------------------
    async def make_offer(
        self, post_id: str, seller_id: str, amount: str, message: Optional[str] = None
    ) -> Offer:
        """
        Offer ``amount`` on a post. Offers are never deduplicated: two calls,
        concurrent or not, create two pending offers.
        """
        identity = self._session.require("make offers")
        logger.info(f"Making offer on post {post_id} for {amount}")
        offer = await self._store.insert(
            Offer(
                post_id=post_id,
                buyer_id=identity.uid,
                seller_id=seller_id,
                amount=amount,
                message=message or "",
                status=OfferStatus.PENDING,
            )
        )
        logger.info(f"Offer made successfully: {offer.id}")
        return offer

    async def respond_to_offer(
        self,
        offer_id: str,
        status: Union[OfferStatus, str],
        counter_offer: Optional[str] = None,
    ) -> None:
        """
        Accept or reject an offer, or counter it.

        A counter offer is written together with ``status="countered"``,
        whatever ``status`` was passed. No ownership check is made here;
        access control belongs to the backend rules.
        """
        if counter_offer:
            changes = {
                str(Offer.status): OfferStatus.COUNTERED,
                str(Offer.counter_offer): counter_offer,
            }
        else:
            changes = {str(Offer.status): OfferStatus(status)}

        await self._store.update(Offer, offer_id, changes, touch=[str(Offer.updated_at)])
        logger.info(f"Offer response updated: {offer_id} {changes[str(Offer.status)].value}")

    async def get_offers_for_post(self, post_id: str) -> List[Offer]:
        offers = await self._store.query(
            Offer,
            filters=[Offer.post_id == post_id],
            order_by=[(Offer.created_at, OrderByDirection.DESCENDING)],
        )
        logger.debug(f"Retrieved {len(offers)} offers for post {post_id}")
        return offers

    # --------------------------------------------------------------------------
    # RSVPs
    # --------------------------------------------------------------------------
    async def rsvp_to_event(self, post_id: str, status: Union[RsvpStatus, str]) -> RSVP:
        """Record the current user's answer, updating their existing RSVP if any."""
        identity = self._session.require("RSVP")
        status = RsvpStatus(status)
        logger.info(f"RSVP to event {post_id} with status {status.value}")

        existing = await self.get_user_rsvp(post_id)
        if existing is not None:
            await self._store.update(RSVP, existing.id, {str(RSVP.status): status})
            logger.info(f"RSVP updated: {existing.id}")
            return existing.model_copy(update={"status": status.value})

        rsvp = await self._store.insert(RSVP(post_id=post_id, user_id=identity.uid, status=status))
        logger.info(f"RSVP created successfully: {rsvp.id}")
        return rsvp

    async def get_user_rsvp(self, post_id: str) -> Optional[RSVP]:
        identity = self._session.current()
        if identity is None:
            return None
        return await self._store.find_one(
            RSVP, filters=[RSVP.post_id == post_id, RSVP.user_id == identity.uid]
        )

    async def get_event_rsvps(self, post_id: str) -> RsvpCounts:
        rsvps = await self._store.query(RSVP, filters=[RSVP.post_id == post_id])
        counts = {status: 0 for status in RsvpStatus}
        for rsvp in rsvps:
            counts[RsvpStatus(rsvp.status)] += 1
        result = RsvpCounts(
            attending=counts[RsvpStatus.ATTENDING],
            maybe=counts[RsvpStatus.MAYBE],
            not_attending=counts[RsvpStatus.NOT_ATTENDING],
        )
        logger.debug(f"RSVP counts for event {post_id}: {result}")
        return result

    # --------------------------------------------------------------------------
    # Job applications
    # --------------------------------------------------------------------------
    async def apply_to_job(
        self,
        post_id: str,
        resume_text: Optional[str] = None,
        cover_letter: Optional[str] = None,
    ) -> JobApplication:
        identity = self._session.require("apply to jobs")
        logger.info(f"Applying to job {post_id}")
        application = await self._store.insert(
            JobApplication(
                post_id=post_id,
                applicant_id=identity.uid,
                resume_text=resume_text or "",
                cover_letter=cover_letter or "",
                status=ApplicationStatus.SUBMITTED,
            )
        )
        logger.info(f"Job application submitted: {application.id}")
        return application

    async def update_application_status(
        self, application_id: str, status: Union[ApplicationStatus, str]
    ) -> None:
        status = ApplicationStatus(status)
        await self._store.update(
            JobApplication,
            application_id,
            {str(JobApplication.status): status},
            touch=[str(JobApplication.updated_at)],
        )
        logger.info(f"Application status updated: {application_id} {status.value}")

    async def get_job_applications(self, post_id: str) -> List[JobApplication]:
        applications = await self._store.query(
            JobApplication,
            filters=[JobApplication.post_id == post_id],
            order_by=[(JobApplication.created_at, OrderByDirection.DESCENDING)],
        )
        logger.debug(f"Retrieved {len(applications)} applications for job {post_id}")
        return applications

    # --------------------------------------------------------------------------
    # Saved posts
    # --------------------------------------------------------------------------
    async def save_post(self, post_id: str) -> SavedPost:
        """Bookmark a post. Saving twice stores two rows."""
        identity = self._session.require("save posts")
        saved = await self._store.insert(SavedPost(user_id=identity.uid, post_id=post_id))
        logger.info(f"Post saved successfully: {saved.id}")
        return saved

    async def unsave_post(self, post_id: str) -> None:
        """Remove every bookmark row of the current user for ``post_id``."""
        identity = self._session.require("unsave posts")
        rows = await self._store.query(
            SavedPost,
            filters=[SavedPost.user_id == identity.uid, SavedPost.post_id == post_id],
        )
        for row in rows:
            await self._store.delete(SavedPost, row.id)
        logger.info(f"Post unsaved: {post_id} ({len(rows)} rows)")

    async def get_user_saved_posts(self) -> List[SavedPost]:
        identity = self._session.require("view saved posts")
        return await self._store.query(
            SavedPost,
            filters=[SavedPost.user_id == identity.uid],
            order_by=[(SavedPost.created_at, OrderByDirection.DESCENDING)],
        )

    async def is_post_saved(self, post_id: str) -> bool:
        identity = self._session.current()
        if identity is None:
            return False
        row = await self._store.find_one(
            SavedPost,
            filters=[SavedPost.user_id == identity.uid, SavedPost.post_id == post_id],
        )
        return row is not None

    # --------------------------------------------------------------------------
    # Reports
    # --------------------------------------------------------------------------
    async def report_post(self, post_id: str, reason: str) -> Report:
        identity = self._session.require("report posts")
        logger.info(f"Reporting post {post_id} for reason: {reason}")
        report = await self._store.insert(
            Report(
                post_id=post_id,
                reporter_id=identity.uid,
                reason=reason,
                status=ReportStatus.PENDING,
            )
        )
        logger.info(f"Report submitted successfully: {report.id}")
        return report

    async def update_report_status(self, report_id: str, status: Union[ReportStatus, str]) -> None:
        status = ReportStatus(status)
        await self._store.update(
            Report, report_id, {str(Report.status): status}, touch=[str(Report.updated_at)]
        )
        logger.info(f"Report status updated: {report_id} {status.value}")

    # --------------------------------------------------------------------------
    # Profiles
    # --------------------------------------------------------------------------
    async def get_user_profile(self) -> Optional[UserProfile]:
        identity = self._session.current()
        if identity is None:
            return None
        return await self._store.find_one(UserProfile, filters=[UserProfile.user_id == identity.uid])

    async def create_user_profile(
        self,
        display_name: str,
        bio: Optional[str] = None,
        location: Optional[str] = None,
        phone_number: Optional[str] = None,
        preferences: Optional[Union[ProfilePreferences, dict]] = None,
        premium: bool = False,
    ) -> UserProfile:
        """Insert a profile for the current user. Existing profiles are not checked."""
        identity = self._session.require("create profile")
        logger.info(f"Creating user profile for {identity.uid}")
        profile = await self._store.insert(
            UserProfile(
                user_id=identity.uid,
                display_name=display_name,
                bio=bio,
                location=location,
                phone_number=phone_number,
                premium=premium,
                preferences=_as_preferences(preferences),
            )
        )
        logger.info(f"User profile created: {profile.id}")
        return profile

    async def update_user_profile(self, **changes: Any) -> None:
        """Update the current user's profile in place; NotFound if there is none."""
        self._session.require("update profile")
        unknown = set(changes) - _EDITABLE_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Profile fields cannot be updated: {sorted(unknown)}")

        profile = await self.get_user_profile()
        if profile is None:
            raise NotFound("User profile not found")

        updates = {}
        for field_name, value in changes.items():
            if field_name == "preferences":
                value = _as_preferences(value)
            updates[str(getattr(UserProfile, field_name))] = value
        await self._store.update(UserProfile, profile.id, updates, touch=[str(UserProfile.updated_at)])
        logger.info(f"User profile updated: {profile.id}")

    async def save_user_profile(self, display_name: str, **fields: Any) -> UserProfile:
        """Create the current user's profile on first save, update it afterwards."""
        self._session.require("save profile")
        existing = await self.get_user_profile()
        if existing is None:
            return await self.create_user_profile(display_name, **fields)

        await self.update_user_profile(display_name=display_name, **fields)
        updated = await self._store.get(UserProfile, existing.id)
        if updated is None:
            raise NotFound("User profile not found")
        return updated

    async def upgrade_user_to_premium(self) -> None:
        identity = self._session.require("upgrade to premium")
        logger.info(f"Upgrading user to premium: {identity.uid}")
        profile = await self.get_user_profile()
        if profile is None:
            raise NotFound("User profile not found")
        await self._store.update(
            UserProfile,
            profile.id,
            {str(UserProfile.premium): True},
            touch=[str(UserProfile.updated_at)],
        )
        logger.info(f"User upgraded to premium: {profile.id}")


def _as_preferences(value: Optional[Union[ProfilePreferences, dict]]) -> ProfilePreferences:
    if value is None:
        return ProfilePreferences()
    if isinstance(value, ProfilePreferences):
        return value
    return model_validate_compat(ProfilePreferences, value)
