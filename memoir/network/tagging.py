"""
Event tagging.

A user tags someone (by e-mail) in an event; the tagged user verifies or
declines. Accepting a tag counts towards both users' connection strength, so it
re-scores the pair's connection.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from memoir.database import store_operation
from memoir.errors import InvalidStateError, NotFoundError, UnauthorizedError
from memoir.logging_config import get_logger
from memoir.models import EventTag, User
from memoir.network.connections import ConnectionEngine
from memoir.network.core_types import NotificationEvent, TagStatus
from memoir.network.notifications import LogNotifier, Notifier, notify_all
from memoir.schemas import TagRead, TagResult, UserTags

logger = get_logger(__name__)


class TaggingEngine:

    def __init__(
        self,
        connection_engine: Optional[ConnectionEngine] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.connection_engine = connection_engine or ConnectionEngine()
        self.notifier = notifier or LogNotifier()

    def tag_user(
        self,
        db: Session,
        tagger_id: str,
        tagged_user_email: str,
        event_id: Optional[str] = None,
        event_title: Optional[str] = None,
        event_date: Optional[datetime] = None,
        message: Optional[str] = None,
    ) -> TagResult:
        """
        Tag a user in an event by e-mail.

        An unknown e-mail creates nothing; the result asks the caller to
        send an invitation. Otherwise a pending tag is created and the
        tagged user is notified.
        """
        with store_operation(db, "find_tagged_user"):
            tagged_user = db.query(User).filter(User.email == tagged_user_email).first()

        if tagged_user is None:
            logger.info(
                f"User {tagged_user_email} not found - invitation needed",
                extra={"user_id": tagger_id},
            )
            return TagResult(
                status="invitation_needed",
                message=f"No account for {tagged_user_email}; an invitation is needed",
            )

        if tagged_user.id == tagger_id:
            raise InvalidStateError("You cannot tag yourself")

        with store_operation(db, "tag_user"):
            tag = EventTag(
                event_id=event_id,
                event_title=event_title,
                event_date=event_date,
                tagger_id=tagger_id,
                tagged_user_id=tagged_user.id,
                message=message,
                status=TagStatus.PENDING.value,
            )
            db.add(tag)
            db.commit()
            db.refresh(tag)

        logger.info(f"Tag {tag.id} created", extra={"user_id": tagger_id})
        notify_all(
            self.notifier,
            [tagged_user.id],
            NotificationEvent.TAG_RECEIVED,
            {"tag_id": tag.id, "tagger_id": tagger_id, "event_title": event_title},
        )
        return TagResult(
            status="tagged",
            message=f"Tagged {tagged_user_email}",
            tag=TagRead.model_validate(tag),
        )

    def _load_for_tagged_user(self, db: Session, tag_id: str, tagged_user_id: str) -> EventTag:
        with store_operation(db, "load_tag"):
            tag = db.get(EventTag, tag_id)
        if tag is None:
            raise NotFoundError("Tag")
        if tag.tagged_user_id != tagged_user_id:
            raise UnauthorizedError("Only the tagged user can answer this tag")
        if tag.status != TagStatus.PENDING.value:
            raise InvalidStateError(f"Tag is already {tag.status}")
        return tag

    def verify_tag(
        self,
        db: Session,
        tag_id: str,
        tagged_user_id: str,
        perspective: str,
        photos: Optional[List[str]] = None,
        details: Optional[str] = None,
    ) -> EventTag:
        """Accept a tag, update completeness and strengthen the connection."""
        tag = self._load_for_tagged_user(db, tag_id, tagged_user_id)

        with store_operation(db, "verify_tag"):
            tag.status = TagStatus.ACCEPTED.value
            tag.verified_at = datetime.utcnow()
            tag.tagged_user_perspective = perspective
            tag.verification_data = {
                "perspective": perspective,
                "photos": photos or [],
                "details": details,
            }
            db.commit()
            self._update_memory_completeness(db, tagged_user_id)

        self.connection_engine.create_or_update_connection(db, tag.tagger_id, tagged_user_id)
        db.refresh(tag)
        return tag

    def decline_tag(self, db: Session, tag_id: str, tagged_user_id: str) -> EventTag:
        tag = self._load_for_tagged_user(db, tag_id, tagged_user_id)
        with store_operation(db, "decline_tag"):
            tag.status = TagStatus.DECLINED.value
            db.commit()
            db.refresh(tag)
        return tag

    def get_pending_tags(self, db: Session, user_id: str) -> List[EventTag]:
        return (
            db.query(EventTag)
            .filter(
                EventTag.tagged_user_id == user_id,
                EventTag.status == TagStatus.PENDING.value,
            )
            .order_by(EventTag.created_at.desc(), EventTag.id)
            .all()
        )

    def get_user_tags(self, db: Session, user_id: str) -> UserTags:
        """Tags the user made and received, newest first."""
        tags_made = (
            db.query(EventTag)
            .filter(EventTag.tagger_id == user_id)
            .order_by(EventTag.created_at.desc(), EventTag.id)
            .all()
        )
        tags_received = (
            db.query(EventTag)
            .filter(EventTag.tagged_user_id == user_id)
            .order_by(EventTag.created_at.desc(), EventTag.id)
            .all()
        )
        return UserTags(
            tags_made=[TagRead.model_validate(t) for t in tags_made],
            tags_received=[TagRead.model_validate(t) for t in tags_received],
            total_tags=len(tags_made) + len(tags_received),
        )

    def _update_memory_completeness(self, db: Session, user_id: str) -> None:
        """Share of the user's received tags that were accepted, as a percentage."""
        user = db.get(User, user_id)
        if user is None:
            return

        total = (
            db.query(func.count(EventTag.id))
            .filter(EventTag.tagged_user_id == user_id)
            .scalar()
        )
        accepted = (
            db.query(func.count(EventTag.id))
            .filter(
                EventTag.tagged_user_id == user_id,
                EventTag.status == TagStatus.ACCEPTED.value,
            )
            .scalar()
        )
        user.memory_completeness = (accepted / total) * 100 if total else 0.0
        db.commit()
