"""
Story merger lifecycle.

Proposed (approvals pending) -> fully approved -> published. Publishing is
an explicit call that requires every participant's approval; a published
merger is terminal.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from memoir.config import settings
from memoir.database import store_operation
from memoir.errors import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from memoir.logging_config import get_logger
from memoir.models import MemoryCollision, StoryMerger
from memoir.network.conflicts import detect_conflicts
from memoir.network.core_types import (
    ApprovalState,
    Conflict,
    NotificationEvent,
    Perspective,
    Resolution,
)
from memoir.network.notifications import LogNotifier, Notifier, notify_all
from memoir.network.storage import increment_sales
from memoir.schemas import MarketplaceListing, PurchaseReceipt, ResolutionAck

logger = get_logger(__name__)

_resolution_adapter = TypeAdapter(Resolution)


def all_approved(merger: StoryMerger) -> bool:
    return all(
        state == ApprovalState.APPROVED.value
        for state in merger.approval_status.values()
    )


def equal_revenue_share(participants: List[str]) -> Dict[str, float]:
    share = round(100 / len(participants), 2)
    return {user_id: share for user_id in participants}


class MergerEngine:
    """Multi-party approval and publication of shared stories."""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or LogNotifier()

    def _load(self, db: Session, merger_id: str, for_update: bool = False) -> StoryMerger:
        """
        Fetch a merger. Mutating callers pass for_update so the row is locked
        and re-read before its JSON columns are modified.
        """
        with store_operation(db, "load_merger"):
            if for_update:
                merger = db.get(StoryMerger, merger_id, with_for_update=True, populate_existing=True)
            else:
                merger = db.get(StoryMerger, merger_id)
        if merger is None:
            raise NotFoundError("Merger", details={"merger_id": merger_id})
        return merger

    def create_merger_proposal(self, db: Session, collision_id: str, initiator_id: str) -> StoryMerger:
        """Start a merger from a collision; the initiator is pre-approved."""
        collision = db.get(MemoryCollision, collision_id)
        if collision is None:
            raise NotFoundError("Collision", details={"collision_id": collision_id})

        participants = list(collision.users)
        if initiator_id not in participants:
            raise UnauthorizedError("You are not a participant in this collision")

        approval_status = {
            user_id: (ApprovalState.APPROVED if user_id == initiator_id else ApprovalState.PENDING).value
            for user_id in participants
        }

        with store_operation(db, "create_merger_proposal"):
            merger = StoryMerger(
                event_id=collision.id,
                event_title=collision.title,
                event_date=collision.timestamp,
                participants=participants,
                approval_status=approval_status,
                merged_content={},
                resolutions={},
                is_published=False,
            )
            db.add(merger)
            db.commit()
            db.refresh(merger)

        logger.info(
            "Merger proposal created",
            extra={"merger_id": merger.id, "user_id": initiator_id, "collision_id": collision_id},
        )
        notify_all(
            self.notifier,
            [p for p in participants if p != initiator_id],
            NotificationEvent.MERGER_PROPOSED,
            {"merger_id": merger.id, "initiator_id": initiator_id, "event_title": merger.event_title},
        )
        return merger

    def approve_merger(
        self,
        db: Session,
        merger_id: str,
        user_id: str,
        perspective: Union[Perspective, Dict[str, Any]],
    ) -> StoryMerger:
        """
        Approve and submit (or overwrite) the user's perspective.

        Reaching full approval does not publish; it is only logged.
        """
        if not isinstance(perspective, Perspective):
            try:
                perspective = Perspective.model_validate(perspective)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic("Invalid perspective", e) from e

        merger = self._load(db, merger_id, for_update=True)
        if user_id not in merger.participants:
            raise UnauthorizedError()
        if merger.is_published:
            raise InvalidStateError("Merger is already published")

        with store_operation(db, "approve_merger"):
            merger.approval_status = {
                **merger.approval_status,
                user_id: ApprovalState.APPROVED.value,
            }
            merger.merged_content = {
                **merger.merged_content,
                user_id: perspective.model_dump(exclude_none=True),
            }
            db.commit()
            db.refresh(merger)

        if all_approved(merger):
            logger.info(f"All participants approved merger {merger_id}", extra={"merger_id": merger_id})

        notify_all(
            self.notifier,
            [p for p in merger.participants if p != user_id],
            NotificationEvent.MERGER_APPROVED,
            {"merger_id": merger_id, "approved_by": user_id},
        )
        return merger

    def publish_merger(self, db: Session, merger_id: str, price: Optional[float] = None) -> StoryMerger:
        """Publish a fully approved merger with an equal revenue split."""
        merger = self._load(db, merger_id, for_update=True)

        if merger.is_published:
            raise InvalidStateError("Merger is already published")
        if not all_approved(merger):
            pending = [
                user_id for user_id, state in merger.approval_status.items()
                if state != ApprovalState.APPROVED.value
            ]
            raise InvalidStateError(
                "Not all participants have approved this merger",
                details={"pending": pending},
            )

        with store_operation(db, "publish_merger"):
            merger.is_published = True
            merger.published_at = datetime.utcnow()
            merger.price = price
            merger.revenue_share = equal_revenue_share(merger.participants)
            db.commit()
            db.refresh(merger)

        logger.info(f"Merger {merger_id} published", extra={"merger_id": merger_id})
        notify_all(
            self.notifier,
            merger.participants,
            NotificationEvent.MERGER_PUBLISHED,
            {"merger_id": merger_id, "price": price},
        )
        return merger

    def detect_conflicts(self, db: Session, merger_id: str) -> List[Conflict]:
        """Conflicts between submitted perspectives; read-only."""
        merger = self._load(db, merger_id)
        return detect_conflicts(merger.participants, merger.merged_content)

    def resolve_conflict(
        self,
        db: Session,
        merger_id: str,
        conflict_id: str,
        resolution: Union[Resolution, Dict[str, Any]],
    ) -> ResolutionAck:
        """
        Record a resolution for a conflict.

        Audit trail only: merged content is not rewritten and the strategy
        is not enforced.
        """
        if isinstance(resolution, dict):
            try:
                resolution = _resolution_adapter.validate_python(resolution)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic("Invalid resolution", e) from e

        merger = self._load(db, merger_id, for_update=True)
        record = {
            **resolution.model_dump(mode="json"),
            "resolved_at": datetime.utcnow().isoformat() + "Z",
        }

        with store_operation(db, "resolve_conflict"):
            merger.resolutions = {**(merger.resolutions or {}), conflict_id: record}
            db.commit()

        logger.info(
            f"Conflict {conflict_id} resolved by {resolution.strategy}",
            extra={"merger_id": merger_id},
        )
        return ResolutionAck(conflict_id=conflict_id, resolution=record)

    def get_merger(self, db: Session, merger_id: str) -> StoryMerger:
        return self._load(db, merger_id)

    def get_user_mergers(self, db: Session, user_id: str) -> List[StoryMerger]:
        """Published mergers the user takes part in, newest first."""
        mergers = (
            db.query(StoryMerger)
            .filter(StoryMerger.is_published.is_(True))
            .order_by(StoryMerger.published_at.desc(), StoryMerger.id)
            .all()
        )
        return [m for m in mergers if user_id in m.participants]

    def get_pending_mergers(self, db: Session, user_id: str) -> List[StoryMerger]:
        """Unpublished mergers still waiting on this user's approval."""
        mergers = (
            db.query(StoryMerger)
            .filter(StoryMerger.is_published.is_(False))
            .order_by(StoryMerger.created_at.desc(), StoryMerger.id)
            .all()
        )
        return [
            m for m in mergers
            if user_id in m.participants
            and m.approval_status.get(user_id) == ApprovalState.PENDING.value
        ]

    def get_marketplace_mergers(self, db: Session, limit: Optional[int] = None) -> List[MarketplaceListing]:
        mergers = (
            db.query(StoryMerger)
            .filter(StoryMerger.is_published.is_(True))
            .order_by(StoryMerger.published_at.desc(), StoryMerger.id)
            .limit(limit or settings.marketplace_page_size)
            .all()
        )
        return [MarketplaceListing.model_validate(m) for m in mergers]

    def purchase_merger(self, db: Session, merger_id: str, subscriber_id: str) -> PurchaseReceipt:
        """Count a sale of a published merger. Payment is handled elsewhere."""
        merger = self._load(db, merger_id)
        if not merger.is_published:
            raise InvalidStateError("Merger is not available for purchase")

        with store_operation(db, "purchase_merger"):
            increment_sales(db, merger_id)
            db.refresh(merger)

        logger.info(
            "Merger purchased",
            extra={"merger_id": merger_id, "user_id": subscriber_id, "price": merger.price},
        )
        notify_all(
            self.notifier,
            merger.participants,
            NotificationEvent.MERGER_PURCHASED,
            {"merger_id": merger_id, "subscriber_id": subscriber_id},
        )
        return PurchaseReceipt(
            subscriber_id=subscriber_id,
            merger=MarketplaceListing.model_validate(merger),
        )
