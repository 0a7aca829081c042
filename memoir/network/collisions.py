"""
Media-pair collision detection.

Compares capture time and geotag of two users' media. Confidence here is on
a 0-1 scale; the broad scans in detection.py use 0-100.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from memoir.database import store_operation
from memoir.errors import NotFoundError
from memoir.logging_config import get_logger
from memoir.models import Media, MemoryCollision
from memoir.network.connections import ConnectionEngine
from memoir.network.core_types import (
    PAIR_CONFIDENCE_SPATIAL_TEMPORAL,
    PAIR_CONFIDENCE_TEMPORAL,
    PAIR_DEGREE_THRESHOLD,
    PAIR_TIME_WINDOW,
    DetectionMethod,
    MediaPoint,
    Overlap,
)
from memoir.network.storage import connections_for_user, insert_collision

logger = get_logger(__name__)


def is_nearby(a: MediaPoint, b: MediaPoint, threshold: float = PAIR_DEGREE_THRESHOLD) -> bool:
    """
    Flat-degree proximity check.

    Not haversine: a degree of longitude shrinks towards the poles, so the
    box gets narrower at high latitude.
    """
    if not (a.has_location() and b.has_location()):
        return False
    return (
        abs(a.latitude - b.latitude) < threshold
        and abs(a.longitude - b.longitude) < threshold
    )


def classify_pair(a: MediaPoint, b: MediaPoint) -> Optional[Overlap]:
    """Overlap for one cross pair, or None when they do not match in time."""
    if a.taken_at is None or b.taken_at is None:
        return None

    is_same_day = abs(a.taken_at - b.taken_at) < PAIR_TIME_WINDOW
    if not is_same_day:
        return None

    if is_nearby(a, b):
        return Overlap(
            type=DetectionMethod.SPATIAL_TEMPORAL,
            media_a=a,
            media_b=b,
            confidence=PAIR_CONFIDENCE_SPATIAL_TEMPORAL,
            timestamp=a.taken_at,
        )
    return Overlap(
        type=DetectionMethod.TEMPORAL,
        media_a=a,
        media_b=b,
        confidence=PAIR_CONFIDENCE_TEMPORAL,
        timestamp=a.taken_at,
    )


def collision_title(timestamp: datetime) -> str:
    return f"Shared Memory on {timestamp.strftime('%a %b %d %Y')}"


class CollisionEngine:
    """Pairwise spatiotemporal matching and collision persistence."""

    def __init__(self, connection_engine: Optional[ConnectionEngine] = None):
        self.connection_engine = connection_engine or ConnectionEngine()

    def _timestamped_media(self, db: Session, user_id: str) -> List[MediaPoint]:
        rows = (
            db.query(Media)
            .filter(Media.user_id == user_id, Media.taken_at.isnot(None))
            .order_by(Media.taken_at, Media.id)
            .all()
        )
        return [MediaPoint.model_validate(m) for m in rows]

    def detect_overlaps(self, db: Session, user_a_id: str, user_b_id: str) -> List[Overlap]:
        """
        Every matching cross pair of the two users' timestamped media.

        Candidates only: nothing is persisted and existing collisions are
        not consulted.
        """
        media_a = self._timestamped_media(db, user_a_id)
        media_b = self._timestamped_media(db, user_b_id)

        overlaps = []
        for a in media_a:
            for b in media_b:
                overlap = classify_pair(a, b)
                if overlap is not None:
                    overlaps.append(overlap)
        return overlaps

    def process_new_media(self, db: Session, media_id: str) -> List[MemoryCollision]:
        """
        Match a freshly ingested media item against connected users' media.

        Only spatial matches within the 24h window are persisted. Returns
        the collisions actually created; re-processing the same item creates
        nothing new.
        """
        with store_operation(db, "load_media"):
            media = db.get(Media, media_id)
        if media is None:
            raise NotFoundError("Media")
        if media.taken_at is None:
            return []

        new_point = MediaPoint.model_validate(media)

        with store_operation(db, "find_media_matches"):
            friend_ids = []
            for conn in connections_for_user(db, media.user_id):
                other = conn.user_b_id if conn.user_a_id == media.user_id else conn.user_a_id
                if other not in friend_ids:
                    friend_ids.append(other)

            if not friend_ids:
                return []

            potential_matches = (
                db.query(Media)
                .filter(
                    Media.user_id.in_(friend_ids),
                    Media.taken_at >= media.taken_at - PAIR_TIME_WINDOW,
                    Media.taken_at <= media.taken_at + PAIR_TIME_WINDOW,
                )
                .order_by(Media.taken_at, Media.id)
                .all()
            )

        created = []
        for match in potential_matches:
            if not is_nearby(new_point, MediaPoint.model_validate(match)):
                continue
            collision = self.create_collision(
                db,
                [media.user_id, match.user_id],
                media.taken_at,
                DetectionMethod.SPATIAL_TEMPORAL,
                PAIR_CONFIDENCE_SPATIAL_TEMPORAL,
                location=f"Shared memory at {media.latitude}, {media.longitude}",
            )
            if collision is not None:
                created.append(collision)
                self.connection_engine.create_or_update_connection(db, media.user_id, match.user_id)

        return created

    def create_collision(
        self,
        db: Session,
        user_ids: List[str],
        timestamp: datetime,
        detected_by: DetectionMethod,
        confidence: float,
        location: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Optional[MemoryCollision]:
        """Persist a collision; an existing (timestamp, users) pair is a silent no-op."""
        with store_operation(db, "create_collision"):
            collision = insert_collision(
                db,
                user_ids,
                timestamp,
                detected_by,
                confidence,
                title=title or collision_title(timestamp),
                location=location,
            )

        if collision is None:
            logger.debug(f"Collision for {', '.join(user_ids)} at {timestamp.isoformat()} already exists")
            return None

        logger.info(
            f"Created memory collision for users {', '.join(collision.users)}",
            extra={"collision_id": collision.id},
        )
        return collision
