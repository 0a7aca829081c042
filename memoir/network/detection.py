"""
Broad collision scans for a single user.

Three independent detectors (temporal posts, geotagged media, name
mentions) run concurrently, each on its own session, and their results are
persisted together. Confidence here is on a 0-100 scale.
"""
import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from memoir.config import settings
from memoir.database import SessionLocal, store_operation
from memoir.logging_config import get_logger
from memoir.models import Content, Media, User
from memoir.network.collisions import CollisionEngine
from memoir.network.core_types import (
    SCAN_CONFIDENCE_MENTION,
    SCAN_CONFIDENCE_SPATIAL,
    SCAN_CONFIDENCE_TEMPORAL,
    SCAN_DEGREE_RANGE,
    SCAN_TIME_WINDOW,
    CollisionCandidate,
    DetectionMethod,
    unique_users,
)

logger = get_logger(__name__)

SCAN_TITLE = "Potential shared memory"


class DetectionEngine:
    """Temporal, spatial and mutual-mention scans plus the detect-all runner."""

    def __init__(
        self,
        collision_engine: Optional[CollisionEngine] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        max_workers: Optional[int] = None,
    ):
        self.collision_engine = collision_engine or CollisionEngine()
        self.session_factory = session_factory
        self.max_workers = max_workers or settings.detection_max_workers

    def detect_temporal_collisions(self, db: Session, user_id: str) -> List[CollisionCandidate]:
        """Other users' posts within 4 hours of each of the user's posts."""
        user_content = (
            db.query(Content)
            .filter(Content.user_id == user_id)
            .order_by(Content.timestamp, Content.id)
            .all()
        )

        collisions = []
        for content in user_content:
            overlapping = (
                db.query(Content)
                .filter(
                    Content.user_id != user_id,
                    Content.timestamp >= content.timestamp - SCAN_TIME_WINDOW,
                    Content.timestamp <= content.timestamp + SCAN_TIME_WINDOW,
                )
                .order_by(Content.timestamp, Content.id)
                .all()
            )
            if overlapping:
                collisions.append(CollisionCandidate(
                    type=DetectionMethod.TEMPORAL,
                    users=unique_users([user_id] + [c.user_id for c in overlapping]),
                    confidence=SCAN_CONFIDENCE_TEMPORAL,
                    event_data={
                        "timestamp": content.timestamp,
                        "related_content": content.id,
                    },
                ))
        return collisions

    def detect_spatial_collisions(self, db: Session, user_id: str) -> List[CollisionCandidate]:
        """Other users' media inside a +/-0.0005 degree box around each geotagged item."""
        user_media = (
            db.query(Media)
            .filter(
                Media.user_id == user_id,
                Media.latitude.isnot(None),
                Media.longitude.isnot(None),
            )
            .order_by(Media.taken_at, Media.id)
            .all()
        )

        collisions = []
        for media in user_media:
            nearby = (
                db.query(Media)
                .filter(
                    Media.user_id != user_id,
                    Media.latitude >= media.latitude - SCAN_DEGREE_RANGE,
                    Media.latitude <= media.latitude + SCAN_DEGREE_RANGE,
                    Media.longitude >= media.longitude - SCAN_DEGREE_RANGE,
                    Media.longitude <= media.longitude + SCAN_DEGREE_RANGE,
                )
                .order_by(Media.id)
                .all()
            )
            if nearby:
                collisions.append(CollisionCandidate(
                    type=DetectionMethod.SPATIAL,
                    users=unique_users([user_id] + [m.user_id for m in nearby]),
                    confidence=SCAN_CONFIDENCE_SPATIAL,
                    event_data={
                        "location": {"lat": media.latitude, "lon": media.longitude},
                        "timestamp": media.taken_at,
                    },
                ))
        return collisions

    def detect_mutual_mentions(self, db: Session, user_id: str) -> List[CollisionCandidate]:
        """
        Other users' posts containing the user's display name.

        Plain substring match, so common names produce false positives.
        """
        user = db.get(User, user_id)
        if user is None or not user.name:
            return []

        mentions = (
            db.query(Content)
            .filter(Content.user_id != user_id, Content.text.contains(user.name))
            .order_by(Content.timestamp, Content.id)
            .all()
        )

        return [
            CollisionCandidate(
                type=DetectionMethod.MUTUAL_MENTION,
                users=[user_id, mention.user_id],
                confidence=SCAN_CONFIDENCE_MENTION,
                event_data={
                    "content_id": mention.id,
                    "text": mention.text,
                    "timestamp": mention.timestamp,
                },
            )
            for mention in mentions
        ]

    def _scan(self, detector: Callable[[Session, str], List[CollisionCandidate]], user_id: str):
        with self.session_factory() as scan_db:
            with store_operation(scan_db, detector.__name__):
                return detector(scan_db, user_id)

    def detect_all_collisions(self, db: Session, user_id: str) -> List[CollisionCandidate]:
        """
        Run the three scans concurrently, then persist every result.

        Results that repeat an existing (timestamp, users) collision are
        dropped by the store. Unbounded: cost grows with the user's history.
        """
        logger.info(f"Running collision detection for user {user_id}", extra={"user_id": user_id})

        detectors = [
            self.detect_temporal_collisions,
            self.detect_spatial_collisions,
            self.detect_mutual_mentions,
        ]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._scan, detector, user_id) for detector in detectors]
            results = [future.result() for future in futures]

        all_collisions = [candidate for result in results for candidate in result]

        created = 0
        for candidate in all_collisions:
            location = candidate.event_data.get("location")
            collision = self.collision_engine.create_collision(
                db,
                candidate.users,
                candidate.event_data.get("timestamp") or datetime.utcnow(),
                candidate.type,
                candidate.confidence,
                location=json.dumps(location) if location else None,
                title=SCAN_TITLE,
            )
            if collision is not None:
                created += 1

        logger.info(
            f"Detected {len(all_collisions)} collisions for user {user_id} ({created} new)",
            extra={"user_id": user_id},
        )
        return all_collisions
