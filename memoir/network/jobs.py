"""
Batch collision detection.

Runs detect-all for every opted-in user, or only those active in the last
day. One user's failure is logged and the batch moves on.
"""
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from memoir.database import SessionLocal, store_operation
from memoir.errors import MemoirError
from memoir.logging_config import get_logger
from memoir.models import User
from memoir.monitoring import capture_exception, capture_message
from memoir.network.detection import DetectionEngine

logger = get_logger(__name__)

ACTIVE_WINDOW = timedelta(hours=24)


class CollisionDetectionJob:
    """Guards against overlapping runs; a second run while busy is skipped."""

    def __init__(
        self,
        detection_engine: Optional[DetectionEngine] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.session_factory = session_factory
        self.detection_engine = detection_engine or DetectionEngine(session_factory=session_factory)
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def status(self) -> Dict[str, Any]:
        return {"is_running": self.is_running}

    def detect_for_user(self, db: Session, user_id: str) -> int:
        return len(self.detection_engine.detect_all_collisions(db, user_id))

    def run(self, active_only: bool = False) -> Optional[Dict[str, int]]:
        """
        Scan opted-in users.

        Returns:
            {"users": n, "collisions": n, "failures": n}, or None when
            another run is still in progress
        """
        if not self._lock.acquire(blocking=False):
            logger.info("Collision detection already running, skipping")
            return None

        try:
            with self.session_factory() as db:
                with store_operation(db, "list_detection_users"):
                    user_ids = self._eligible_users(db, active_only)
                logger.info(f"Found {len(user_ids)} users with collision detection enabled")

                total = 0
                failures = 0
                for user_id in user_ids:
                    try:
                        total += self.detect_for_user(db, user_id)
                    except Exception as e:
                        failures += 1
                        db.rollback()
                        message = e.message if isinstance(e, MemoirError) else str(e)
                        logger.error(
                            f"Error detecting collisions: {message}",
                            exc_info=True,
                            extra={"user_id": user_id},
                        )
                        capture_exception(e, context={"user_id": user_id})

            logger.info(f"Collision detection complete: {total} collisions found")
            if failures:
                capture_message(
                    f"Collision detection finished with {failures} failed users",
                    level="warning",
                    context={"users": len(user_ids), "collisions": total},
                )
            return {"users": len(user_ids), "collisions": total, "failures": failures}
        finally:
            self._lock.release()

    def _eligible_users(self, db: Session, active_only: bool) -> List[str]:
        query = db.query(User.id).filter(User.collision_detection_enabled.is_(True))
        if active_only:
            query = query.filter(User.updated_at >= datetime.utcnow() - ACTIVE_WINDOW)
        return [row.id for row in query.order_by(User.id).all()]
