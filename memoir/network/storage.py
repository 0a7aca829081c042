"""
Memory network storage utilities.

Store-level writes that must be atomic (collision insert with dedup,
connection upsert, sales counter) and the membership queries shared by
the engines.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from memoir.models import Connection, EventTag, MemoryCollision, StoryMerger
from memoir.network.core_types import (
    DetectionMethod,
    TagStatus,
    unique_users,
    users_key,
)


def _insert_for(db: Session, model):
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


def insert_collision(
    db: Session,
    user_ids: List[str],
    timestamp: datetime,
    detected_by: DetectionMethod,
    confidence: float,
    title: str,
    location: Optional[str] = None,
) -> Optional[MemoryCollision]:
    """
    Insert a collision unless one with the same (timestamp, users-set) exists.

    Returns:
        The new collision, or None when it was a duplicate.
    """
    users = unique_users(user_ids)
    key = users_key(users)
    table = MemoryCollision.__table__

    stmt = (
        _insert_for(db, MemoryCollision)
        .values(
            title=title,
            timestamp=timestamp,
            users=users,
            users_key=key,
            confidence=confidence,
            detected_by=detected_by.value,
            location=location,
            verified=False,
        )
        .on_conflict_do_nothing(index_elements=[table.c.timestamp, table.c.users_key])
        .returning(table.c.id)
    )
    collision_id = db.execute(stmt).scalar()
    db.commit()

    if collision_id is None:
        return None
    return db.get(MemoryCollision, collision_id)


def upsert_connection(
    db: Session,
    user_a_id: str,
    user_b_id: str,
    strength_score: int,
    shared_events: int,
    relationship_type: Optional[str] = None,
) -> Connection:
    """
    Create or update the connection for an already-normalized pair in one
    statement. An omitted relationship_type keeps the stored one.
    """
    table = Connection.__table__
    now = datetime.utcnow()

    stmt = _insert_for(db, Connection).values(
        user_a_id=user_a_id,
        user_b_id=user_b_id,
        strength_score=strength_score,
        shared_events=shared_events,
        relationship_type=relationship_type,
        last_interaction=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.user_a_id, table.c.user_b_id],
        set_={
            "strength_score": stmt.excluded.strength_score,
            "shared_events": stmt.excluded.shared_events,
            "relationship_type": func.coalesce(
                stmt.excluded.relationship_type, table.c.relationship_type
            ),
            "last_interaction": stmt.excluded.last_interaction,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    db.commit()

    return get_connection(db, user_a_id, user_b_id)


def get_connection(db: Session, user_a_id: str, user_b_id: str) -> Optional[Connection]:
    """Fetch a connection by its normalized key, bypassing stale identity-map state."""
    return (
        db.query(Connection)
        .populate_existing()
        .filter(
            Connection.user_a_id == user_a_id,
            Connection.user_b_id == user_b_id,
        )
        .first()
    )


def connections_for_user(db: Session, user_id: str) -> List[Connection]:
    """All connections touching a user."""
    return (
        db.query(Connection)
        .filter(or_(Connection.user_a_id == user_id, Connection.user_b_id == user_id))
        .order_by(Connection.strength_score.desc(), Connection.id)
        .all()
    )


def shared_collisions(db: Session, user_a_id: str, user_b_id: str) -> List[MemoryCollision]:
    """
    Collisions whose participants include both users, oldest first.

    users_key is pre-filtered with LIKE; exact membership is checked on the
    decoded list so "u1" never matches "u10".
    """
    candidates = (
        db.query(MemoryCollision)
        .filter(MemoryCollision.users_key.contains(user_a_id))
        .filter(MemoryCollision.users_key.contains(user_b_id))
        .order_by(MemoryCollision.timestamp.asc(), MemoryCollision.id)
        .all()
    )
    return [
        c for c in candidates
        if user_a_id in c.users and user_b_id in c.users
    ]


def count_accepted_tags(db: Session, user_a_id: str, user_b_id: str) -> int:
    """Accepted tags between the pair, in either direction."""
    return (
        db.query(func.count(EventTag.id))
        .filter(
            or_(
                (EventTag.tagger_id == user_a_id) & (EventTag.tagged_user_id == user_b_id),
                (EventTag.tagger_id == user_b_id) & (EventTag.tagged_user_id == user_a_id),
            ),
            EventTag.status == TagStatus.ACCEPTED.value,
        )
        .scalar()
    )


def interaction_counts(db: Session, user_a_id: str, user_b_id: str) -> Tuple[int, int]:
    """(shared collisions, accepted tags) for a pair."""
    return (
        len(shared_collisions(db, user_a_id, user_b_id)),
        count_accepted_tags(db, user_a_id, user_b_id),
    )


def increment_sales(db: Session, merger_id: str) -> None:
    """Atomic sales_count = sales_count + 1."""
    db.execute(
        update(StoryMerger)
        .where(StoryMerger.id == merger_id)
        .values(sales_count=StoryMerger.sales_count + 1)
    )
    db.commit()
