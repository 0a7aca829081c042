import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
    Index,
    Boolean,
    Float,
    CheckConstraint,
    UniqueConstraint,
)

from memoir.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Directory record; owned by the account subsystem, read by the core."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=True)
    collision_detection_enabled = Column(Boolean, default=True, nullable=False)
    memory_completeness = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Content(Base):
    """User-authored post text with the moment it describes."""
    __tablename__ = "content"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    text = Column(Text, nullable=False, default="")
    timestamp = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_content_user_id", "user_id"),
        Index("idx_content_timestamp", "timestamp"),
    )


class Media(Base):
    """Uploaded photo/video with optional capture time and geotag."""
    __tablename__ = "media"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    taken_at = Column(DateTime, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_media_user_taken_at", "user_id", "taken_at"),
        Index("idx_media_lat_lon", "latitude", "longitude"),
    )


class EventTag(Base):
    """One user tagging another in a shared event."""
    __tablename__ = "event_tags"

    id = Column(String(64), primary_key=True, default=_uuid)
    event_id = Column(String(64), nullable=True)
    event_title = Column(String(255), nullable=True)
    event_date = Column(DateTime, nullable=True)
    tagger_id = Column(String(64), nullable=False)
    tagged_user_id = Column(String(64), nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, accepted, declined
    tagged_user_perspective = Column(Text, nullable=True)
    verification_data = Column(JSON, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_event_tags_pair_status", "tagger_id", "tagged_user_id", "status"),
        Index("idx_event_tags_tagged_user", "tagged_user_id", "status"),
    )


class MemoryCollision(Base):
    """
    A detected or asserted shared moment.

    users_key is the sorted, de-duplicated participant list; together with
    timestamp it identifies the collision, so duplicates are rejected by
    the store.
    """
    __tablename__ = "memory_collisions"

    id = Column(String(64), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    users = Column(JSON, nullable=False)
    users_key = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False)
    detected_by = Column(String(50), nullable=False)
    location = Column(Text, nullable=True)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("timestamp", "users_key", name="uq_memory_collisions_timestamp_users"),
        Index("idx_memory_collisions_users_key", "users_key"),
    )


class Connection(Base):
    """Symmetric relationship between two users, keyed with user_a_id < user_b_id."""
    __tablename__ = "connections"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_a_id = Column(String(64), nullable=False)
    user_b_id = Column(String(64), nullable=False)
    strength_score = Column(Integer, nullable=False, default=0)
    shared_events = Column(Integer, nullable=False, default=0)
    relationship_type = Column(String(100), nullable=True)
    last_interaction = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_connections_pair"),
        # Code point order, matching normalize_pair()
        CheckConstraint('user_a_id < user_b_id COLLATE "C"', name="ck_connections_pair_order").ddl_if(dialect="postgresql"),
        CheckConstraint("user_a_id < user_b_id", name="ck_connections_pair_order_binary").ddl_if(dialect="sqlite"),
        Index("idx_connections_user_b", "user_b_id"),
    )


class StoryMerger(Base):
    """
    Collaborative narrative built from a collision.

    participants is frozen at creation; approval_status, merged_content,
    revenue_share and resolutions are keyed by user id / conflict id.
    """
    __tablename__ = "story_mergers"

    id = Column(String(64), primary_key=True, default=_uuid)
    event_id = Column(String(64), ForeignKey("memory_collisions.id"), nullable=False)
    event_title = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=False)
    participants = Column(JSON, nullable=False)
    approval_status = Column(JSON, nullable=False)
    merged_content = Column(JSON, nullable=False)
    resolutions = Column(JSON, nullable=False, default=dict)
    is_published = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime, nullable=True)
    price = Column(Float, nullable=True)
    revenue_share = Column(JSON, nullable=True)
    sales_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_story_mergers_event_id", "event_id"),
        Index("idx_story_mergers_published", "is_published", "published_at"),
    )
