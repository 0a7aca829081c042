"""
Connection scoring and memory graph.

Strength is recomputed from scratch on every upsert from shared collisions
and accepted tags; the write itself is a single store-level upsert.
"""
from typing import Dict, Optional

from sqlalchemy.orm import Session

from memoir.database import store_operation
from memoir.errors import InvalidStateError
from memoir.logging_config import get_logger
from memoir.models import Connection, User
from memoir.network.core_types import (
    STRENGTH_BASE,
    STRENGTH_MAX,
    STRENGTH_MUTUAL_TAGS_CAP,
    STRENGTH_PER_MUTUAL_TAG,
    STRENGTH_PER_SHARED_EVENT,
    STRENGTH_SHARED_EVENTS_CAP,
    normalize_pair,
)
from memoir.network.storage import (
    connections_for_user,
    get_connection,
    interaction_counts,
    shared_collisions,
    upsert_connection,
)
from memoir.schemas import (
    CollisionRead,
    ConnectionRead,
    GraphEdge,
    GraphNode,
    MemoryGraph,
    RelationshipTimeline,
    TimelineEntry,
)

logger = get_logger(__name__)


def strength_from_counts(shared_events: int, mutual_tags: int) -> int:
    """Connection strength (20-100) for the given interaction counts."""
    shared_events_score = min(shared_events * STRENGTH_PER_SHARED_EVENT, STRENGTH_SHARED_EVENTS_CAP)
    mutual_tags_score = min(mutual_tags * STRENGTH_PER_MUTUAL_TAG, STRENGTH_MUTUAL_TAGS_CAP)
    return min(STRENGTH_BASE + shared_events_score + mutual_tags_score, STRENGTH_MAX)


class ConnectionEngine:
    """
    Scores and upserts symmetric user connections.

    Only call into this engine from a real connection event (collision
    created, tag accepted): the base score assumes one exists.
    """

    def calculate_strength(self, db: Session, user_a_id: str, user_b_id: str) -> int:
        shared_events, mutual_tags = interaction_counts(db, user_a_id, user_b_id)
        return strength_from_counts(shared_events, mutual_tags)

    def create_or_update_connection(
        self,
        db: Session,
        user_a_id: str,
        user_b_id: str,
        relationship_type: Optional[str] = None,
    ) -> Connection:
        """
        Create the pair's connection or refresh its strength.

        The pair is normalized (smaller id first) before any read or write,
        so (A, B) and (B, A) address the same row.
        """
        if user_a_id == user_b_id:
            raise InvalidStateError("A user cannot be connected to themselves")

        smaller_id, larger_id = normalize_pair(user_a_id, user_b_id)

        with store_operation(db, "create_or_update_connection"):
            shared_events, mutual_tags = interaction_counts(db, smaller_id, larger_id)
            strength = strength_from_counts(shared_events, mutual_tags)
            connection = upsert_connection(
                db,
                smaller_id,
                larger_id,
                strength_score=strength,
                shared_events=shared_events,
                relationship_type=relationship_type,
            )

        logger.info(
            f"Connection {smaller_id} <-> {larger_id} strength {strength}",
            extra={"user_id": user_a_id},
        )
        return connection

    def get_memory_graph(self, db: Session, user_id: str) -> MemoryGraph:
        """Project every connection touching user_id into nodes and edges."""
        connections = connections_for_user(db, user_id)

        node_ids = []
        for conn in connections:
            for member in (conn.user_a_id, conn.user_b_id):
                if member not in node_ids:
                    node_ids.append(member)

        directory: Dict[str, User] = {}
        if node_ids:
            directory = {
                u.id: u for u in db.query(User).filter(User.id.in_(node_ids)).all()
            }

        nodes = []
        for node_id in node_ids:
            user = directory.get(node_id)
            nodes.append(GraphNode(
                id=node_id,
                name=user.name if user else None,
                email=user.email if user else None,
            ))

        edges = [
            GraphEdge(
                source=conn.user_a_id,
                target=conn.user_b_id,
                strength=conn.strength_score,
                relationship_type=conn.relationship_type,
                shared_events=conn.shared_events,
            )
            for conn in connections
        ]

        return MemoryGraph(nodes=nodes, edges=edges, total_connections=len(connections))

    def get_relationship_timeline(
        self,
        db: Session,
        user_a_id: str,
        user_b_id: str,
    ) -> RelationshipTimeline:
        """
        Connection row plus every collision both users share.

        A never-connected pair yields a zero-strength empty timeline.
        """
        smaller_id, larger_id = normalize_pair(user_a_id, user_b_id)
        connection = get_connection(db, smaller_id, larger_id)

        if connection is None:
            return RelationshipTimeline(connection=None, strength=0, shared_events=[], timeline=[])

        collisions = shared_collisions(db, smaller_id, larger_id)
        return RelationshipTimeline(
            connection=ConnectionRead.model_validate(connection),
            strength=connection.strength_score,
            shared_events=[CollisionRead.model_validate(c) for c in collisions],
            timeline=[
                TimelineEntry(
                    collision_id=c.id,
                    title=c.title,
                    timestamp=c.timestamp,
                    detected_by=c.detected_by,
                    verified=c.verified,
                )
                for c in collisions
            ],
        )
