"""Tests for connection scoring, upserts and the memory graph."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateTable

from memoir.errors import InvalidStateError
from memoir.models import Connection
from memoir.network.connections import strength_from_counts
from memoir.network.core_types import DetectionMethod

NOON = datetime(2024, 1, 1, 12, 0)


def _collide(db, collision_engine, users, offset_hours=0):
    return collision_engine.create_collision(
        db, users, NOON + timedelta(hours=offset_hours), DetectionMethod.MANUAL, 1.0
    )


class TestStrength:
    """Test suite for the strength formula."""

    def test_base_only(self):
        assert strength_from_counts(0, 0) == 20

    def test_components(self):
        assert strength_from_counts(2, 1) == 45

    def test_caps(self):
        assert strength_from_counts(6, 0) == 70
        assert strength_from_counts(0, 7) == 50
        assert strength_from_counts(100, 100) == 100

    def test_bounds(self):
        for shared in range(0, 12):
            for tags in range(0, 12):
                assert 20 <= strength_from_counts(shared, tags) <= 100

    def test_calculate_strength_counts_store(self, db, connection_engine, collision_engine, make_tag):
        _collide(db, collision_engine, ["alice", "bob"])
        _collide(db, collision_engine, ["bob", "alice", "carol"], offset_hours=1)
        _collide(db, collision_engine, ["alice", "carol"], offset_hours=2)
        make_tag("alice", "bob", status="accepted")
        make_tag("bob", "alice", status="accepted")
        make_tag("alice", "bob", status="pending")

        assert connection_engine.calculate_strength(db, "alice", "bob") == 20 + 20 + 10

    def test_membership_is_exact(self, db, connection_engine, collision_engine):
        """A collision of u10 and u2 does not count for u1."""
        _collide(db, collision_engine, ["u10", "u2"])
        assert connection_engine.calculate_strength(db, "u1", "u2") == 20


class TestCreateOrUpdateConnection:
    """Test suite for create_or_update_connection."""

    def test_pair_is_normalized(self, db, connection_engine):
        connection = connection_engine.create_or_update_connection(db, "zoe", "adam")

        assert connection.user_a_id == "adam"
        assert connection.user_b_id == "zoe"
        assert connection.strength_score == 20

    def test_symmetry(self, db, connection_engine, collision_engine):
        _collide(db, collision_engine, ["alice", "bob"])

        first = connection_engine.create_or_update_connection(db, "alice", "bob")
        second = connection_engine.create_or_update_connection(db, "bob", "alice")

        assert first.id == second.id
        assert first.strength_score == second.strength_score == 30
        assert db.query(Connection).count() == 1

    def test_strength_recomputed_on_update(self, db, connection_engine, collision_engine):
        connection_engine.create_or_update_connection(db, "alice", "bob")
        _collide(db, collision_engine, ["alice", "bob"])
        _collide(db, collision_engine, ["alice", "bob"], offset_hours=1)

        connection = connection_engine.create_or_update_connection(db, "bob", "alice")

        assert connection.strength_score == 40
        assert connection.shared_events == 2

    def test_relationship_type_not_clobbered(self, db, connection_engine):
        connection_engine.create_or_update_connection(db, "alice", "bob", "friend")

        kept = connection_engine.create_or_update_connection(db, "bob", "alice")
        assert kept.relationship_type == "friend"

        changed = connection_engine.create_or_update_connection(db, "alice", "bob", "family")
        assert changed.relationship_type == "family"

    def test_last_interaction_bumped(self, db, connection_engine):
        first = connection_engine.create_or_update_connection(db, "alice", "bob")
        first_seen = first.last_interaction

        second = connection_engine.create_or_update_connection(db, "alice", "bob")

        assert second.last_interaction >= first_seen

    def test_self_connection_rejected(self, db, connection_engine):
        with pytest.raises(InvalidStateError):
            connection_engine.create_or_update_connection(db, "alice", "alice")


class TestMemoryGraph:
    """Test suite for get_memory_graph."""

    def test_graph_nodes_and_edges(self, db, connection_engine, make_user):
        make_user("alice", name="Alice", email="alice@example.com")
        make_user("bob", name="Bob", email="bob@example.com")
        connection_engine.create_or_update_connection(db, "alice", "bob", "friend")
        connection_engine.create_or_update_connection(db, "carol", "alice")
        connection_engine.create_or_update_connection(db, "bob", "carol")

        graph = connection_engine.get_memory_graph(db, "alice")

        assert graph.total_connections == 2
        assert sorted(n.id for n in graph.nodes) == ["alice", "bob", "carol"]
        by_id = {n.id: n for n in graph.nodes}
        assert by_id["bob"].name == "Bob"
        assert by_id["carol"].name is None
        friend_edge = [e for e in graph.edges if e.target == "bob"][0]
        assert friend_edge.source == "alice"
        assert friend_edge.relationship_type == "friend"
        assert friend_edge.strength == 20

    def test_empty_graph(self, db, connection_engine):
        graph = connection_engine.get_memory_graph(db, "nobody")
        assert graph.nodes == []
        assert graph.edges == []
        assert graph.total_connections == 0


class TestRelationshipTimeline:
    """Test suite for get_relationship_timeline."""

    def test_never_connected(self, db, connection_engine):
        timeline = connection_engine.get_relationship_timeline(db, "alice", "bob")

        assert timeline.connection is None
        assert timeline.strength == 0
        assert timeline.shared_events == []
        assert timeline.timeline == []

    def test_shared_events_in_order(self, db, connection_engine, collision_engine):
        later = _collide(db, collision_engine, ["alice", "bob"], offset_hours=5)
        earlier = _collide(db, collision_engine, ["bob", "alice", "carol"])
        _collide(db, collision_engine, ["alice", "carol"], offset_hours=2)
        connection_engine.create_or_update_connection(db, "alice", "bob")

        timeline = connection_engine.get_relationship_timeline(db, "bob", "alice")

        assert timeline.connection.user_a_id == "alice"
        assert timeline.strength == 40
        assert [e.id for e in timeline.shared_events] == [earlier.id, later.id]
        assert [t.collision_id for t in timeline.timeline] == [earlier.id, later.id]


class TestPairOrdering:
    """Pairs are stored in code point order on every backend."""

    def test_mixed_case_ids(self, db, connection_engine):
        connection = connection_engine.create_or_update_connection(db, "adam", "Zoe")

        assert (connection.user_a_id, connection.user_b_id) == ("Zoe", "adam")

    def test_postgres_check_uses_binary_collation(self):
        ddl = str(CreateTable(Connection.__table__).compile(dialect=postgresql.dialect()))

        assert 'user_a_id < user_b_id COLLATE "C"' in ddl
        assert "ck_connections_pair_order_binary" not in ddl

    def test_sqlite_check_is_plain_comparison(self):
        ddl = str(CreateTable(Connection.__table__).compile(dialect=sqlite.dialect()))

        assert "ck_connections_pair_order_binary" in ddl
        assert "COLLATE" not in ddl
