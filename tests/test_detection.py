"""Tests for the broad collision scans and the detect-all runner."""
import json
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from memoir.errors import StoreFailureError
from memoir.models import MemoryCollision
from memoir.network.core_types import DetectionMethod
from memoir.network.detection import DetectionEngine

NOON = datetime(2024, 1, 1, 12, 0)


class TestTemporalScan:

    def test_posts_within_four_hours(self, db, detection_engine, make_content):
        post = make_content("alice", NOON, "Concert night")
        make_content("bob", NOON + timedelta(hours=2), "Great show")
        make_content("bob", NOON + timedelta(hours=3), "Still buzzing")
        make_content("carol", NOON + timedelta(hours=6), "Too late")

        candidates = detection_engine.detect_temporal_collisions(db, "alice")

        assert len(candidates) == 1
        assert candidates[0].type == DetectionMethod.TEMPORAL
        assert candidates[0].users == ["alice", "bob"]
        assert candidates[0].confidence == 75
        assert candidates[0].event_data["related_content"] == post.id
        assert candidates[0].event_data["timestamp"] == NOON

    def test_own_posts_ignored(self, db, detection_engine, make_content):
        make_content("alice", NOON)
        make_content("alice", NOON + timedelta(hours=1))

        assert detection_engine.detect_temporal_collisions(db, "alice") == []


class TestSpatialScan:

    def test_media_inside_box(self, db, detection_engine, make_media):
        make_media("alice", NOON, 10.0, 20.0)
        make_media("bob", None, 10.0004, 19.9996)
        make_media("carol", NOON, 10.0008, 20.0)

        candidates = detection_engine.detect_spatial_collisions(db, "alice")

        assert len(candidates) == 1
        assert candidates[0].type == DetectionMethod.SPATIAL
        assert candidates[0].users == ["alice", "bob"]
        assert candidates[0].confidence == 85
        assert candidates[0].event_data["location"] == {"lat": 10.0, "lon": 20.0}

    def test_ungeotagged_media_ignored(self, db, detection_engine, make_media):
        make_media("alice", NOON)
        make_media("bob", NOON, 10.0, 20.0)

        assert detection_engine.detect_spatial_collisions(db, "alice") == []


class TestMentionScan:

    def test_name_mentioned(self, db, detection_engine, make_user, make_content):
        make_user("alice", name="Alice Walker")
        mention = make_content("bob", NOON, "Lunch with Alice Walker today")
        make_content("carol", NOON, "Lunch alone")

        candidates = detection_engine.detect_mutual_mentions(db, "alice")

        assert len(candidates) == 1
        assert candidates[0].type == DetectionMethod.MUTUAL_MENTION
        assert candidates[0].users == ["alice", "bob"]
        assert candidates[0].confidence == 60
        assert candidates[0].event_data["content_id"] == mention.id

    def test_unknown_or_unnamed_user(self, db, detection_engine, make_user, make_content):
        make_user("alice")
        make_content("bob", NOON, "None here")

        assert detection_engine.detect_mutual_mentions(db, "alice") == []
        assert detection_engine.detect_mutual_mentions(db, "ghost") == []


class TestDetectAll:

    def _seed(self, make_user, make_content, make_media):
        make_user("alice", name="Alice")
        make_content("alice", NOON, "Beach day")
        make_content("bob", NOON + timedelta(hours=1), "Beach day with Alice")
        make_media("alice", datetime(2024, 2, 1, 9, 0), 10.0, 20.0)
        make_media("bob", datetime(2024, 2, 1, 10, 0), 10.0004, 20.0004)

    def test_detect_all_persists(self, db, detection_engine, make_user, make_content, make_media):
        self._seed(make_user, make_content, make_media)

        candidates = detection_engine.detect_all_collisions(db, "alice")

        assert sorted(c.type.value for c in candidates) == ["mutual_mention", "spatial", "temporal"]
        rows = db.query(MemoryCollision).order_by(MemoryCollision.timestamp).all()
        assert len(rows) == 3
        assert all(r.title == "Potential shared memory" for r in rows)
        assert all(r.users == ["alice", "bob"] for r in rows)
        spatial = [r for r in rows if r.detected_by == "spatial"][0]
        assert json.loads(spatial.location) == {"lat": 10.0, "lon": 20.0}
        assert spatial.confidence == 85

    def test_detect_all_twice_no_duplicates(self, db, detection_engine, make_user, make_content, make_media):
        self._seed(make_user, make_content, make_media)

        detection_engine.detect_all_collisions(db, "alice")
        candidates = detection_engine.detect_all_collisions(db, "alice")

        assert len(candidates) == 3
        assert db.query(MemoryCollision).count() == 3

    def test_detect_all_nothing_found(self, db, detection_engine):
        assert detection_engine.detect_all_collisions(db, "alice") == []
        assert db.query(MemoryCollision).count() == 0

    def test_scan_read_error_becomes_store_failure(self, db, collision_engine, session_factory, make_content):
        make_content("alice", NOON, "Beach day")

        class FailingScan(DetectionEngine):
            def detect_spatial_collisions(self, db, user_id):
                raise OperationalError("SELECT media", {}, Exception("connection reset"))

        engine = FailingScan(collision_engine, session_factory=session_factory)

        with pytest.raises(StoreFailureError) as exc_info:
            engine.detect_all_collisions(db, "alice")

        assert exc_info.value.details == {"operation": "detect_spatial_collisions"}
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert db.query(MemoryCollision).count() == 0
