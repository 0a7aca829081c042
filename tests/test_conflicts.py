"""Tests for perspective conflict heuristics."""
from memoir.network.conflicts import detect_conflicts
from memoir.network.core_types import ConflictType

PARTICIPANTS = ["alice", "bob", "carol"]


def test_no_perspectives():
    assert detect_conflicts(PARTICIPANTS, {}) == []


def test_single_perspective():
    content = {"alice": {"narrative": "x", "mood": "happy"}}
    assert detect_conflicts(PARTICIPANTS, content) == []


def test_matching_moods_no_conflict():
    content = {
        "alice": {"narrative": "A long day out", "mood": "happy"},
        "bob": {"narrative": "A long day too", "mood": "happy"},
    }
    assert detect_conflicts(PARTICIPANTS, content) == []


def test_mood_values_in_participant_order():
    content = {
        "carol": {"narrative": "cccc", "mood": "calm"},
        "alice": {"narrative": "aaaa", "mood": "happy"},
        "bob": {"narrative": "bbbb", "mood": "happy"},
    }

    conflicts = detect_conflicts(PARTICIPANTS, content)

    assert len(conflicts) == 1
    assert conflicts[0].id == "mood-conflict"
    assert conflicts[0].values == ["happy", "calm"]
    assert conflicts[0].participants == ["alice", "bob", "carol"]


def test_missing_mood_excluded_from_participants():
    content = {
        "alice": {"narrative": "aaaa", "mood": "happy"},
        "bob": {"narrative": "bbbb"},
        "carol": {"narrative": "cccc", "mood": "sad"},
    }

    conflicts = detect_conflicts(PARTICIPANTS, content)

    assert conflicts[0].participants == ["alice", "carol"]


def test_short_narrative_flagged():
    content = {
        "alice": {"narrative": "a" * 100},
        "bob": {"narrative": "b" * 100},
        "carol": {"narrative": "c" * 10},
    }

    conflicts = detect_conflicts(PARTICIPANTS, content)

    assert [(c.type, c.id, c.user_id) for c in conflicts] == [
        (ConflictType.DETAIL_MISMATCH, "detail-conflict-2", "carol"),
    ]


def test_mood_before_detail():
    content = {
        "alice": {"narrative": "a" * 100, "mood": "happy"},
        "bob": {"narrative": "b", "mood": "sad"},
    }

    conflicts = detect_conflicts(PARTICIPANTS, content)

    assert [c.type for c in conflicts] == [ConflictType.MOOD, ConflictType.DETAIL_MISMATCH]
    assert conflicts[1].user_id == "bob"
