"""
Heuristic conflict detection between participants' perspectives.

Conflicts are computed fresh from merged content on every call and never
stored. Ids are positional, so unchanged input gives identical output.
"""
from typing import Any, Dict, List

from memoir.network.core_types import DETAIL_MISMATCH_RATIO, Conflict, ConflictType


def detect_conflicts(participants: List[str], merged_content: Dict[str, Any]) -> List[Conflict]:
    """
    Compare submitted perspectives.

    Args:
        participants: Merger participants, in their frozen order
        merged_content: user id -> perspective dict

    Returns:
        Mood conflict (at most one) followed by detail-mismatch conflicts
    """
    submitted = [
        (user_id, merged_content[user_id])
        for user_id in participants
        if user_id in merged_content
    ]
    if len(submitted) < 2:
        return []

    conflicts = []

    moods = [(user_id, p.get("mood")) for user_id, p in submitted if p.get("mood")]
    distinct_moods = []
    for _, mood in moods:
        if mood not in distinct_moods:
            distinct_moods.append(mood)
    if len(distinct_moods) > 1:
        conflicts.append(Conflict(
            id="mood-conflict",
            type=ConflictType.MOOD,
            description="Participants remember different emotional tones",
            values=distinct_moods,
            participants=[user_id for user_id, _ in moods],
        ))

    lengths = [len(p.get("narrative") or "") for _, p in submitted]
    avg_length = sum(lengths) / len(lengths)
    for i, (user_id, _) in enumerate(submitted):
        if lengths[i] < avg_length * DETAIL_MISMATCH_RATIO:
            conflicts.append(Conflict(
                id=f"detail-conflict-{i}",
                type=ConflictType.DETAIL_MISMATCH,
                description="One perspective lacks detail compared to others",
                user_id=user_id,
            ))

    return conflicts
