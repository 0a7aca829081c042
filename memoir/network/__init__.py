"""
Memory network core: collision detection, connection scoring and story merging.
"""
from memoir.network.core_types import (
    DetectionMethod,
    ApprovalState,
    TagStatus,
    ConflictType,
    ResolutionStrategy,
    NotificationEvent,
    MediaPoint,
    Overlap,
    CollisionCandidate,
    Perspective,
    Conflict,
    VotingResolution,
    MergeResolution,
    SplitResolution,
    Resolution,
)
from memoir.network.collisions import CollisionEngine
from memoir.network.connections import ConnectionEngine
from memoir.network.detection import DetectionEngine
from memoir.network.story_merger import MergerEngine
from memoir.network.tagging import TaggingEngine
from memoir.network.notifications import Notifier, LogNotifier

__all__ = [
    "DetectionMethod",
    "ApprovalState",
    "TagStatus",
    "ConflictType",
    "ResolutionStrategy",
    "NotificationEvent",
    "MediaPoint",
    "Overlap",
    "CollisionCandidate",
    "Perspective",
    "Conflict",
    "VotingResolution",
    "MergeResolution",
    "SplitResolution",
    "Resolution",
    "CollisionEngine",
    "ConnectionEngine",
    "DetectionEngine",
    "MergerEngine",
    "TaggingEngine",
    "Notifier",
    "LogNotifier",
]
