"""
Memory network - canonical type definitions.

Enums, thresholds and pydantic shapes shared by collision detection,
connection scoring and story merging.
"""
from datetime import datetime, timedelta
from typing import Annotated, Optional, Dict, Any, List, Literal, Union
from enum import Enum
from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Thresholds
# ============================================================================

# Media-pair path (detect_overlaps / process_new_media), confidence on 0-1
PAIR_TIME_WINDOW = timedelta(hours=24)
PAIR_DEGREE_THRESHOLD = 0.001  # ~111 m per 0.001 degree, flat approximation
PAIR_CONFIDENCE_SPATIAL_TEMPORAL = 0.9
PAIR_CONFIDENCE_TEMPORAL = 0.4

# Broad scan path (detect_all_collisions), confidence on 0-100
SCAN_TIME_WINDOW = timedelta(hours=4)
SCAN_DEGREE_RANGE = 0.0005
SCAN_CONFIDENCE_TEMPORAL = 75
SCAN_CONFIDENCE_SPATIAL = 85
SCAN_CONFIDENCE_MENTION = 60

# Connection strength
STRENGTH_BASE = 20
STRENGTH_PER_SHARED_EVENT = 10
STRENGTH_SHARED_EVENTS_CAP = 50
STRENGTH_PER_MUTUAL_TAG = 5
STRENGTH_MUTUAL_TAGS_CAP = 30
STRENGTH_MAX = 100

# Conflict heuristics
DETAIL_MISMATCH_RATIO = 0.3


# ============================================================================
# Enums - Canonical Values
# ============================================================================

class DetectionMethod(str, Enum):
    """How a collision was found."""
    SPATIAL_TEMPORAL = "spatial_temporal"
    TEMPORAL = "temporal"
    SPATIAL = "spatial"
    MUTUAL_MENTION = "mutual_mention"
    MANUAL = "manual"


class ApprovalState(str, Enum):
    """Per-participant approval of a story merger."""
    PENDING = "pending"
    APPROVED = "approved"


class TagStatus(str, Enum):
    """Event tag lifecycle."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ConflictType(str, Enum):
    """Kinds of disagreement between perspectives."""
    MOOD = "mood"
    DETAIL_MISMATCH = "detail_mismatch"


class ResolutionStrategy(str, Enum):
    """Conflict resolution strategies."""
    VOTING = "voting"
    MERGE = "merge"
    SPLIT = "split"


class NotificationEvent(str, Enum):
    """Events users are notified about."""
    TAG_RECEIVED = "tag_received"
    MERGER_PROPOSED = "merger_proposed"
    MERGER_APPROVED = "merger_approved"
    MERGER_PUBLISHED = "merger_published"
    MERGER_PURCHASED = "merger_purchased"


# ============================================================================
# Detection shapes
# ============================================================================

class MediaPoint(BaseModel):
    """The fields of a media item that collision matching looks at."""
    id: str
    taken_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {"from_attributes": True}

    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Overlap(BaseModel):
    """Candidate shared moment between two media items (not persisted)."""
    type: DetectionMethod
    media_a: MediaPoint
    media_b: MediaPoint
    confidence: float
    timestamp: datetime


class CollisionCandidate(BaseModel):
    """Result of one broad scan detector."""
    type: DetectionMethod
    users: List[str]
    confidence: float
    event_data: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Story merger shapes
# ============================================================================

class Perspective(BaseModel):
    """One participant's account of the shared event."""
    narrative: str
    photos: Optional[List[str]] = None
    mood: Optional[str] = None

    @field_validator("narrative")
    @classmethod
    def validate_narrative(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("narrative must not be empty")
        return v


class Conflict(BaseModel):
    """Heuristic disagreement between submitted perspectives."""
    id: str
    type: ConflictType
    description: str
    values: Optional[List[str]] = None
    participants: Optional[List[str]] = None
    user_id: Optional[str] = None


class VotingResolution(BaseModel):
    """Participants voted; selected_value is the winning option."""
    strategy: Literal["voting"] = "voting"
    selected_value: Optional[Any] = None
    votes: Dict[str, Any] = Field(default_factory=dict)


class MergeResolution(BaseModel):
    """Perspectives are combined; selected_value optionally names the merged value."""
    strategy: Literal["merge"] = "merge"
    selected_value: Optional[Any] = None


class SplitResolution(BaseModel):
    """Perspectives are kept side by side."""
    strategy: Literal["split"] = "split"


Resolution = Annotated[
    Union[VotingResolution, MergeResolution, SplitResolution],
    Field(discriminator="strategy"),
]


def users_key(user_ids: List[str]) -> str:
    """Canonical identity of a participant set."""
    return ",".join(sorted(set(user_ids)))


def unique_users(user_ids: List[str]) -> List[str]:
    """De-duplicate preserving first-seen order."""
    seen = []
    for user_id in user_ids:
        if user_id not in seen:
            seen.append(user_id)
    return seen


def normalize_pair(user_a_id: str, user_b_id: str) -> tuple:
    """Order a pair so the smaller id comes first."""
    if user_a_id <= user_b_id:
        return user_a_id, user_b_id
    return user_b_id, user_a_id
