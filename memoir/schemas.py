from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field


class CollisionRead(BaseModel):
    id: str
    title: str
    timestamp: datetime
    users: List[str]
    confidence: float = Field(..., description="0-1 for media-pair detection, 0-100 for broad scans")
    detected_by: str
    location: Optional[str] = None
    verified: bool = False

    model_config = {"from_attributes": True}


class ConnectionRead(BaseModel):
    id: str
    user_a_id: str
    user_b_id: str
    strength_score: int = Field(..., ge=0, le=100)
    shared_events: int = 0
    relationship_type: Optional[str] = None
    last_interaction: datetime

    model_config = {"from_attributes": True}


class GraphNode(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class GraphEdge(BaseModel):
    source: str
    target: str
    strength: int
    relationship_type: Optional[str] = None
    shared_events: int = 0


class MemoryGraph(BaseModel):
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    total_connections: int


class TimelineEntry(BaseModel):
    collision_id: str
    title: str
    timestamp: datetime
    detected_by: str
    verified: bool


class RelationshipTimeline(BaseModel):
    connection: Optional[ConnectionRead] = None
    strength: int = 0
    shared_events: List[CollisionRead] = Field(default_factory=list)
    timeline: List[TimelineEntry] = Field(default_factory=list)


class MarketplaceListing(BaseModel):
    """Published merger without the participants' content or approvals."""
    id: str
    event_id: str
    event_title: str
    event_date: datetime
    participants: List[str]
    published_at: Optional[datetime] = None
    price: Optional[float] = None
    revenue_share: Optional[Dict[str, float]] = None
    sales_count: int = 0

    model_config = {"from_attributes": True}


class ResolutionAck(BaseModel):
    success: bool = True
    conflict_id: str
    resolution: Dict[str, Any]


class PurchaseReceipt(BaseModel):
    success: bool = True
    subscriber_id: str
    merger: MarketplaceListing


class TagRead(BaseModel):
    id: str
    event_id: Optional[str] = None
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None
    tagger_id: str
    tagged_user_id: str
    message: Optional[str] = None
    status: str
    verified_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TagResult(BaseModel):
    """Outcome of tagging someone; unknown e-mails need an invitation instead."""
    success: bool = True
    status: str = Field(..., description="tagged or invitation_needed")
    message: str
    tag: Optional[TagRead] = None


class UserTags(BaseModel):
    tags_made: List[TagRead]
    tags_received: List[TagRead]
    total_tags: int
