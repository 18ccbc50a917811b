"""
Core data models for the playlist campaign planner.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Any


# Genres past this position on a playlist are ignored when matching
MAX_MATCHED_GENRES = 4


class CampaignStatus(Enum):
    """Campaign lifecycle states."""
    DRAFT = "draft"
    OPERATOR_REVIEW_COMPLETE = "operator_review_complete"
    BUILT = "built"
    UNRELEASED = "unreleased"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UserRole(Enum):
    """Roles that scope what a user may see."""
    ADMIN = "admin"
    MANAGER = "manager"
    SALESPERSON = "salesperson"
    VENDOR = "vendor"


@dataclass
class Vendor:
    """Capacity owner for one or more playlists."""
    id: str
    name: str
    max_daily_streams: int
    max_concurrent_campaigns: int = 1
    cost_per_1k_streams: Optional[float] = None
    is_active: bool = True


@dataclass
class Playlist:
    """Candidate allocation target."""
    id: str
    vendor_id: str
    name: str
    genres: List[str]
    avg_daily_streams: int
    follower_count: Optional[int] = None
    url: str = ""


@dataclass
class AllocationResult:
    """Streams assigned to one playlist."""
    playlist_id: str
    vendor_id: str
    allocation: int


@dataclass
class AllocationInput:
    """Request bundle for the stream allocator."""
    playlists: List[Playlist]
    goal: int
    vendor_caps: Dict[str, int]
    sub_genre: str
    duration_days: int
    vendors: Optional[Dict[str, Vendor]] = None
    active_campaign_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class CandidateScore:
    """An eligible playlist with its matching and capacity figures."""
    playlist: Playlist
    genre_overlap: int
    genre_relevance: float
    stream_score: float
    relevance_score: float
    ceiling: int


@dataclass
class AllocationPlan:
    """Allocator output: per-playlist assignments plus the unmet remainder."""
    goal: int
    allocations: List[AllocationResult]
    unfilled: int
    candidates: List[CandidateScore] = field(default_factory=list)

    @property
    def projected_streams(self) -> int:
        return sum(a.allocation for a in self.allocations)

    @property
    def vendor_allocations(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for a in self.allocations:
            totals[a.vendor_id] = totals.get(a.vendor_id, 0) + a.allocation
        return totals

    @property
    def is_fully_allocated(self) -> bool:
        return self.unfilled == 0


@dataclass
class Campaign:
    """Persisted campaign record and allocation holder."""
    id: str
    name: str
    client: str
    stream_goal: int
    budget: float
    sub_genre: str
    duration_days: int
    start_date: Optional[date] = None
    remaining_streams: Optional[int] = None
    music_genres: List[str] = field(default_factory=list)
    status: CampaignStatus = CampaignStatus.DRAFT
    selected_playlists: List[Dict[str, Any]] = field(default_factory=list)
    vendor_allocations: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    totals: Dict[str, int] = field(default_factory=lambda: {'projected_streams': 0})
    salesperson: Optional[str] = None
    notes: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.remaining_streams is None:
            self.remaining_streams = self.stream_goal


@dataclass
class WeeklyUpdate:
    """Observed performance entry, appended independently of the allocation."""
    campaign_id: str
    streams: int
    imported_on: date
    notes: str = ""
    remaining_streams: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class UserContext:
    """Identity passed explicitly into functions that scope by user."""
    email: str
    role: UserRole
    vendor_ids: List[str] = field(default_factory=list)
