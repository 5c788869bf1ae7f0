"""Pydantic models for media items and collections."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MediaType(str, Enum):
    """Kinds of media tracked in a library."""
    MOVIE = "movie"
    BOOK = "book"
    COMIC = "comic"
    GAME = "game"
    MUSIC = "music"


class Origin(str, Enum):
    """Country or region a title originates from."""
    VN = "vn"
    CN = "cn"
    JP = "jp"
    KR = "kr"
    US = "us"
    UK = "uk"
    EU = "eu"
    OTHER = "other"


class MediaStatus(str, Enum):
    """Publication status or personal progress status."""
    PLANNING = "planning"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    DROPPED = "dropped"


COLLECTION_COLORS = (
    "#EF4444",  # Red
    "#F59E0B",  # Amber
    "#10B981",  # Emerald
    "#3B82F6",  # Blue
    "#8B5CF6",  # Violet
    "#EC4899",  # Pink
    "#6366F1",  # Indigo
    "#14B8A6",  # Teal
    "#F97316",  # Orange
    "#A855F7",  # Purple
)
DEFAULT_COLLECTION_COLOR = COLLECTION_COLORS[0]


class MediaItem(BaseModel):
    """A media item as stored for one owner."""
    id: str = Field(..., description="Item UUID")
    user_id: str = Field(..., description="Owner")
    title: str
    type: MediaType
    origin: Optional[Origin] = None
    author: Optional[str] = None
    release_year: Optional[int] = None
    rating: Optional[float] = Field(None, ge=0, le=10)
    pub_status: Optional[MediaStatus] = None
    user_status: Optional[MediaStatus] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    cover_image_url: Optional[str] = None
    created_at: str
    updated_at: str
    completed_at: Optional[str] = None


class MediaFilters(BaseModel):
    """Filters accepted by the library search."""
    query: Optional[str] = None
    type: List[MediaType] = Field(default_factory=list)
    origin: List[Origin] = Field(default_factory=list)
    pub_status: List[MediaStatus] = Field(default_factory=list)
    user_status: List[MediaStatus] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    rating_min: Optional[float] = Field(None, ge=0, le=10)
    rating_max: Optional[float] = Field(None, ge=0, le=10)
    limit: int = Field(20, ge=1, le=50)


class Collection(BaseModel):
    """A named group of media items with its current item count."""
    id: str
    user_id: str
    name: str
    color: str = DEFAULT_COLLECTION_COLOR
    created_at: str
    item_count: int = 0
