from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Union
from datetime import datetime, timezone

ASPECT_RATIO = "9:16"
MAX_DURATION_SECONDS = 60.0
VIDEO_WIDTH = 1080
VIDEO_HEIGHT = 1920


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    # Wire names are camelCase with a Mongo-style "_id"; Python names stay snake_case.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Author(Document):
    id: str = Field(alias="_id")
    email: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    avatar: Optional[str] = None
    bio: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.username or self.email or "Unknown"


class Transformation(Document):
    height: int = VIDEO_HEIGHT
    width: int = VIDEO_WIDTH
    quality: int = Field(default=100, ge=1, le=100)


class VideoRecord(Document):
    """A published video as the feed sees it. Never mutated once loaded."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(alias="_id")
    title: str
    description: str = ""
    video_url: str = Field(alias="videoUrl")
    thumbnail_url: str = Field(alias="thumbnailUrl")
    duration: float = 0.0
    aspect_ratio: str = Field(default=ASPECT_RATIO, alias="aspectRatio")
    likes: int = 0
    liked_by: List[str] = Field(default_factory=list, alias="likedBy")
    shares: int = 0
    controls: bool = True
    transformation: Transformation = Field(default_factory=Transformation)
    author: Optional[Union[Author, str]] = None
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def author_name(self) -> str:
        if isinstance(self.author, Author):
            return self.author.name
        return "Unknown"


class VideoCreate(Document):
    """Upload payload. Duration and aspect ratio are only checked here."""

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    video_url: str = Field(alias="videoUrl", min_length=1)
    thumbnail_url: str = Field(alias="thumbnailUrl", min_length=1)
    duration: float = Field(gt=0, le=MAX_DURATION_SECONDS)
    aspect_ratio: str = Field(default=ASPECT_RATIO, alias="aspectRatio")
    controls: bool = True
    quality: int = Field(default=100, ge=1, le=100)

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("aspect_ratio")
    @classmethod
    def vertical_only(cls, value: str) -> str:
        if value.replace(" ", "") != ASPECT_RATIO:
            raise ValueError(f"aspect ratio must be {ASPECT_RATIO}")
        return ASPECT_RATIO


class Pagination(Document):
    total: int = 0
    limit: int = 10
    offset: int = 0
    has_more: bool = Field(default=False, alias="hasMore")


class FeedPage(Document):
    videos: List[VideoRecord] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class LikeStatus(Document):
    liked: bool = False


class LikeToggleResult(Document):
    liked: bool
    likes: int


class Comment(Document):
    id: str = Field(alias="_id")
    video_id: Optional[str] = Field(default=None, alias="videoId")
    text: str
    user: Optional[Author] = Field(default=None, alias="userId")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def author_name(self) -> str:
        return self.user.name if self.user else "Unknown"


class CommentCreate(BaseModel):
    text: str


class ProfileStats(Document):
    videos: int = 0
    followers: int = 0
    following: int = 0


class UserProfile(Author):
    videos: List[VideoRecord] = Field(default_factory=list)
    stats: ProfileStats = Field(default_factory=ProfileStats)


class Session(BaseModel):
    """Authenticated viewer. Passed explicitly to whatever needs it."""

    user_id: str
    email: str
    token: str
