# social_publisher/models/post.py
from enum import Enum
from sqlmodel import SQLModel, Field
from typing import Optional
import uuid
from datetime import datetime
from social_publisher.models.types import UTCDateTime, utcnow
from sqlalchemy import UniqueConstraint


class PostStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class PublicationStatus(str, Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class Post(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    content: Optional[str] = Field(default=None)
    hashtags: Optional[str] = Field(default="[]")  # JSON array string
    title: Optional[str] = Field(default=None)  # video platforms
    description: Optional[str] = Field(default=None)
    image_url: Optional[str] = Field(default=None)
    images: Optional[str] = Field(default=None)  # JSON array string
    video_url: Optional[str] = Field(default=None)
    videos: Optional[str] = Field(default=None)  # JSON array string
    status: PostStatus = Field(default=PostStatus.DRAFT, index=True)
    scheduled_at: Optional[datetime] = Field(default=None, index=True, sa_type=UTCDateTime)
    published_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class Publication(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("post_id", "social_account_id"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    post_id: uuid.UUID = Field(foreign_key="post.id", index=True)
    social_account_id: uuid.UUID = Field(foreign_key="social_account.id", index=True)
    status: PublicationStatus = Field(default=PublicationStatus.PENDING)
    platform_post_id: Optional[str] = Field(default=None)
    error_message: Optional[str] = Field(default=None)
    published_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
