# social_publisher/schemas/post_schema.py
from pydantic import BaseModel, Field
from typing import List, Optional, Union
import uuid
from datetime import datetime

from social_publisher.models.post import PostStatus, PublicationStatus


class PostCreate(BaseModel):
    social_account_ids: List[uuid.UUID] = Field(min_length=1)
    content: Optional[str] = None
    hashtags: Union[List[str], str, None] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    images: List[str] = []
    video_url: Optional[str] = None
    videos: List[str] = []
    scheduled_at: Optional[datetime] = None


class PostUpdate(BaseModel):
    """Only the fields sent are changed; the target accounts are fixed at creation."""
    content: Optional[str] = None
    hashtags: Union[List[str], str, None] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    images: Optional[List[str]] = None
    video_url: Optional[str] = None
    videos: Optional[List[str]] = None


class ScheduleCreate(BaseModel):
    scheduled_at: datetime


class PublicationRead(BaseModel):
    id: uuid.UUID
    social_account_id: uuid.UUID
    status: PublicationStatus
    platform_post_id: Optional[str] = None
    error_message: Optional[str] = None
    published_at: Optional[datetime] = None


class PostRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    content: Optional[str] = None
    hashtags: List[str] = []
    title: Optional[str] = None
    description: Optional[str] = None
    images: List[str] = []
    videos: List[str] = []
    status: PostStatus
    scheduled_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    publications: List[PublicationRead] = []
