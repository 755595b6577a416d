# social_publisher/models/social_account.py
from enum import Enum
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
from social_publisher.models.types import UTCDateTime, utcnow
import uuid
from sqlalchemy import String, JSON, UniqueConstraint


class Platform(str, Enum):
    TWITTER = "TWITTER"
    LINKEDIN = "LINKEDIN"
    INSTAGRAM = "INSTAGRAM"
    YOUTUBE = "YOUTUBE"
    FACEBOOK = "FACEBOOK"
    TIKTOK = "TIKTOK"


class AccountType(str, Enum):
    PERSONAL = "PERSONAL"
    BUSINESS = "BUSINESS"
    CREATOR = "CREATOR"


class SocialAccount(SQLModel, table=True):
    __tablename__ = "social_account"
    __table_args__ = (UniqueConstraint("user_id", "platform", "account_id"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    platform: Platform = Field(index=True)
    account_id: str = Field(sa_column=Column(String, nullable=False))  # id on the platform
    account_name: Optional[str] = None
    account_type: AccountType = Field(default=AccountType.PERSONAL)
    access_token_enc: Optional[str] = None
    refresh_token_enc: Optional[str] = None
    expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    is_active: bool = Field(default=True)
    meta: Optional[dict] = Field(sa_column=Column(JSON), default={})
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
