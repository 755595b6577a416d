# social_publisher/auth/models.py
from sqlmodel import SQLModel, Field, Column
from datetime import datetime
from social_publisher.models.types import UTCDateTime, utcnow
import uuid
from pydantic import EmailStr
from sqlalchemy import String

class User(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: EmailStr = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    username: str = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
