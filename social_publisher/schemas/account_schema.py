# social_publisher/schemas/account_schema.py
from pydantic import BaseModel
from typing import Optional
import uuid
from datetime import datetime

from social_publisher.models.social_account import AccountType, Platform


class SocialAccountRead(BaseModel):
    id: uuid.UUID
    platform: Platform
    account_id: str
    account_name: Optional[str] = None
    account_type: AccountType
    is_active: bool
    expires_at: Optional[datetime] = None
    has_valid_tokens: bool
    selected_page_id: Optional[str] = None


class FacebookPageSelect(BaseModel):
    page_id: str
    page_name: Optional[str] = None
