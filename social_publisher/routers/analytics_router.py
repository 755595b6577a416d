# social_publisher/routers/analytics_router.py
import uuid
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.dependencies.auth import get_current_user
from social_publisher.dependencies.db import get_session_dep
from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms import youtube
from social_publisher.infrastructure.platforms.errors import ErrorKind, PlatformError
from social_publisher.models.social_account import Platform
from social_publisher.routers.accounts_router import platform_http_error
from social_publisher.routers.responses import api_success
from social_publisher.services.token_manager import TokenManager
from social_publisher.services.youtube_analytics import analytics_cache

router = APIRouter(prefix="/analytics", tags=["analytics"])

DEFAULT_RANGE_DAYS = 28


@router.get("/youtube/{account_id}")
async def youtube_analytics(
    account_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: AsyncSession = Depends(get_session_dep),
    current_user = Depends(get_current_user),
):
    account = await SocialAccountRepository(session).get_by_id(account_id)
    if not account or account.user_id != current_user.id or account.platform != Platform.YOUTUBE:
        raise HTTPException(status_code=404, detail="YouTube account not found")

    end = end_date or date.today()
    start = start_date or end - timedelta(days=DEFAULT_RANGE_DAYS)
    if start > end:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    channel_id = account.account_id

    async def load() -> dict:
        token = await TokenManager(session).get_valid_token(current_user.id, Platform.YOUTUBE, channel_id)
        if not token:
            raise PlatformError(ErrorKind.AUTH_EXPIRED, "YouTube account needs reconnection", platform=Platform.YOUTUBE.value)
        return await youtube.fetch_channel_analytics(token, start.isoformat(), end.isoformat())

    try:
        data = await analytics_cache.fetch(channel_id, load)
    except PlatformError as exc:
        raise platform_http_error(exc)
    return api_success({"analytics": data, "cache": analytics_cache.status(channel_id)})
