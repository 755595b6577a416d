# social_publisher/services/token_manager.py
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.auth.utils import decrypt_token, encrypt_token
from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms import instagram, linkedin, twitter, youtube
from social_publisher.infrastructure.platforms.errors import ErrorKind, PlatformError
from social_publisher.infrastructure.platforms.tokens import TokenSet
from social_publisher.models.social_account import Platform, SocialAccount
from social_publisher.models.types import utcnow

logger = structlog.get_logger(__name__)

RefreshFn = Callable[[str], Awaitable[TokenSet]]

REFRESHERS: Dict[Platform, RefreshFn] = {
    Platform.TWITTER: twitter.refresh_token,
    Platform.LINKEDIN: linkedin.refresh_token,
    Platform.INSTAGRAM: instagram.refresh_token,
    Platform.YOUTUBE: youtube.refresh_token,
}


@dataclass
class TokenValidationResult:
    is_valid: bool
    access_token: Optional[str] = None
    needs_reconnection: bool = False
    error: Optional[str] = None


@dataclass
class TokenStatusReport:
    valid: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)
    needs_reconnection: List[str] = field(default_factory=list)


def _invalid(error: str) -> TokenValidationResult:
    return TokenValidationResult(is_valid=False, needs_reconnection=True, error=error)


class TokenManager:
    """
    Hands out usable access tokens for connected accounts, refreshing expired
    ones and deactivating accounts whose credentials can no longer be renewed.
    """

    def __init__(self, session: AsyncSession):
        self.accounts = SocialAccountRepository(session)

    async def validate_and_refresh(self, user_id: uuid.UUID, platform: Platform, account_id: str) -> TokenValidationResult:
        try:
            account = await self.accounts.get_by_external_id(user_id, platform, account_id)
            if not account or not account.is_active:
                return _invalid("Account not found or inactive")

            access_token = decrypt_token(account.access_token_enc)
            if not access_token:
                return _invalid("No access token stored for this account")

            if account.expires_at and account.expires_at <= utcnow():
                return await self._refresh(account)

            return TokenValidationResult(is_valid=True, access_token=access_token)
        except Exception as e:
            logger.exception("token_validation_error", platform=platform.value, account_id=account_id)
            return _invalid(f"Validation error: {e}")

    async def _refresh(self, account: SocialAccount) -> TokenValidationResult:
        refresh_token = decrypt_token(account.refresh_token_enc)
        if not refresh_token:
            await self.accounts.deactivate(account)
            logger.info("token_expired_without_refresh", platform=account.platform.value, account_id=account.account_id)
            return _invalid("Token expired and no refresh token available")

        try:
            tokens = await self.refresh_with_platform(account.platform, refresh_token)
        except Exception as e:
            reason = e.message if isinstance(e, PlatformError) else str(e)
            await self.accounts.deactivate(account)
            logger.warning("token_refresh_failed", platform=account.platform.value, account_id=account.account_id, error=reason)
            return _invalid(f"Token refresh failed: {reason}")

        expires_at = utcnow() + timedelta(seconds=tokens.expires_in) if tokens.expires_in else None
        await self.accounts.update_tokens(
            account,
            encrypt_token(tokens.access_token),
            encrypt_token(tokens.refresh_token) if tokens.refresh_token else account.refresh_token_enc,
            expires_at,
        )
        logger.info("token_refreshed", platform=account.platform.value, account_id=account.account_id)
        return TokenValidationResult(is_valid=True, access_token=tokens.access_token)

    async def refresh_with_platform(self, platform: Platform, refresh_token: str) -> TokenSet:
        refresher = REFRESHERS.get(platform)
        if refresher is None:
            raise PlatformError(ErrorKind.CONFIGURATION, f"Unsupported platform: {platform.value}", platform=platform.value)
        return await refresher(refresh_token)

    async def validate_all_user_tokens(self, user_id: uuid.UUID) -> TokenStatusReport:
        report = TokenStatusReport()
        for account in await self.accounts.list_by_user(user_id, active_only=True):
            result = await self.validate_and_refresh(user_id, account.platform, account.account_id)
            if result.is_valid:
                report.valid.append(account.account_id)
            else:
                report.invalid.append(account.account_id)
                if result.needs_reconnection:
                    report.needs_reconnection.append(account.account_id)
        return report

    async def get_valid_token(self, user_id: uuid.UUID, platform: Platform, account_id: str) -> Optional[str]:
        result = await self.validate_and_refresh(user_id, platform, account_id)
        return result.access_token if result.is_valid else None
