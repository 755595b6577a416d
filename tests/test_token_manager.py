from datetime import datetime, timedelta, timezone

import pytest

from social_publisher.auth.utils import decrypt_token
from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms.errors import ErrorKind, PlatformError
from social_publisher.infrastructure.platforms.tokens import TokenSet
from social_publisher.models.social_account import Platform
from social_publisher.services import token_manager
from social_publisher.services.token_manager import TokenManager


async def test_valid_token_is_returned(session, user, make_account):
    await make_account(Platform.TWITTER, access_token="live", expires_at=datetime.now(timezone.utc) + timedelta(hours=1))
    result = await TokenManager(session).validate_and_refresh(user.id, Platform.TWITTER, "acct-1")
    assert result.is_valid
    assert result.access_token == "live"


async def test_missing_account(session, user):
    result = await TokenManager(session).validate_and_refresh(user.id, Platform.TWITTER, "nope")
    assert not result.is_valid
    assert result.needs_reconnection
    assert result.error == "Account not found or inactive"


async def test_inactive_account(session, user, make_account):
    await make_account(Platform.TWITTER, is_active=False)
    result = await TokenManager(session).validate_and_refresh(user.id, Platform.TWITTER, "acct-1")
    assert result.error == "Account not found or inactive"


async def test_expired_token_is_refreshed_and_persisted(session, user, make_account, monkeypatch):
    calls = []

    async def fake_refresh(refresh_token):
        calls.append(refresh_token)
        return TokenSet(access_token="fresh", refresh_token="fresh-refresh", expires_in=3600)

    monkeypatch.setitem(token_manager.REFRESHERS, Platform.TWITTER, fake_refresh)
    account = await make_account(
        Platform.TWITTER, access_token="stale", refresh_token="old-refresh", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)
    )

    result = await TokenManager(session).validate_and_refresh(user.id, Platform.TWITTER, "acct-1")

    assert result.is_valid and result.access_token == "fresh"
    assert calls == ["old-refresh"]
    stored = await SocialAccountRepository(session).get_by_id(account.id)
    assert decrypt_token(stored.access_token_enc) == "fresh"
    assert decrypt_token(stored.refresh_token_enc) == "fresh-refresh"
    assert stored.expires_at > datetime.now(timezone.utc)


async def test_refresh_keeps_old_refresh_token_when_none_returned(session, user, make_account, monkeypatch):
    async def fake_refresh(refresh_token):
        return TokenSet(access_token="fresh")

    monkeypatch.setitem(token_manager.REFRESHERS, Platform.YOUTUBE, fake_refresh)
    account = await make_account(
        Platform.YOUTUBE, refresh_token="keep-me", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)
    )

    await TokenManager(session).validate_and_refresh(user.id, Platform.YOUTUBE, "acct-1")

    stored = await SocialAccountRepository(session).get_by_id(account.id)
    assert decrypt_token(stored.refresh_token_enc) == "keep-me"
    assert stored.expires_at is None


async def test_failed_refresh_deactivates_account(session, user, make_account, monkeypatch):
    async def fake_refresh(refresh_token):
        raise PlatformError(ErrorKind.AUTH_EXPIRED, "invalid_grant", platform="TWITTER")

    monkeypatch.setitem(token_manager.REFRESHERS, Platform.TWITTER, fake_refresh)
    account = await make_account(
        Platform.TWITTER, refresh_token="r", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)
    )

    result = await TokenManager(session).validate_and_refresh(user.id, Platform.TWITTER, "acct-1")

    assert not result.is_valid
    assert result.needs_reconnection
    assert result.error == "Token refresh failed: invalid_grant"
    stored = await SocialAccountRepository(session).get_by_id(account.id)
    assert stored.is_active is False


async def test_linkedin_cannot_refresh(session, user, make_account):
    await make_account(Platform.LINKEDIN, refresh_token="r", expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    result = await TokenManager(session).validate_and_refresh(user.id, Platform.LINKEDIN, "acct-1")
    assert result.error == "Token refresh failed: LinkedIn does not support refresh tokens. Please reconnect your account."


async def test_expired_without_refresh_token(session, user, make_account):
    account = await make_account(Platform.INSTAGRAM, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
    result = await TokenManager(session).validate_and_refresh(user.id, Platform.INSTAGRAM, "acct-1")
    assert result.error == "Token expired and no refresh token available"
    stored = await SocialAccountRepository(session).get_by_id(account.id)
    assert stored.is_active is False


async def test_unsupported_platform_refresh(session, user, make_account):
    await make_account(Platform.TIKTOK, refresh_token="r", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
    result = await TokenManager(session).validate_and_refresh(user.id, Platform.TIKTOK, "acct-1")
    assert result.error == "Token refresh failed: Unsupported platform: TIKTOK"


async def test_unexpected_error_is_reported_as_validation_error(session, user, monkeypatch):
    manager = TokenManager(session)

    async def broken(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(manager.accounts, "get_by_external_id", broken)
    result = await manager.validate_and_refresh(user.id, Platform.TWITTER, "acct-1")
    assert result.error == "Validation error: db down"
    assert result.needs_reconnection


async def test_validate_all_user_tokens(session, user, make_account):
    await make_account(Platform.TWITTER, account_id="good")
    await make_account(Platform.INSTAGRAM, account_id="expired", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

    report = await TokenManager(session).validate_all_user_tokens(user.id)

    assert report.valid == ["good"]
    assert report.invalid == ["expired"]
    assert report.needs_reconnection == ["expired"]


async def test_get_valid_token(session, user, make_account):
    await make_account(Platform.LINKEDIN, access_token="li-token")
    manager = TokenManager(session)
    assert await manager.get_valid_token(user.id, Platform.LINKEDIN, "acct-1") == "li-token"
    assert await manager.get_valid_token(user.id, Platform.LINKEDIN, "missing") is None


@pytest.mark.parametrize("platform", [Platform.FACEBOOK, Platform.TIKTOK])
async def test_refresh_with_platform_rejects_unmapped_platforms(session, platform):
    with pytest.raises(PlatformError) as exc:
        await TokenManager(session).refresh_with_platform(platform, "r")
    assert exc.value.message == f"Unsupported platform: {platform.value}"
