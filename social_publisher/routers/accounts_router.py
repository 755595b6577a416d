# social_publisher/routers/accounts_router.py
from dataclasses import asdict

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.auth.utils import decrypt_token, encrypt_token
from social_publisher.dependencies.auth import get_current_user
from social_publisher.dependencies.db import get_session_dep
from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms import facebook
from social_publisher.infrastructure.platforms.errors import PlatformError
from social_publisher.models.social_account import Platform, SocialAccount
from social_publisher.models.types import utcnow
from social_publisher.routers.responses import api_success
from social_publisher.schemas.account_schema import FacebookPageSelect, SocialAccountRead
from social_publisher.services.token_manager import TokenManager

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/social", tags=["social"])


def _has_valid_tokens(account: SocialAccount) -> bool:
    if not account.is_active or not account.access_token_enc:
        return False
    if account.expires_at and account.expires_at <= utcnow():
        return bool(account.refresh_token_enc)
    return True


def account_to_read(account: SocialAccount) -> SocialAccountRead:
    return SocialAccountRead(
        id=account.id,
        platform=account.platform,
        account_id=account.account_id,
        account_name=account.account_name,
        account_type=account.account_type,
        is_active=account.is_active,
        expires_at=account.expires_at,
        has_valid_tokens=_has_valid_tokens(account),
        selected_page_id=(account.meta or {}).get("selected_page_id"),
    )


def platform_http_error(exc: PlatformError) -> HTTPException:
    status_code = 401 if exc.needs_reconnection else 502
    return HTTPException(status_code=status_code, detail={"message": exc.message, "code": exc.kind.value})


@router.get("/accounts")
async def list_accounts(session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    repo = SocialAccountRepository(session)
    accounts = await repo.list_by_user(current_user.id)
    return api_success({"accounts": [account_to_read(a) for a in accounts]})


@router.get("/accounts/token-status")
async def token_status(session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    report = await TokenManager(session).validate_all_user_tokens(current_user.id)
    return api_success(asdict(report))


@router.post("/facebook/select-page")
async def select_facebook_page(payload: FacebookPageSelect, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    repo = SocialAccountRepository(session)
    account = await repo.get_user_account(current_user.id, Platform.FACEBOOK)
    if not account:
        raise HTTPException(status_code=404, detail="No Facebook account connected")

    user_token = decrypt_token(account.access_token_enc)
    if not user_token:
        raise HTTPException(status_code=401, detail={"message": "Facebook account needs reconnection", "code": "AUTH_EXPIRED"})

    try:
        page_token = await facebook.get_page_access_token(payload.page_id, user_token)
    except PlatformError as exc:
        raise platform_http_error(exc)
    if not page_token:
        raise HTTPException(status_code=400, detail="Unable to obtain a token for this Page")

    await repo.update_meta(account, selected_page_id=payload.page_id, selected_page_name=payload.page_name)
    page = await repo.upsert_facebook_page(
        current_user.id,
        payload.page_id,
        payload.page_name,
        encrypt_token(page_token),
        account.access_token_enc,
    )
    logger.info("facebook_page_selected", page_id=payload.page_id, account_id=str(page.id))
    return api_success({"account": account_to_read(page)})
