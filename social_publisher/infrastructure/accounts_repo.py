# social_publisher/infrastructure/accounts_repo.py
from typing import Optional, List, Iterable
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from social_publisher.models.social_account import SocialAccount, Platform, AccountType
import uuid
from datetime import datetime
from social_publisher.models.types import utcnow

class SocialAccountRepository:
    """
    Repository for SocialAccount entity.
    All methods are async and expect an AsyncSession to be injected from the outside.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, account: SocialAccount) -> SocialAccount:
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def get_by_id(self, id: uuid.UUID) -> Optional[SocialAccount]:
        q = select(SocialAccount).where(SocialAccount.id == id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_external_id(self, user_id: uuid.UUID, platform: Platform, account_id: str) -> Optional[SocialAccount]:
        q = select(SocialAccount).where(
            SocialAccount.user_id == user_id,
            SocialAccount.platform == platform,
            SocialAccount.account_id == account_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_user_account(self, user_id: uuid.UUID, platform: Platform) -> Optional[SocialAccount]:
        """Most recent active non-Page account of the user on `platform`."""
        q = (
            select(SocialAccount)
            .where(
                SocialAccount.user_id == user_id,
                SocialAccount.platform == platform,
                SocialAccount.account_type != AccountType.BUSINESS,
                SocialAccount.is_active == True,  # noqa: E712
            )
            .order_by(SocialAccount.created_at.desc())
        )
        res = await self.session.execute(q)
        return res.scalars().first()

    async def list_by_user(self, user_id: uuid.UUID, active_only: bool = False) -> List[SocialAccount]:
        q = select(SocialAccount).where(SocialAccount.user_id == user_id)
        if active_only:
            q = q.where(SocialAccount.is_active == True)  # noqa: E712
        res = await self.session.execute(q.order_by(SocialAccount.created_at))
        return list(res.scalars().all())

    async def list_active_by_ids(self, user_id: uuid.UUID, ids: Iterable[uuid.UUID]) -> List[SocialAccount]:
        q = select(SocialAccount).where(
            SocialAccount.user_id == user_id,
            SocialAccount.id.in_(list(ids)),
            SocialAccount.is_active == True,  # noqa: E712
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_facebook_pages(self, user_id: uuid.UUID) -> List[SocialAccount]:
        """Active Page-level Facebook connections, newest first."""
        q = (
            select(SocialAccount)
            .where(
                SocialAccount.user_id == user_id,
                SocialAccount.platform == Platform.FACEBOOK,
                SocialAccount.account_type == AccountType.BUSINESS,
                SocialAccount.is_active == True,  # noqa: E712
            )
            .order_by(SocialAccount.created_at.desc())
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def update_tokens(
        self,
        account: SocialAccount,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        expires_at: Optional[datetime],
    ) -> SocialAccount:
        """
        Update token fields, expires_at and updated_at.
        Commits and returns refreshed instance.
        """
        account.access_token_enc = access_token_enc
        account.refresh_token_enc = refresh_token_enc
        account.expires_at = expires_at
        account.updated_at = utcnow()
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def deactivate(self, account: SocialAccount) -> SocialAccount:
        account.is_active = False
        account.updated_at = utcnow()
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def update_meta(self, account: SocialAccount, **changes) -> SocialAccount:
        # reassign so the JSON column is flagged dirty
        account.meta = {**(account.meta or {}), **changes}
        account.updated_at = utcnow()
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def upsert_facebook_page(
        self,
        user_id: uuid.UUID,
        page_id: str,
        page_name: Optional[str],
        page_token_enc: str,
        user_token_enc: Optional[str],
    ) -> SocialAccount:
        existing = await self.get_by_external_id(user_id, Platform.FACEBOOK, page_id)
        if existing:
            if page_name:
                existing.account_name = page_name
            existing.access_token_enc = page_token_enc
            existing.refresh_token_enc = user_token_enc
            existing.account_type = AccountType.BUSINESS
            existing.is_active = True
            existing.updated_at = utcnow()
            self.session.add(existing)
            await self.session.commit()
            await self.session.refresh(existing)
            return existing

        page = SocialAccount(
            user_id=user_id,
            platform=Platform.FACEBOOK,
            account_id=page_id,
            account_name=page_name or f"Facebook Page {page_id}",
            account_type=AccountType.BUSINESS,
            access_token_enc=page_token_enc,
            refresh_token_enc=user_token_enc,  # user token kept as the seed for a new Page token
            is_active=True,
        )
        return await self.create(page)
