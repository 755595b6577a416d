from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from .models import User
from typing import Optional
import uuid

class UserRepository:
    """Owners of posts and social accounts. Users are created by operators or tests, never by the API."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self, user_id: uuid.UUID) -> Optional[User]:
        q = select(User).where(User.id == user_id, User.is_active == True)  # noqa: E712
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user
