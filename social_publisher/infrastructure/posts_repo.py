# social_publisher/infrastructure/posts_repo.py
from typing import Optional, List, Iterable, Tuple
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import func
from social_publisher.models.post import Post, Publication, PostStatus, PublicationStatus
import uuid
from datetime import datetime
from social_publisher.models.types import utcnow

class PostRepository:
    """
    Repository for Post and its Publication rows.
    Every write commits immediately, so each publication outcome is durable
    even if a later account in the same publish attempt blows up.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, post: Post, social_account_ids: Iterable[uuid.UUID]) -> Tuple[Post, List[Publication]]:
        self.session.add(post)
        await self.session.flush()
        publications = [
            Publication(post_id=post.id, social_account_id=account_id, status=PublicationStatus.PENDING)
            for account_id in social_account_ids
        ]
        self.session.add_all(publications)
        await self.session.commit()
        await self.session.refresh(post)
        for pub in publications:
            await self.session.refresh(pub)
        return post, publications

    async def get_for_user(self, post_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Post]:
        q = select(Post).where(Post.id == post_id, Post.user_id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        status: Optional[PostStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Post], int]:
        q = select(Post).where(Post.user_id == user_id)
        count_q = select(func.count()).select_from(Post).where(Post.user_id == user_id)
        if status is not None:
            q = q.where(Post.status == status)
            count_q = count_q.where(Post.status == status)
        res = await self.session.execute(q.order_by(Post.created_at.desc()).offset(offset).limit(limit))
        total = (await self.session.execute(count_q)).scalar_one()
        return list(res.scalars().all()), total

    async def list_publications(self, post_id: uuid.UUID) -> List[Publication]:
        q = select(Publication).where(Publication.post_id == post_id).order_by(Publication.created_at)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_due_scheduled(self, now: datetime) -> List[Post]:
        q = (
            select(Post)
            .where(Post.status == PostStatus.SCHEDULED, Post.scheduled_at <= now)
            .order_by(Post.scheduled_at)
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def mark_publication_published(self, publication: Publication, platform_post_id: Optional[str]) -> Publication:
        publication.status = PublicationStatus.PUBLISHED
        publication.platform_post_id = platform_post_id
        publication.error_message = None
        publication.published_at = utcnow()
        return await self._save(publication)

    async def mark_publication_failed(self, publication: Publication, error_message: str) -> Publication:
        publication.status = PublicationStatus.FAILED
        publication.error_message = error_message
        return await self._save(publication)

    async def set_status(self, post: Post, status: PostStatus, published_at: Optional[datetime] = None) -> Post:
        post.status = status
        post.published_at = published_at
        post.updated_at = utcnow()
        return await self._save(post)

    async def schedule(self, post: Post, scheduled_at: datetime) -> Post:
        """Schedule the post and reset every publication so the next attempt retries all targets."""
        post.status = PostStatus.SCHEDULED
        post.scheduled_at = scheduled_at
        post.updated_at = utcnow()
        self.session.add(post)
        for publication in await self.list_publications(post.id):
            publication.status = PublicationStatus.PENDING
            publication.error_message = None
            self.session.add(publication)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def cancel_schedule(self, post: Post) -> Post:
        post.status = PostStatus.DRAFT
        post.scheduled_at = None
        post.updated_at = utcnow()
        return await self._save(post)

    async def update(self, post: Post, fields: dict) -> Post:
        for name, value in fields.items():
            setattr(post, name, value)
        post.updated_at = utcnow()
        return await self._save(post)

    async def delete(self, post: Post) -> None:
        for publication in await self.list_publications(post.id):
            await self.session.delete(publication)
        await self.session.flush()
        await self.session.delete(post)
        await self.session.commit()

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj
