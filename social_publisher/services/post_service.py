# social_publisher/services/post_service.py
import json
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.posts_repo import PostRepository
from social_publisher.models.post import Post, PostStatus, Publication
from social_publisher.models.types import as_utc, utcnow
from social_publisher.schemas.post_schema import PostCreate, PostRead, PostUpdate, PublicationRead
from social_publisher.services.content_composer import merge_media, parse_hashtags
from social_publisher.services.publish_service import PostNotFoundError

logger = structlog.get_logger(__name__)

NOTHING_TO_PUBLISH_MESSAGE = "Post needs content, an image or a video"
ALREADY_PUBLISHED_MESSAGE = "Post is already published"


class PostValidationError(ValueError):
    pass


def post_to_read(post: Post, publications: List[Publication]) -> PostRead:
    return PostRead(
        id=post.id,
        user_id=post.user_id,
        content=post.content,
        hashtags=parse_hashtags(post.hashtags),
        title=post.title,
        description=post.description,
        images=merge_media(post.image_url, post.images, "images"),
        videos=merge_media(post.video_url, post.videos, "videos"),
        status=post.status,
        scheduled_at=post.scheduled_at,
        published_at=post.published_at,
        created_at=post.created_at,
        updated_at=post.updated_at,
        publications=[PublicationRead.model_validate(p, from_attributes=True) for p in publications],
    )


def _encode_list(values: Optional[List[str]]) -> Optional[str]:
    return json.dumps(values) if values else None


class PostService:
    def __init__(self, session: AsyncSession):
        self.posts = PostRepository(session)
        self.accounts = SocialAccountRepository(session)

    async def create_post(self, user_id: uuid.UUID, payload: PostCreate) -> Tuple[Post, List[Publication]]:
        if not (payload.content or payload.image_url or payload.images or payload.video_url or payload.videos):
            raise PostValidationError(NOTHING_TO_PUBLISH_MESSAGE)

        account_ids = list(dict.fromkeys(payload.social_account_ids))
        accounts = await self.accounts.list_active_by_ids(user_id, account_ids)
        if len(accounts) != len(account_ids):
            raise PostValidationError("One or more social accounts are invalid or inactive")

        scheduled_at = as_utc(payload.scheduled_at) if payload.scheduled_at else None
        if scheduled_at and scheduled_at <= utcnow():
            raise PostValidationError("Scheduled time must be in the future")

        post = Post(
            user_id=user_id,
            content=payload.content,
            hashtags=json.dumps(parse_hashtags(payload.hashtags)),
            title=payload.title,
            description=payload.description,
            image_url=payload.image_url,
            images=_encode_list(payload.images),
            video_url=payload.video_url,
            videos=_encode_list(payload.videos),
            status=PostStatus.SCHEDULED if scheduled_at else PostStatus.DRAFT,
            scheduled_at=scheduled_at,
        )
        post, publications = await self.posts.create(post, account_ids)
        logger.info("post_created", post_id=str(post.id), targets=len(publications), status=post.status.value)
        return post, publications

    async def _get_owned(self, post_id: uuid.UUID, user_id: uuid.UUID) -> Post:
        post = await self.posts.get_for_user(post_id, user_id)
        if not post:
            raise PostNotFoundError("Post not found")
        return post

    async def get_post(self, post_id: uuid.UUID, user_id: uuid.UUID) -> Tuple[Post, List[Publication]]:
        post = await self._get_owned(post_id, user_id)
        return post, await self.posts.list_publications(post.id)

    async def list_posts(
        self, user_id: uuid.UUID, page: int = 1, limit: int = 10, status: Optional[PostStatus] = None
    ) -> Tuple[List[Tuple[Post, List[Publication]]], int]:
        posts, total = await self.posts.list_for_user(user_id, status=status, offset=(page - 1) * limit, limit=limit)
        return [(p, await self.posts.list_publications(p.id)) for p in posts], total

    async def update_post(self, post_id: uuid.UUID, user_id: uuid.UUID, payload: PostUpdate) -> Tuple[Post, List[Publication]]:
        """
        Edit content and media of a post that has not been published yet.
        A FAILED post keeps its status so it can be corrected and published again.
        """
        post = await self._get_owned(post_id, user_id)
        if post.status == PostStatus.PUBLISHED:
            raise PostValidationError(ALREADY_PUBLISHED_MESSAGE)

        fields = payload.model_dump(exclude_unset=True)
        if "hashtags" in fields:
            fields["hashtags"] = json.dumps(parse_hashtags(fields["hashtags"]))
        for name in ("images", "videos"):
            if name in fields:
                fields[name] = _encode_list(fields[name])

        merged = {name: fields.get(name, getattr(post, name)) for name in ("content", "image_url", "images", "video_url", "videos")}
        if not (merged["content"] or merged["image_url"] or merge_media(None, merged["images"], "images")
                or merged["video_url"] or merge_media(None, merged["videos"], "videos")):
            raise PostValidationError(NOTHING_TO_PUBLISH_MESSAGE)

        post = await self.posts.update(post, fields)
        logger.info("post_updated", post_id=str(post.id), fields=sorted(fields))
        return post, await self.posts.list_publications(post.id)

    async def delete_post(self, post_id: uuid.UUID, user_id: uuid.UUID) -> None:
        post = await self._get_owned(post_id, user_id)
        await self.posts.delete(post)
        logger.info("post_deleted", post_id=str(post_id))

    async def schedule_post(self, post_id: uuid.UUID, user_id: uuid.UUID, scheduled_at: datetime) -> Tuple[Post, List[Publication]]:
        post = await self._get_owned(post_id, user_id)
        if post.status == PostStatus.PUBLISHED:
            raise PostValidationError(ALREADY_PUBLISHED_MESSAGE)
        scheduled_at = as_utc(scheduled_at)
        if scheduled_at <= utcnow():
            raise PostValidationError("Scheduled time must be in the future")
        post = await self.posts.schedule(post, scheduled_at)
        logger.info("post_scheduled", post_id=str(post.id), scheduled_at=scheduled_at.isoformat())
        return post, await self.posts.list_publications(post.id)

    async def cancel_schedule(self, post_id: uuid.UUID, user_id: uuid.UUID) -> Tuple[Post, List[Publication]]:
        post = await self._get_owned(post_id, user_id)
        if post.status != PostStatus.SCHEDULED:
            raise PostValidationError("Post is not scheduled")
        post = await self.posts.cancel_schedule(post)
        logger.info("post_schedule_cancelled", post_id=str(post.id))
        return post, await self.posts.list_publications(post.id)
