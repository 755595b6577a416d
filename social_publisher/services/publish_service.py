# social_publisher/services/publish_service.py
import uuid
from dataclasses import dataclass
from typing import List, Optional

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms import instagram
from social_publisher.infrastructure.platforms.errors import ErrorKind, PlatformError
from social_publisher.infrastructure.posts_repo import PostRepository
from social_publisher.models.post import Post, PostStatus, Publication
from social_publisher.models.social_account import Platform, SocialAccount
from social_publisher.models.types import utcnow
from social_publisher.services import publishers
from social_publisher.services.content_composer import ComposedContent, compose
from social_publisher.services.publish_lock import get_publish_lock
from social_publisher.services.result_aggregator import PublishOutcome, PublishResult, aggregate
from social_publisher.services.token_manager import TokenManager

logger = structlog.get_logger(__name__)

NO_ACCOUNTS_MESSAGE = (
    "No social accounts selected for this post. Please select at least one social account before publishing."
)


class PostNotFoundError(Exception):
    pass


class PublishPreconditionError(Exception):
    pass


@dataclass
class PublishReport:
    post: Post
    publications: List[Publication]
    results: List[PublishResult]
    outcome: PublishOutcome


class PublishService:
    """
    Publishes a post to every account it targets, one account at a time.
    A failure on one account is recorded on its publication and never stops the others.
    """

    def __init__(self, session: AsyncSession, lock=None):
        self.posts = PostRepository(session)
        self.accounts = SocialAccountRepository(session)
        self.tokens = TokenManager(session)
        self.lock = lock or get_publish_lock()

    async def publish(self, post_id: uuid.UUID, user_id: uuid.UUID) -> PublishReport:
        post = await self.posts.get_for_user(post_id, user_id)
        if not post:
            raise PostNotFoundError("Post not found")

        async with self.lock.hold(post.id):
            # re-read inside the lock; a concurrent attempt may just have finished
            await self.posts.session.refresh(post)
            if post.status == PostStatus.PUBLISHED:
                raise PublishPreconditionError("Post is already published")

            publications = await self.posts.list_publications(post.id)
            if not publications:
                raise PublishPreconditionError(NO_ACCOUNTS_MESSAGE)

            logger.info("publish_started", post_id=str(post.id), targets=len(publications))
            content = compose(post)
            results = [await self._publish_one(post, pub, content, user_id) for pub in publications]

            outcome = aggregate(results)
            published_at = utcnow() if outcome.success_count > 0 else None
            post = await self.posts.set_status(post, outcome.post_status, published_at)
            logger.info(
                "publish_finished",
                post_id=str(post.id),
                status=outcome.post_status.value,
                success_count=outcome.success_count,
                total_count=outcome.total_count,
            )
            return PublishReport(
                post=post,
                publications=await self.posts.list_publications(post.id),
                results=results,
                outcome=outcome,
            )

    async def _publish_one(
        self, post: Post, publication: Publication, content: ComposedContent, user_id: uuid.UUID
    ) -> PublishResult:
        account: Optional[SocialAccount] = await self.accounts.get_by_id(publication.social_account_id)
        platform = account.platform.value if account else "UNKNOWN"
        account_name = account.account_name if account else None
        log = logger.bind(post_id=str(post.id), publication_id=str(publication.id), platform=platform)

        try:
            if account is None:
                raise PlatformError(ErrorKind.AUTH_EXPIRED, "Social account not found", platform=platform)

            validation = await self.tokens.validate_and_refresh(user_id, account.platform, account.account_id)
            if not validation.is_valid:
                kind = ErrorKind.AUTH_EXPIRED if validation.needs_reconnection else ErrorKind.UNKNOWN
                raise PlatformError(kind, validation.error or "Invalid access token", platform=platform)

            target = publishers.PublishTarget(
                post=post,
                account=account,
                access_token=validation.access_token,
                content=content,
                user_id=user_id,
                accounts=self.accounts,
            )
            platform_post_id = await publishers.dispatch(target)
        except PlatformError as e:
            message = e.message
            if account is not None and account.platform == Platform.INSTAGRAM and e.is_aspect_ratio:
                message = f"{message}. {instagram.aspect_ratio_guidance()}"
            await self.posts.mark_publication_failed(publication, message)
            log.warning("publication_failed", kind=e.kind.value, error=message)
            return PublishResult(
                platform=platform,
                account_name=account_name,
                success=False,
                error=message,
                needs_reconnection=e.needs_reconnection,
            )
        except Exception as e:
            await self.posts.mark_publication_failed(publication, str(e))
            log.exception("publication_error", error=str(e))
            return PublishResult(platform=platform, account_name=account_name, success=False, error=str(e))

        await self.posts.mark_publication_published(publication, platform_post_id)
        log.info("publication_published", platform_post_id=platform_post_id)
        return PublishResult(
            platform=platform,
            account_name=account_name,
            success=True,
            platform_post_id=platform_post_id,
        )
