# social_publisher/services/publishers.py
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

import structlog

from social_publisher.auth.utils import decrypt_token
from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms import facebook, instagram, linkedin, twitter, youtube
from social_publisher.infrastructure.platforms.errors import ErrorKind, PlatformError
from social_publisher.models.post import Post
from social_publisher.models.social_account import AccountType, Platform, SocialAccount
from social_publisher.services.content_composer import ComposedContent

logger = structlog.get_logger(__name__)

MULTIPLE_PAGES_MESSAGE = (
    "Multiple Facebook Pages connected. Select one in Integrations or assign this post to a specific Page."
)
NO_PAGE_MESSAGE = "No Facebook Page selected. Connect a Page or select one in Integrations."


@dataclass
class PublishTarget:
    post: Post
    account: SocialAccount
    access_token: str
    content: ComposedContent
    user_id: uuid.UUID
    accounts: SocialAccountRepository


Handler = Callable[[PublishTarget], Awaitable[str]]


async def _resolve_facebook_page(target: PublishTarget):
    """
    Pick the Page to post to and the token to post with.
    Returns (page_id, page_access_token, user_access_token); exactly one token is set.
    """
    account = target.account
    if account.account_type == AccountType.BUSINESS:
        return account.account_id, target.access_token, None

    selected = (account.meta or {}).get("selected_page_id")
    if selected:
        return str(selected), None, target.access_token

    pages = await target.accounts.list_facebook_pages(target.user_id)
    if len(pages) > 1:
        raise PlatformError(ErrorKind.CONFIGURATION, MULTIPLE_PAGES_MESSAGE, platform=Platform.FACEBOOK.value)
    if len(pages) == 1:
        page_token = decrypt_token(pages[0].access_token_enc)
        if page_token:
            return pages[0].account_id, page_token, None
        return pages[0].account_id, None, target.access_token

    listed = await facebook.get_user_pages(target.access_token)
    if len(listed) > 1:
        raise PlatformError(ErrorKind.CONFIGURATION, MULTIPLE_PAGES_MESSAGE, platform=Platform.FACEBOOK.value)
    if len(listed) == 1:
        page = listed[0]
        return str(page["id"]), page.get("access_token"), target.access_token
    raise PlatformError(ErrorKind.CONFIGURATION, NO_PAGE_MESSAGE, platform=Platform.FACEBOOK.value)


async def publish_facebook(target: PublishTarget) -> str:
    page_id, page_token, user_token = await _resolve_facebook_page(target)
    logger.debug("facebook_page_resolved", page_id=page_id, account_type=target.account.account_type.value)
    return await facebook.post_to_page(
        page_id,
        message=target.content.text or None,
        image_url=target.content.first_image,
        page_access_token=page_token,
        user_access_token=user_token,
    )


async def publish_twitter(target: PublishTarget) -> str:
    content = target.content
    return await twitter.post_tweet(
        target.access_token,
        content.text,
        video_url=content.first_video,
        image_url=None if content.first_video else content.first_image,
    )


async def publish_linkedin(target: PublishTarget) -> str:
    content = target.content
    return await linkedin.post_share(
        target.access_token,
        content.text,
        target.account.account_id,
        video_urls=content.videos,
        image_urls=content.images,
    )


async def publish_instagram(target: PublishTarget) -> str:
    content = target.content
    if content.videos:
        if content.images:
            logger.warning("instagram_mixed_media", post_id=str(target.post.id), images=len(content.images))
        return await instagram.create_video(target.access_token, content.first_video, content.text)
    if content.images:
        return await instagram.create_image(target.access_token, content.images, content.text)
    raise PlatformError(
        ErrorKind.CONTENT_REJECTED,
        "Instagram posts require either an image or video",
        platform=Platform.INSTAGRAM.value,
    )


async def publish_youtube(target: PublishTarget) -> str:
    content = target.content
    if not content.videos:
        raise PlatformError(ErrorKind.CONTENT_REJECTED, "YouTube posts require video content", platform=Platform.YOUTUBE.value)
    title = content.title or content.text[:youtube.TITLE_MAX_LENGTH] or "Untitled Video"
    description = content.description or content.text or "No description"
    return await youtube.upload_video(
        target.access_token,
        content.first_video,
        title,
        description=description,
        thumbnail_url=content.first_image,
    )


PUBLISHERS: Dict[Platform, Handler] = {
    Platform.FACEBOOK: publish_facebook,
    Platform.TWITTER: publish_twitter,
    Platform.LINKEDIN: publish_linkedin,
    Platform.INSTAGRAM: publish_instagram,
    Platform.YOUTUBE: publish_youtube,
}


async def dispatch(target: PublishTarget) -> str:
    platform = target.account.platform
    handler = PUBLISHERS.get(platform)
    if handler is None:
        raise PlatformError(ErrorKind.CONFIGURATION, f"Unsupported platform: {platform.value}", platform=platform.value)
    return await handler(target)
