# social_publisher/infrastructure/platforms/linkedin.py
from typing import List, Optional

import structlog

from .errors import ErrorKind, PlatformError
from .http_client import get_client
from .tokens import TokenSet

logger = structlog.get_logger(__name__)

PLATFORM = "LINKEDIN"
LINKEDIN_API_BASE = "https://api.linkedin.com/v2"
IMAGE_RECIPE = "urn:li:digitalmediaRecipe:feedshare-image"
VIDEO_RECIPE = "urn:li:digitalmediaRecipe:feedshare-video"


def _headers(access_token: str) -> dict:
    return {
        "Authorization": f"Bearer {access_token}",
        "X-Restli-Protocol-Version": "2.0.0",
        "LinkedIn-Version": "202405",
    }


async def _author_urn(access_token: str, fallback_id: str) -> str:
    try:
        profile = await get_client().get(PLATFORM, f"{LINKEDIN_API_BASE}/userinfo", headers=_headers(access_token))
    except PlatformError as e:
        if e.needs_reconnection:
            raise
        logger.warning("linkedin_profile_lookup_failed", error=e.message)
        return f"urn:li:person:{fallback_id}"
    return f"urn:li:person:{profile.get('sub') or fallback_id}"


async def _upload_asset(access_token: str, author: str, media_url: str, recipe: str) -> str:
    client = get_client()
    registered = await client.post(
        PLATFORM,
        f"{LINKEDIN_API_BASE}/assets",
        params={"action": "registerUpload"},
        headers=_headers(access_token),
        json={
            "registerUploadRequest": {
                "recipes": [recipe],
                "owner": author,
                "serviceRelationships": [
                    {"relationshipType": "OWNER", "identifier": "urn:li:userGeneratedContent"}
                ],
            }
        },
    )
    value = registered.get("value") or {}
    mechanism = (value.get("uploadMechanism") or {}).get("com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest") or {}
    upload_url, asset = mechanism.get("uploadUrl"), value.get("asset")
    if not upload_url or not asset:
        raise PlatformError(ErrorKind.UNKNOWN, "LinkedIn did not return an upload URL", platform=PLATFORM)

    payload = await client.download(PLATFORM, media_url)
    await client.request(PLATFORM, "PUT", upload_url, headers={"Authorization": f"Bearer {access_token}"}, content=payload)
    return asset


def _media_entry(asset: str, kind: str, index: int, total: int) -> dict:
    suffix = f" {index + 1}" if total > 1 else ""
    return {
        "status": "READY",
        "description": {"text": f"Shared {kind}{suffix}"},
        "media": asset,
        "title": {"text": f"Post {kind.capitalize()}{suffix}"},
    }


async def post_share(
    access_token: str,
    text: str,
    author_id: str,
    video_urls: Optional[List[str]] = None,
    image_urls: Optional[List[str]] = None,
) -> str:
    """
    Create a UGC post carrying every video, or every image when there are no videos.
    A failed video upload aborts the post; a failed image upload only drops that image.
    """
    video_urls = video_urls or []
    image_urls = image_urls or []
    author = await _author_urn(access_token, author_id)

    media: List[dict] = []
    if video_urls:
        for i, url in enumerate(video_urls):
            asset = await _upload_asset(access_token, author, url, VIDEO_RECIPE)
            media.append(_media_entry(asset, "video", i, len(video_urls)))
    elif image_urls:
        for i, url in enumerate(image_urls):
            try:
                asset = await _upload_asset(access_token, author, url, IMAGE_RECIPE)
            except PlatformError as e:
                if e.needs_reconnection:
                    raise
                logger.warning("linkedin_image_upload_skipped", index=i, error=e.message)
                continue
            media.append(_media_entry(asset, "image", i, len(image_urls)))

    category = "NONE"
    if media:
        category = "VIDEO" if video_urls else "IMAGE"

    body = {
        "author": author,
        "lifecycleState": "PUBLISHED",
        "specificContent": {
            "com.linkedin.ugc.ShareContent": {
                "shareCommentary": {"text": text},
                "shareMediaCategory": category,
                "media": media,
            }
        },
        "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
    }
    r = await get_client().request(PLATFORM, "POST", f"{LINKEDIN_API_BASE}/ugcPosts", headers=_headers(access_token), json=body)
    post_id = r.headers.get("x-restli-id") or (r.json() if r.content else {}).get("id")
    if not post_id:
        raise PlatformError(ErrorKind.UNKNOWN, "LinkedIn returned no post id", platform=PLATFORM)
    logger.info("linkedin_post_created", post_id=post_id, media_category=category, media_count=len(media))
    return post_id


async def refresh_token(refresh_token: str) -> TokenSet:
    raise PlatformError(
        ErrorKind.AUTH_EXPIRED,
        "LinkedIn does not support refresh tokens. Please reconnect your account.",
        platform=PLATFORM,
    )
