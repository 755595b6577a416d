# social_publisher/infrastructure/platforms/facebook.py
import os
from typing import List, Optional

import structlog

from .errors import ErrorKind, PlatformError
from .http_client import get_client

logger = structlog.get_logger(__name__)

PLATFORM = "FACEBOOK"
FACEBOOK_GRAPH_VERSION = os.getenv("FACEBOOK_GRAPH_VERSION", "v20.0")
GRAPH_BASE = f"https://graph.facebook.com/{FACEBOOK_GRAPH_VERSION}"


async def get_user_pages(user_access_token: str) -> List[dict]:
    """Pages the user manages: [{"id", "name", "access_token"?}, ...]."""
    body = await get_client().get(PLATFORM, f"{GRAPH_BASE}/me/accounts", params={"access_token": user_access_token})
    return body.get("data") or []


async def get_page_access_token(page_id: str, user_access_token: str) -> Optional[str]:
    body = await get_client().get(
        PLATFORM,
        f"{GRAPH_BASE}/{page_id}",
        params={"fields": "access_token", "access_token": user_access_token},
    )
    return body.get("access_token")


async def post_to_page(
    page_id: str,
    message: Optional[str] = None,
    image_url: Optional[str] = None,
    link_url: Optional[str] = None,
    scheduled_publish_time: Optional[int] = None,
    page_access_token: Optional[str] = None,
    user_access_token: Optional[str] = None,
) -> str:
    """
    Publish to a Page feed, or as a photo post when `image_url` is given.
    A Page token is derived from the user token when none is supplied.
    Returns the post id.
    """
    if not page_access_token:
        if not user_access_token:
            raise PlatformError(ErrorKind.CONFIGURATION, "pageAccessToken or userAccessToken is required", platform=PLATFORM)
        page_access_token = await get_page_access_token(page_id, user_access_token)
        if not page_access_token:
            raise PlatformError(ErrorKind.AUTH_EXPIRED, "Unable to obtain page access token", platform=PLATFORM)

    form = {"access_token": page_access_token}
    if scheduled_publish_time is not None:
        form["published"] = "false"
        form["scheduled_publish_time"] = str(scheduled_publish_time)

    client = get_client()
    if image_url:
        form["url"] = image_url
        if message:
            form["caption"] = message
        res = await client.post(PLATFORM, f"{GRAPH_BASE}/{page_id}/photos", data=form)
        post_id = res.get("post_id") or res.get("id")
    else:
        if message:
            form["message"] = message
        if link_url:
            form["link"] = link_url
        res = await client.post(PLATFORM, f"{GRAPH_BASE}/{page_id}/feed", data=form)
        post_id = res.get("id")

    if not post_id:
        raise PlatformError(ErrorKind.UNKNOWN, "Facebook returned no post id", platform=PLATFORM)
    logger.info("facebook_post_created", page_id=page_id, post_id=post_id, photo=bool(image_url))
    return post_id
