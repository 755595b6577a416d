# social_publisher/infrastructure/platforms/twitter.py
import asyncio
import base64
import mimetypes
import os
from typing import Optional

import structlog

from .errors import ErrorKind, PlatformError
from .http_client import get_client
from .tokens import TokenSet, token_set_from

logger = structlog.get_logger(__name__)

PLATFORM = "TWITTER"
TWITTER_API_BASE = "https://api.x.com/2"
TWITTER_TOKEN_URL = "https://api.x.com/2/oauth2/token"
TWITTER_CLIENT_ID = os.getenv("TWITTER_CLIENT_ID", "")
TWITTER_CLIENT_SECRET = os.getenv("TWITTER_CLIENT_SECRET", "")
MEDIA_CHUNK_SIZE = 4 * 1024 * 1024
MEDIA_STATUS_ATTEMPTS = int(os.getenv("TWITTER_MEDIA_STATUS_ATTEMPTS", "20"))
MEDIA_STATUS_MAX_WAIT_SECONDS = float(os.getenv("TWITTER_MEDIA_STATUS_MAX_WAIT_SECONDS", "10"))


def _auth(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


def _basic_auth(client_id: str, client_secret: str) -> str:
    return "Basic " + base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()


async def _wait_for_processing(access_token: str, media_id: str, processing_info: Optional[dict]) -> None:
    attempts = 0
    while processing_info:
        state = processing_info.get("state")
        if state == "succeeded":
            return
        if state == "failed":
            error = (processing_info.get("error") or {}).get("message", "media processing failed")
            raise PlatformError(ErrorKind.CONTENT_REJECTED, f"Twitter media processing failed: {error}", platform=PLATFORM)
        attempts += 1
        if attempts > MEDIA_STATUS_ATTEMPTS:
            raise PlatformError(ErrorKind.UNKNOWN, f"Twitter media processing timeout after {MEDIA_STATUS_ATTEMPTS} attempts", platform=PLATFORM)
        await asyncio.sleep(min(processing_info.get("check_after_secs", 1), MEDIA_STATUS_MAX_WAIT_SECONDS))
        body = await get_client().get(
            PLATFORM,
            f"{TWITTER_API_BASE}/media/upload",
            headers=_auth(access_token),
            params={"command": "STATUS", "media_id": media_id},
        )
        processing_info = (body.get("data") or {}).get("processing_info")


async def upload_media(access_token: str, media_url: str, category: str) -> str:
    """Chunked upload of a remote file; returns the media id."""
    client = get_client()
    payload = await client.download(PLATFORM, media_url)
    media_type = mimetypes.guess_type(media_url.split("?")[0])[0] or ("video/mp4" if category == "tweet_video" else "image/jpeg")

    init = await client.post(
        PLATFORM,
        f"{TWITTER_API_BASE}/media/upload/initialize",
        headers=_auth(access_token),
        json={"media_type": media_type, "total_bytes": len(payload), "media_category": category},
    )
    media_id = (init.get("data") or {}).get("id")
    if not media_id:
        raise PlatformError(ErrorKind.UNKNOWN, "Twitter media upload returned no media id", platform=PLATFORM)

    for index, start in enumerate(range(0, len(payload), MEDIA_CHUNK_SIZE)):
        await client.request(
            PLATFORM,
            "POST",
            f"{TWITTER_API_BASE}/media/upload/{media_id}/append",
            headers=_auth(access_token),
            data={"segment_index": str(index)},
            files={"media": ("chunk", payload[start:start + MEDIA_CHUNK_SIZE], "application/octet-stream")},
        )

    final = await client.post(PLATFORM, f"{TWITTER_API_BASE}/media/upload/{media_id}/finalize", headers=_auth(access_token))
    await _wait_for_processing(access_token, media_id, (final.get("data") or {}).get("processing_info"))
    logger.info("twitter_media_uploaded", media_id=media_id, category=category, size=len(payload))
    return media_id


async def post_tweet(
    access_token: str,
    text: str,
    video_url: Optional[str] = None,
    image_url: Optional[str] = None,
) -> str:
    """
    Post a tweet with at most one media item; a video takes precedence over an image.
    Returns the tweet id.
    """
    tweet: dict = {"text": text}
    if video_url:
        tweet["media"] = {"media_ids": [await upload_media(access_token, video_url, "tweet_video")]}
    elif image_url:
        tweet["media"] = {"media_ids": [await upload_media(access_token, image_url, "tweet_image")]}

    res = await get_client().post(PLATFORM, f"{TWITTER_API_BASE}/tweets", headers=_auth(access_token), json=tweet)
    tweet_id = (res.get("data") or {}).get("id")
    if not tweet_id:
        raise PlatformError(ErrorKind.UNKNOWN, "Twitter returned no tweet id", platform=PLATFORM)
    logger.info("tweet_posted", tweet_id=tweet_id, has_media="media" in tweet)
    return tweet_id


async def refresh_token(refresh_token: str) -> TokenSet:
    if not TWITTER_CLIENT_ID:
        raise PlatformError(ErrorKind.CONFIGURATION, "TWITTER_CLIENT_ID is not configured", platform=PLATFORM)
    body = await get_client().post(
        PLATFORM,
        TWITTER_TOKEN_URL,
        headers={"Authorization": _basic_auth(TWITTER_CLIENT_ID, TWITTER_CLIENT_SECRET)},
        data={"grant_type": "refresh_token", "refresh_token": refresh_token, "client_id": TWITTER_CLIENT_ID},
    )
    return token_set_from(PLATFORM, body)
