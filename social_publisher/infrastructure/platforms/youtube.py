# social_publisher/infrastructure/platforms/youtube.py
import os
from typing import Optional

import structlog

from .errors import ErrorKind, PlatformError
from .http_client import get_client
from .tokens import TokenSet, token_set_from

logger = structlog.get_logger(__name__)

PLATFORM = "YOUTUBE"
YOUTUBE_TOKEN_URL = "https://oauth2.googleapis.com/token"
YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
YOUTUBE_UPLOAD_BASE = "https://www.googleapis.com/upload/youtube/v3"
YOUTUBE_ANALYTICS_API_BASE = "https://youtubeanalytics.googleapis.com/v2"
YOUTUBE_CLIENT_ID = os.getenv("YOUTUBE_CLIENT_ID", "")
YOUTUBE_CLIENT_SECRET = os.getenv("YOUTUBE_CLIENT_SECRET", "")
TITLE_MAX_LENGTH = 100
ANALYTICS_METRICS = "views,estimatedMinutesWatched,likes,subscribersGained,subscribersLost,averageViewDuration"


def _auth(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


async def _upload_thumbnail(access_token: str, video_id: str, thumbnail_url: str) -> None:
    client = get_client()
    image = await client.download(PLATFORM, thumbnail_url)
    await client.request(
        PLATFORM,
        "POST",
        f"{YOUTUBE_UPLOAD_BASE}/thumbnails/set",
        params={"videoId": video_id},
        headers={**_auth(access_token), "Content-Type": "image/jpeg"},
        content=image,
    )


async def upload_video(
    access_token: str,
    video_url: str,
    title: str,
    description: Optional[str] = None,
    thumbnail_url: Optional[str] = None,
) -> str:
    """
    Download `video_url` and push it through a resumable upload.
    The thumbnail is best effort: its failure never fails the upload.
    Returns the video id.
    """
    client = get_client()
    video = await client.download(PLATFORM, video_url)

    metadata = {
        "snippet": {
            "title": title[:TITLE_MAX_LENGTH],
            "description": description or "",
            "tags": [],
            "categoryId": "22",  # People & Blogs
            "defaultLanguage": "en",
            "defaultAudioLanguage": "en",
        },
        "status": {
            "privacyStatus": "public",
            "embeddable": True,
            "license": "youtube",
            "publicStatsViewable": True,
        },
    }
    init = await client.request(
        PLATFORM,
        "POST",
        f"{YOUTUBE_UPLOAD_BASE}/videos",
        params={"uploadType": "resumable", "part": "snippet,status"},
        headers={**_auth(access_token), "X-Upload-Content-Type": "video/*"},
        json=metadata,
    )
    upload_url = init.headers.get("location")
    if not upload_url:
        raise PlatformError(ErrorKind.UNKNOWN, "No upload URL returned from YouTube", platform=PLATFORM)

    uploaded = await client.request(PLATFORM, "PUT", upload_url, headers={"Content-Type": "video/*"}, content=video)
    video_id = uploaded.json().get("id")
    if not video_id:
        raise PlatformError(ErrorKind.UNKNOWN, "YouTube returned no video id", platform=PLATFORM)
    logger.info("youtube_video_uploaded", video_id=video_id, size=len(video))

    if thumbnail_url:
        try:
            await _upload_thumbnail(access_token, video_id, thumbnail_url)
        except PlatformError as e:
            logger.warning("youtube_thumbnail_upload_failed", video_id=video_id, error=e.message)
    return video_id


async def refresh_token(refresh_token: str) -> TokenSet:
    body = await get_client().post(
        PLATFORM,
        YOUTUBE_TOKEN_URL,
        data={
            "client_id": YOUTUBE_CLIENT_ID,
            "client_secret": YOUTUBE_CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
    )
    return token_set_from(PLATFORM, body)


async def fetch_channel_analytics(access_token: str, start_date: str, end_date: str) -> dict:
    """Channel statistics plus period totals from the Analytics API."""
    client = get_client()
    channels = await client.get(
        PLATFORM,
        f"{YOUTUBE_API_BASE}/channels",
        headers=_auth(access_token),
        params={"part": "snippet,statistics", "mine": "true"},
    )
    items = channels.get("items") or []
    if not items:
        raise PlatformError(ErrorKind.CONFIGURATION, "No YouTube channel found for this account", platform=PLATFORM)
    channel = items[0]
    stats = channel.get("statistics") or {}

    report = await client.get(
        PLATFORM,
        f"{YOUTUBE_ANALYTICS_API_BASE}/reports",
        headers=_auth(access_token),
        params={"ids": "channel==MINE", "startDate": start_date, "endDate": end_date, "metrics": ANALYTICS_METRICS},
    )
    headers = [h.get("name") for h in report.get("columnHeaders") or []]
    rows = report.get("rows") or []
    totals = dict(zip(headers, rows[0])) if rows else {}

    return {
        "channel_id": channel.get("id"),
        "channel_title": (channel.get("snippet") or {}).get("title"),
        "channel_stats": {
            "subscriber_count": int(stats.get("subscriberCount", 0)),
            "view_count": int(stats.get("viewCount", 0)),
            "video_count": int(stats.get("videoCount", 0)),
        },
        "period": {"start_date": start_date, "end_date": end_date},
        "totals": {
            "views": totals.get("views", 0),
            "watch_time_minutes": totals.get("estimatedMinutesWatched", 0),
            "likes": totals.get("likes", 0),
            "net_subscribers": totals.get("subscribersGained", 0) - totals.get("subscribersLost", 0),
            "average_view_duration": totals.get("averageViewDuration", 0),
        },
    }
