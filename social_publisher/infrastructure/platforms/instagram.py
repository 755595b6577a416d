# social_publisher/infrastructure/platforms/instagram.py
import asyncio
import os
from typing import List

import structlog

from .errors import ErrorKind, PlatformError
from .http_client import get_client
from .tokens import TokenSet, token_set_from

logger = structlog.get_logger(__name__)

PLATFORM = "INSTAGRAM"
INSTAGRAM_API_BASE = "https://graph.instagram.com"
INSTAGRAM_POLL_ATTEMPTS = int(os.getenv("INSTAGRAM_POLL_ATTEMPTS", "12"))
INSTAGRAM_POLL_DELAY_SECONDS = float(os.getenv("INSTAGRAM_POLL_DELAY_SECONDS", "10"))
VIDEO_EXTENSIONS = (".mp4", ".mov", ".m4v")
CAROUSEL_MIN, CAROUSEL_MAX = 2, 10


def aspect_ratio_guidance() -> str:
    return (
        "Instagram aspect ratio requirements: "
        "1:1 square (1080x1080), 4:5 portrait (1080x1350) or 1.91:1 landscape (1080x566). "
        "Carousel images must all share the same ratio, 2-10 images per carousel."
    )


async def _create_container(access_token: str, params: dict) -> str:
    res = await get_client().post(PLATFORM, f"{INSTAGRAM_API_BASE}/me/media", data={**params, "access_token": access_token})
    container_id = res.get("id")
    if not container_id:
        raise PlatformError(ErrorKind.UNKNOWN, "Instagram returned no media container id", platform=PLATFORM)
    return container_id


async def _publish_container(access_token: str, container_id: str) -> str:
    res = await get_client().post(
        PLATFORM,
        f"{INSTAGRAM_API_BASE}/me/media_publish",
        data={"creation_id": container_id, "access_token": access_token},
    )
    media_id = res.get("id")
    if not media_id:
        raise PlatformError(ErrorKind.UNKNOWN, "Instagram returned no media id", platform=PLATFORM)
    return media_id


async def _wait_for_processing(access_token: str, container_id: str) -> None:
    """
    Poll a video container until FINISHED. A container reporting ERROR fails the post;
    an unreadable status or running out of attempts falls through to publishing.
    """
    for attempt in range(1, INSTAGRAM_POLL_ATTEMPTS + 1):
        try:
            status = await get_client().get(
                PLATFORM,
                f"{INSTAGRAM_API_BASE}/{container_id}",
                params={"fields": "status_code,status", "access_token": access_token},
            )
        except PlatformError as e:
            if e.needs_reconnection:
                raise
            logger.warning("instagram_status_check_failed", container_id=container_id, error=e.message)
            return

        code = status.get("status_code")
        logger.debug("instagram_container_status", container_id=container_id, attempt=attempt, status_code=code)
        if code == "FINISHED":
            return
        if code == "ERROR":
            raise PlatformError(
                ErrorKind.CONTENT_REJECTED,
                "Instagram video processing failed. Check video format: MP4, H.264, max 100MB, max 60s for Reels",
                platform=PLATFORM,
            )
        if attempt < INSTAGRAM_POLL_ATTEMPTS:
            await asyncio.sleep(INSTAGRAM_POLL_DELAY_SECONDS)

    logger.warning("instagram_status_check_timed_out", container_id=container_id, attempts=INSTAGRAM_POLL_ATTEMPTS)


async def create_video(access_token: str, video_url: str, caption: str) -> str:
    """Publish a video as a Reel; returns the media id."""
    if not video_url.lower().split("?")[0].endswith(VIDEO_EXTENSIONS):
        raise PlatformError(
            ErrorKind.CONTENT_REJECTED,
            "Video validation failed: Unsupported video format. Use MP4, MOV, or M4V",
            platform=PLATFORM,
        )
    container_id = await _create_container(access_token, {"video_url": video_url, "media_type": "REELS", "caption": caption})
    await _wait_for_processing(access_token, container_id)
    media_id = await _publish_container(access_token, container_id)
    logger.info("instagram_reel_published", media_id=media_id)
    return media_id


async def _create_single_image(access_token: str, image_url: str, caption: str) -> str:
    container_id = await _create_container(access_token, {"image_url": image_url, "caption": caption})
    media_id = await _publish_container(access_token, container_id)
    logger.info("instagram_image_published", media_id=media_id)
    return media_id


async def _create_carousel(access_token: str, image_urls: List[str], caption: str) -> str:
    if len(image_urls) > CAROUSEL_MAX:
        logger.warning("instagram_carousel_trimmed", requested=len(image_urls), kept=CAROUSEL_MAX)
        image_urls = image_urls[:CAROUSEL_MAX]

    children: List[str] = []
    failures: List[str] = []
    for i, url in enumerate(image_urls, start=1):
        try:
            children.append(await _create_container(access_token, {"image_url": url, "is_carousel_item": "true"}))
        except PlatformError as e:
            if e.needs_reconnection:
                raise
            reason = "invalid aspect ratio" if e.is_aspect_ratio else e.message
            logger.warning("instagram_carousel_item_failed", index=i, error=reason)
            failures.append(f"Image {i}: {reason}")

    if len(children) < CAROUSEL_MIN:
        summary = "; ".join(failures) or "Instagram carousel requires at least 2 valid images"
        raise PlatformError(ErrorKind.CONTENT_REJECTED, f"Not enough valid images for carousel. {summary}", platform=PLATFORM)

    container_id = await _create_container(
        access_token,
        {"media_type": "CAROUSEL", "children": ",".join(children), "caption": caption},
    )
    media_id = await _publish_container(access_token, container_id)
    logger.info("instagram_carousel_published", media_id=media_id, items=len(children), skipped=len(failures))
    return media_id


async def create_image(access_token: str, image_urls: List[str], caption: str) -> str:
    """One image posts directly; several become a carousel, falling back to the first image."""
    if not image_urls:
        raise PlatformError(ErrorKind.CONTENT_REJECTED, "No images provided", platform=PLATFORM)
    if len(image_urls) == 1:
        return await _create_single_image(access_token, image_urls[0], caption)
    try:
        return await _create_carousel(access_token, image_urls, caption)
    except PlatformError as e:
        if e.needs_reconnection:
            raise
        logger.warning("instagram_carousel_fallback_to_single", error=e.message)
        return await _create_single_image(access_token, image_urls[0], caption)


async def refresh_token(token: str) -> TokenSet:
    body = await get_client().get(
        PLATFORM,
        f"{INSTAGRAM_API_BASE}/refresh_access_token",
        params={"grant_type": "ig_refresh_token", "access_token": token},
    )
    tokens = token_set_from(PLATFORM, body)
    # the long-lived token is its own refresh credential
    tokens.refresh_token = tokens.refresh_token or tokens.access_token
    return tokens
