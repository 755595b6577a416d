# social_publisher/services/content_composer.py
import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

import structlog

from social_publisher.models.post import Post

logger = structlog.get_logger(__name__)

_SEPARATORS = re.compile(r"[,\s]+")


@dataclass
class ComposedContent:
    text: str
    images: List[str] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None

    @property
    def first_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @property
    def first_video(self) -> Optional[str]:
        return self.videos[0] if self.videos else None


def parse_hashtags(raw: Any) -> List[str]:
    """
    Normalise stored hashtags into `#tag` tokens.
    Accepts a JSON array string, a comma/whitespace separated string or a list.
    """
    if not raw:
        return []

    items: List[Any]
    if isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        text = str(raw).strip()
        try:
            decoded = json.loads(text)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            items = decoded
        else:
            items = _SEPARATORS.split(text)

    tags: List[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        token = item.strip()
        if not token or token == "#":
            continue
        if not token.startswith("#"):
            token = f"#{token}"
        if token not in tags:
            tags.append(token)
    return tags


def merge_media(primary: Optional[str], encoded_list: Optional[str], field_name: str = "media") -> List[str]:
    """Primary url first, then the JSON array items; first occurrence wins."""
    merged: List[str] = []
    if primary and primary.strip():
        merged.append(primary.strip())

    if encoded_list:
        try:
            decoded = json.loads(encoded_list)
        except ValueError:
            logger.warning("media_list_parse_failed", field=field_name, reason="invalid json")
            decoded = []
        if not isinstance(decoded, list):
            logger.warning("media_list_parse_failed", field=field_name, reason="not an array")
            decoded = []
        for item in decoded:
            if not isinstance(item, str) or not item.strip():
                continue
            url = item.strip()
            if url not in merged:
                merged.append(url)
    return merged


def compose(post: Post) -> ComposedContent:
    content = (post.content or "").strip()
    hashtags = parse_hashtags(post.hashtags)
    if hashtags:
        tag_line = " ".join(hashtags)
        text = f"{content}\n\n{tag_line}" if content else tag_line
    else:
        text = content

    return ComposedContent(
        text=text,
        images=merge_media(post.image_url, post.images, "images"),
        videos=merge_media(post.video_url, post.videos, "videos"),
        title=post.title,
        description=post.description,
    )
