# social_publisher/services/result_aggregator.py
from dataclasses import dataclass, field
from typing import List, Optional

from social_publisher.models.post import PostStatus


@dataclass
class PublishResult:
    platform: str
    account_name: Optional[str]
    success: bool
    platform_post_id: Optional[str] = None
    error: Optional[str] = None
    needs_reconnection: bool = False


@dataclass
class PublishOutcome:
    post_status: PostStatus
    success_count: int
    total_count: int
    message: str
    has_warnings: bool = False
    needs_reconnection: bool = False
    reconnection_platforms: List[str] = field(default_factory=list)


def aggregate(results: List[PublishResult]) -> PublishOutcome:
    total = len(results)
    succeeded = sum(1 for r in results if r.success)

    platforms: List[str] = []
    for r in results:
        if not r.success and r.needs_reconnection and r.platform not in platforms:
            platforms.append(r.platform)
    suffix = f". The following platforms need reconnection: {', '.join(platforms)}" if platforms else ""

    if succeeded == 0:
        status = PostStatus.FAILED
        message = f"Post publishing failed on all platforms{suffix}"
    elif succeeded < total:
        status = PostStatus.PUBLISHED
        message = f"Post published with errors: {succeeded}/{total} platforms succeeded{suffix}"
    else:
        status = PostStatus.PUBLISHED
        message = f"Post published successfully to all {total} platforms"

    return PublishOutcome(
        post_status=status,
        success_count=succeeded,
        total_count=total,
        message=message,
        has_warnings=0 < succeeded < total,
        needs_reconnection=bool(platforms),
        reconnection_platforms=platforms,
    )
