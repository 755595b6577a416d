# social_publisher/services/scheduler.py
import asyncio
import os
from datetime import datetime
from typing import Optional

import structlog

from social_publisher.infrastructure.database import get_session
from social_publisher.infrastructure.posts_repo import PostRepository
from social_publisher.models.post import PostStatus
from social_publisher.models.types import utcnow
from social_publisher.services.publish_lock import PublishInProgressError
from social_publisher.services.publish_service import PublishPreconditionError, PublishService

logger = structlog.get_logger(__name__)

SCHEDULER_INTERVAL_SECONDS = float(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))


async def process_due_posts(now: Optional[datetime] = None, session_factory=get_session) -> int:
    """
    Publish every SCHEDULED post whose time has come, each in its own session.
    Returns the number of posts a publish attempt ran for.
    """
    now = now or utcnow()
    async with session_factory() as session:
        due = await PostRepository(session).list_due_scheduled(now)
    if due:
        logger.info("scheduler_due_posts", count=len(due))

    processed = 0
    for post in due:
        async with session_factory() as session:
            try:
                report = await PublishService(session).publish(post.id, post.user_id)
                processed += 1
                logger.info("scheduled_post_processed", post_id=str(post.id), status=report.outcome.post_status.value)
            except PublishInProgressError:
                logger.info("scheduled_post_skipped_in_progress", post_id=str(post.id))
            except PublishPreconditionError as e:
                repo = PostRepository(session)
                stale = await repo.get_for_user(post.id, post.user_id)
                if stale and stale.status == PostStatus.SCHEDULED:
                    await repo.set_status(stale, PostStatus.FAILED)
                logger.warning("scheduled_post_rejected", post_id=str(post.id), error=str(e))
            except Exception as e:
                logger.exception("scheduled_post_error", post_id=str(post.id), error=str(e))
    return processed


async def run_scheduler(interval: float = SCHEDULER_INTERVAL_SECONDS) -> None:
    logger.info("scheduler_started", interval=interval)
    while True:
        try:
            await process_due_posts()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("scheduler_tick_failed", error=str(e))
        await asyncio.sleep(interval)
