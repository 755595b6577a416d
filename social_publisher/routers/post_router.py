# social_publisher/routers/post_router.py
import uuid
from dataclasses import asdict
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.dependencies.db import get_session_dep
from social_publisher.dependencies.auth import get_current_user
from social_publisher.models.post import PostStatus
from social_publisher.routers.responses import api_error, api_success
from social_publisher.schemas.post_schema import PostCreate, PostUpdate, ScheduleCreate
from social_publisher.services.post_service import PostService, PostValidationError, post_to_read
from social_publisher.services.publish_lock import PublishInProgressError
from social_publisher.services.publish_service import PostNotFoundError, PublishPreconditionError, PublishService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", status_code=201)
async def create_post(payload: PostCreate, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PostService(session)
    try:
        post, publications = await svc.create_post(user_id=current_user.id, payload=payload)
    except PostValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return api_success(post_to_read(post, publications), status_code=201)


@router.get("")
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[PostStatus] = None,
    session: AsyncSession = Depends(get_session_dep),
    current_user = Depends(get_current_user),
):
    svc = PostService(session)
    rows, total = await svc.list_posts(current_user.id, page=page, limit=limit, status=status)
    return api_success({
        "posts": [post_to_read(post, pubs) for post, pubs in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    })


@router.get("/{post_id}")
async def get_post(post_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PostService(session)
    try:
        post, publications = await svc.get_post(post_id, current_user.id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return api_success(post_to_read(post, publications))


@router.put("/{post_id}")
async def update_post(post_id: uuid.UUID, payload: PostUpdate, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PostService(session)
    try:
        post, publications = await svc.update_post(post_id, current_user.id, payload)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PostValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return api_success(post_to_read(post, publications))


@router.delete("/{post_id}")
async def delete_post(post_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PostService(session)
    try:
        await svc.delete_post(post_id, current_user.id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return api_success({"id": post_id, "message": "Post deleted successfully"})


@router.post("/{post_id}/schedule")
async def schedule_post(post_id: uuid.UUID, payload: ScheduleCreate, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PostService(session)
    try:
        post, publications = await svc.schedule_post(post_id, current_user.id, payload.scheduled_at)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PostValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return api_success(post_to_read(post, publications))


@router.delete("/{post_id}/schedule")
async def cancel_schedule(post_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PostService(session)
    try:
        post, publications = await svc.cancel_schedule(post_id, current_user.id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PostValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return api_success(post_to_read(post, publications))


@router.post("/{post_id}/publish")
async def publish_post(post_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    svc = PublishService(session)
    try:
        report = await svc.publish(post_id, current_user.id)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"message": str(exc), "code": "POST_NOT_FOUND"})
    except PublishPreconditionError as exc:
        raise HTTPException(status_code=400, detail={"message": str(exc), "code": "PUBLISH_PRECONDITION_FAILED"})
    except PublishInProgressError as exc:
        raise HTTPException(status_code=409, detail={"message": str(exc), "code": "PUBLISH_IN_PROGRESS"})
    except Exception as exc:
        logger.exception("publish_unhandled_error", post_id=str(post_id), error=str(exc))
        raise HTTPException(status_code=500, detail={"message": "Failed to publish post", "code": "INTERNAL_ERROR"})

    outcome = report.outcome
    data = {
        "post": post_to_read(report.post, report.publications),
        "publish_results": [asdict(r) for r in report.results],
        "success_count": outcome.success_count,
        "total_count": outcome.total_count,
        "message": outcome.message,
    }
    if outcome.success_count == 0:
        data["needs_reconnection"] = outcome.needs_reconnection
        data["reconnection_platforms"] = outcome.reconnection_platforms
        return api_error(400, outcome.message, code="PUBLISH_FAILED", data=data)
    if outcome.has_warnings:
        data["has_warnings"] = True
        data["needs_reconnection"] = outcome.needs_reconnection
        data["reconnection_platforms"] = outcome.reconnection_platforms
    return api_success(data)
