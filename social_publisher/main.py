# social_publisher/main.py
import asyncio
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from social_publisher.routers.post_router import router as post_router
from social_publisher.routers.accounts_router import router as accounts_router
from social_publisher.routers.analytics_router import router as analytics_router
from social_publisher.routers.responses import api_error, api_success
from social_publisher.infrastructure.database import init_db
from social_publisher.middleware.logging import RequestIdMiddleware
from social_publisher.services.scheduler import SCHEDULER_INTERVAL_SECONDS, run_scheduler
import structlog

def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
    )

configure_structlog()
logger = structlog.get_logger()

app = FastAPI(title="Social Publisher")

app.add_middleware(RequestIdMiddleware)

app.include_router(post_router)
app.include_router(accounts_router)
app.include_router(analytics_router)

_scheduler_task: Optional[asyncio.Task] = None


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        return api_error(exc.status_code, exc.detail.get("message", ""), code=exc.detail.get("code"))
    return api_error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return api_error(422, "Invalid request", code="VALIDATION_ERROR", data=exc.errors())


@app.get("/health")
async def health():
    return api_success({"status": "ok"})


@app.on_event("startup")
async def on_startup():
    global _scheduler_task
    await init_db()
    if SCHEDULER_INTERVAL_SECONDS > 0:
        _scheduler_task = asyncio.create_task(run_scheduler(SCHEDULER_INTERVAL_SECONDS))
    logger.info("app_startup", scheduler=_scheduler_task is not None)


@app.on_event("shutdown")
async def on_shutdown():
    if _scheduler_task is not None:
        _scheduler_task.cancel()
    logger.info("app_shutdown")

if __name__ == "__main__":
    uvicorn.run("social_publisher.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
