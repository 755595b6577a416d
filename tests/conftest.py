"""
Shared fixtures: a throwaway SQLite database per test, an authenticated owner,
and factories for accounts and posts.
"""
import os

# module-level config is read on import
os.environ["REDIS_URL"] = ""
os.environ["SCHEDULER_INTERVAL_SECONDS"] = "0"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["INSTAGRAM_POLL_DELAY_SECONDS"] = "0"
os.environ["TWITTER_CLIENT_ID"] = "twitter-client"
os.environ["TWITTER_CLIENT_SECRET"] = "twitter-secret"

import json
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.auth.models import User
from social_publisher.auth.repository import UserRepository
from social_publisher.auth.utils import create_access_token, encrypt_token
from social_publisher.dependencies.db import get_session_dep
from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.database import init_db
from social_publisher.infrastructure.platforms import http_client
from social_publisher.infrastructure.posts_repo import PostRepository
from social_publisher.main import app
from social_publisher.models.post import Post
from social_publisher.models.social_account import AccountType, SocialAccount
from social_publisher.services import publish_lock
from social_publisher.services.youtube_analytics import analytics_cache


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    @asynccontextmanager
    async def factory():
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session
    return factory


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session_dep] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def isolated_globals():
    publish_lock.set_publish_lock(publish_lock.LocalPublishLock())
    analytics_cache.clear()
    yield
    publish_lock.set_publish_lock(None)
    http_client.set_client(None)
    analytics_cache.clear()


@pytest_asyncio.fixture
async def user(session):
    return await UserRepository(session).create(User(email="owner@example.com", username="owner"))


@pytest.fixture
def auth_headers(user):
    token = create_access_token(str(user.id))["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_account(session, user):
    async def _make(
        platform,
        account_id="acct-1",
        access_token="access-token",
        refresh_token=None,
        account_type=AccountType.PERSONAL,
        expires_at=None,
        meta=None,
        name=None,
        is_active=True,
    ) -> SocialAccount:
        account = SocialAccount(
            user_id=user.id,
            platform=platform,
            account_id=account_id,
            account_name=name or f"{platform.value.title()} {account_id}",
            account_type=account_type,
            access_token_enc=encrypt_token(access_token) if access_token else None,
            refresh_token_enc=encrypt_token(refresh_token) if refresh_token else None,
            expires_at=expires_at,
            is_active=is_active,
            meta=meta or {},
        )
        return await SocialAccountRepository(session).create(account)
    return _make


@pytest.fixture
def make_post(session, user):
    async def _make(accounts=(), content="Hello world", images=None, videos=None, **fields):
        post = Post(
            user_id=user.id,
            content=content,
            images=json.dumps(images) if images is not None else None,
            videos=json.dumps(videos) if videos is not None else None,
            **fields,
        )
        post, _ = await PostRepository(session).create(post, [a.id for a in accounts])
        return post
    return _make
