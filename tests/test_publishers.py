"""Routing of composed content to the platform modules."""
import pytest

from social_publisher.infrastructure.accounts_repo import SocialAccountRepository
from social_publisher.infrastructure.platforms import facebook, instagram, linkedin, twitter, youtube
from social_publisher.infrastructure.platforms.errors import ErrorKind, PlatformError
from social_publisher.models.post import Post
from social_publisher.models.social_account import AccountType, Platform
from social_publisher.services.content_composer import ComposedContent
from social_publisher.services.publishers import (
    MULTIPLE_PAGES_MESSAGE,
    NO_PAGE_MESSAGE,
    PublishTarget,
    dispatch,
)


class Recorder:
    def __init__(self, result="external-id"):
        self.calls = []
        self.result = result

    async def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self.result


def target_for(account, session, user, **content):
    content.setdefault("text", "Hello")
    return PublishTarget(
        post=Post(user_id=user.id, content=content["text"]),
        account=account,
        access_token="token",
        content=ComposedContent(**content),
        user_id=user.id,
        accounts=SocialAccountRepository(session),
    )


async def test_twitter_uses_first_image_only(session, user, make_account, monkeypatch):
    post_tweet = Recorder("tweet-1")
    monkeypatch.setattr(twitter, "post_tweet", post_tweet)
    account = await make_account(Platform.TWITTER)

    result = await dispatch(target_for(account, session, user, images=["https://cdn/a.jpg", "https://cdn/b.jpg"]))

    assert result == "tweet-1"
    args, kwargs = post_tweet.calls[0]
    assert args == ("token", "Hello")
    assert kwargs == {"video_url": None, "image_url": "https://cdn/a.jpg"}


async def test_twitter_video_wins_over_image(session, user, make_account, monkeypatch):
    post_tweet = Recorder()
    monkeypatch.setattr(twitter, "post_tweet", post_tweet)
    account = await make_account(Platform.TWITTER)

    await dispatch(target_for(account, session, user, images=["https://cdn/a.jpg"], videos=["https://cdn/v.mp4"]))

    assert post_tweet.calls[0][1] == {"video_url": "https://cdn/v.mp4", "image_url": None}


async def test_linkedin_receives_all_media(session, user, make_account, monkeypatch):
    post_share = Recorder()
    monkeypatch.setattr(linkedin, "post_share", post_share)
    account = await make_account(Platform.LINKEDIN, account_id="li-person")

    await dispatch(target_for(account, session, user, images=["https://cdn/a.jpg", "https://cdn/b.jpg"]))

    args, kwargs = post_share.calls[0]
    assert args == ("token", "Hello", "li-person")
    assert kwargs["image_urls"] == ["https://cdn/a.jpg", "https://cdn/b.jpg"]
    assert kwargs["video_urls"] == []


async def test_instagram_mixed_media_takes_video_path_only(session, user, make_account, monkeypatch):
    create_video, create_image = Recorder("reel"), Recorder("image")
    monkeypatch.setattr(instagram, "create_video", create_video)
    monkeypatch.setattr(instagram, "create_image", create_image)
    account = await make_account(Platform.INSTAGRAM)

    result = await dispatch(target_for(account, session, user, images=["https://cdn/a.jpg"], videos=["https://cdn/v.mp4"]))

    assert result == "reel"
    assert create_video.calls[0][0] == ("token", "https://cdn/v.mp4", "Hello")
    assert create_image.calls == []


async def test_instagram_images_go_to_create_image(session, user, make_account, monkeypatch):
    create_image = Recorder()
    monkeypatch.setattr(instagram, "create_image", create_image)
    account = await make_account(Platform.INSTAGRAM)

    await dispatch(target_for(account, session, user, images=["https://cdn/a.jpg", "https://cdn/b.jpg"]))

    assert create_image.calls[0][0] == ("token", ["https://cdn/a.jpg", "https://cdn/b.jpg"], "Hello")


async def test_instagram_without_media(session, user, make_account):
    account = await make_account(Platform.INSTAGRAM)
    with pytest.raises(PlatformError) as exc:
        await dispatch(target_for(account, session, user))
    assert exc.value.message == "Instagram posts require either an image or video"
    assert exc.value.kind is ErrorKind.CONTENT_REJECTED


async def test_youtube_without_video_never_calls_platform(session, user, make_account, monkeypatch):
    upload = Recorder()
    monkeypatch.setattr(youtube, "upload_video", upload)
    account = await make_account(Platform.YOUTUBE)

    with pytest.raises(PlatformError) as exc:
        await dispatch(target_for(account, session, user, images=["https://cdn/a.jpg"]))

    assert exc.value.message == "YouTube posts require video content"
    assert upload.calls == []


async def test_youtube_title_and_description_fallbacks(session, user, make_account, monkeypatch):
    upload = Recorder("yt-1")
    monkeypatch.setattr(youtube, "upload_video", upload)
    account = await make_account(Platform.YOUTUBE)
    long_text = "x" * 150

    await dispatch(target_for(account, session, user, text=long_text, videos=["https://cdn/v.mp4"], images=["https://cdn/t.jpg"]))

    args, kwargs = upload.calls[0]
    assert args == ("token", "https://cdn/v.mp4", "x" * 100)
    assert kwargs == {"description": long_text, "thumbnail_url": "https://cdn/t.jpg"}


async def test_youtube_empty_text_defaults(session, user, make_account, monkeypatch):
    upload = Recorder()
    monkeypatch.setattr(youtube, "upload_video", upload)
    account = await make_account(Platform.YOUTUBE)

    await dispatch(target_for(account, session, user, text="", videos=["https://cdn/v.mp4"]))

    args, kwargs = upload.calls[0]
    assert args[2] == "Untitled Video"
    assert kwargs["description"] == "No description"


async def test_facebook_business_account_posts_to_itself(session, user, make_account, monkeypatch):
    post_to_page = Recorder("fb-1")
    monkeypatch.setattr(facebook, "post_to_page", post_to_page)
    page = await make_account(Platform.FACEBOOK, account_id="page-9", account_type=AccountType.BUSINESS)

    await dispatch(target_for(page, session, user, images=["https://cdn/a.jpg", "https://cdn/b.jpg"]))

    args, kwargs = post_to_page.calls[0]
    assert args == ("page-9",)
    assert kwargs["page_access_token"] == "token"
    assert kwargs["image_url"] == "https://cdn/a.jpg"


async def test_facebook_selected_page_is_used(session, user, make_account, monkeypatch):
    post_to_page = Recorder()
    monkeypatch.setattr(facebook, "post_to_page", post_to_page)
    account = await make_account(Platform.FACEBOOK, meta={"selected_page_id": "page-7"})

    await dispatch(target_for(account, session, user))

    args, kwargs = post_to_page.calls[0]
    assert args == ("page-7",)
    assert kwargs["user_access_token"] == "token"
    assert kwargs["page_access_token"] is None


async def test_facebook_single_connected_page_uses_its_token(session, user, make_account, monkeypatch):
    post_to_page = Recorder()
    monkeypatch.setattr(facebook, "post_to_page", post_to_page)
    account = await make_account(Platform.FACEBOOK, account_id="fb-user")
    await make_account(Platform.FACEBOOK, account_id="page-1", access_token="page-token", account_type=AccountType.BUSINESS)

    await dispatch(target_for(account, session, user))

    args, kwargs = post_to_page.calls[0]
    assert args == ("page-1",)
    assert kwargs["page_access_token"] == "page-token"


async def test_facebook_multiple_pages_fails_before_platform_call(session, user, make_account, monkeypatch):
    post_to_page, get_user_pages = Recorder(), Recorder([])
    monkeypatch.setattr(facebook, "post_to_page", post_to_page)
    monkeypatch.setattr(facebook, "get_user_pages", get_user_pages)
    account = await make_account(Platform.FACEBOOK, account_id="fb-user")
    await make_account(Platform.FACEBOOK, account_id="page-1", account_type=AccountType.BUSINESS)
    await make_account(Platform.FACEBOOK, account_id="page-2", account_type=AccountType.BUSINESS)

    with pytest.raises(PlatformError) as exc:
        await dispatch(target_for(account, session, user))

    assert exc.value.message == MULTIPLE_PAGES_MESSAGE
    assert exc.value.kind is ErrorKind.CONFIGURATION
    assert post_to_page.calls == []
    assert get_user_pages.calls == []


async def test_facebook_multiple_listed_pages_fails(session, user, make_account, monkeypatch):
    post_to_page = Recorder()
    monkeypatch.setattr(facebook, "post_to_page", post_to_page)
    monkeypatch.setattr(facebook, "get_user_pages", Recorder([{"id": "1"}, {"id": "2"}]))
    account = await make_account(Platform.FACEBOOK, account_id="fb-user")

    with pytest.raises(PlatformError) as exc:
        await dispatch(target_for(account, session, user))

    assert exc.value.message == MULTIPLE_PAGES_MESSAGE
    assert post_to_page.calls == []


async def test_facebook_single_listed_page(session, user, make_account, monkeypatch):
    post_to_page = Recorder()
    monkeypatch.setattr(facebook, "post_to_page", post_to_page)
    monkeypatch.setattr(facebook, "get_user_pages", Recorder([{"id": "42", "access_token": "listed-token"}]))
    account = await make_account(Platform.FACEBOOK, account_id="fb-user")

    await dispatch(target_for(account, session, user))

    args, kwargs = post_to_page.calls[0]
    assert args == ("42",)
    assert kwargs["page_access_token"] == "listed-token"


async def test_facebook_no_pages(session, user, make_account, monkeypatch):
    monkeypatch.setattr(facebook, "get_user_pages", Recorder([]))
    account = await make_account(Platform.FACEBOOK, account_id="fb-user")

    with pytest.raises(PlatformError) as exc:
        await dispatch(target_for(account, session, user))
    assert exc.value.message == NO_PAGE_MESSAGE


async def test_unsupported_platform(session, user, make_account):
    account = await make_account(Platform.TIKTOK)
    with pytest.raises(PlatformError) as exc:
        await dispatch(target_for(account, session, user))
    assert exc.value.message == "Unsupported platform: TIKTOK"
    assert exc.value.kind is ErrorKind.CONFIGURATION
