import json

import httpx
import pytest

from reels.client import ReelsClient
from reels.context import FeedContext
from reels.engagement import LikeController
from reels.errors import NetworkOrServerError, NotFoundError, UnauthorizedError, ValidationError
from reels.feed import ReelFeedController
from reels.models import Session

from conftest import make_video

SESSION = Session(user_id="u1", email="viewer@example.com", token="tok")

VIDEO = {
    "_id": "v1",
    "title": "Sunset",
    "description": "beach",
    "videoUrl": "https://media.example/v1.mp4",
    "thumbnailUrl": "https://media.example/v1.jpg",
    "duration": 12.5,
    "aspectRatio": "9:16",
    "likes": 3,
    "likedBy": ["u2"],
    "author": {"_id": "u2", "email": "author@example.com", "displayName": "Author"},
    "createdAt": "2026-10-01T12:00:00+00:00",
}


def make_client(handler):
    return ReelsClient("http://api.test", transport=httpx.MockTransport(handler))


async def test_fetch_page_sends_limit_and_offset():
    seen = {}

    def handler(request: httpx.Request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={
            "videos": [VIDEO],
            "pagination": {"total": 11, "limit": 10, "offset": 10, "hasMore": False},
        })

    page = await make_client(handler).fetch_page(10, 10)
    assert seen["params"] == {"limit": "10", "offset": "10"}
    assert page.videos[0].id == "v1"
    assert page.videos[0].author_name == "Author"
    assert page.pagination.has_more is False


async def test_toggle_like_sends_bearer_token():
    def handler(request: httpx.Request):
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Bearer tok"
        return httpx.Response(200, json={"liked": True, "likes": 4})

    result = await make_client(handler).toggle_like("v1", SESSION)
    assert (result.liked, result.likes) == (True, 4)


async def test_toggle_like_without_session_skips_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = make_client(handler)
    with pytest.raises(UnauthorizedError):
        await client.toggle_like("v1", None)
    assert await client.get_like_status("v1", None) is False
    assert calls == []


async def test_post_comment_body():
    def handler(request: httpx.Request):
        assert json.loads(request.content) == {"text": "nice!"}
        return httpx.Response(201, json={
            "_id": "c1",
            "videoId": "v1",
            "text": "nice!",
            "userId": {"_id": "u1", "email": "viewer@example.com"},
            "createdAt": "2026-10-01T12:00:00+00:00",
        })

    created = await make_client(handler).post_comment("v1", "nice!", SESSION)
    assert created.text == "nice!"
    assert created.author_name == "viewer@example.com"


@pytest.mark.parametrize("status,error", [
    (401, UnauthorizedError),
    (403, UnauthorizedError),
    (404, NotFoundError),
    (400, ValidationError),
    (422, ValidationError),
    (500, NetworkOrServerError),
])
async def test_status_codes_map_to_errors(status, error):
    def handler(request):
        return httpx.Response(status, json={"detail": "nope"})

    with pytest.raises(error, match="nope"):
        await make_client(handler).get_video("v1")


async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(NetworkOrServerError):
        await make_client(handler).fetch_page(10, 0)


async def test_login_builds_session():
    def handler(request):
        return httpx.Response(200, json={"token": "abc", "user": {"_id": "u1", "email": "a@example.com"}})

    session = await make_client(handler).login("a@example.com", "pw")
    assert session == Session(user_id="u1", email="a@example.com", token="abc")


@pytest.mark.parametrize("call,body", [
    (lambda c: c.get_like_status("v1", SESSION), {"liked": "maybe"}),
    (lambda c: c.fetch_page(10, 0), {"videos": [{"_id": "x"}]}),
    (lambda c: c.list_comments("v1"), {"comments": []}),
    (lambda c: c.toggle_like("v1", SESSION), {"liked": True}),
    (lambda c: c.post_comment("v1", "hi", SESSION), ["not", "a", "comment"]),
    (lambda c: c.login("a@example.com", "pw"), {"token": "abc"}),
])
async def test_malformed_success_body_is_server_error(call, body):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(NetworkOrServerError):
        await call(make_client(handler))


async def test_malformed_like_status_reads_as_not_liked():
    def handler(request):
        return httpx.Response(200, json={"liked": "maybe"})

    context = FeedContext(client=make_client(handler), session=SESSION, notify=lambda n: None)
    likes = LikeController(make_video(0), context)
    assert await likes.refresh() is False
    assert not likes.liked


async def test_malformed_page_sets_retryable_error():
    def handler(request):
        return httpx.Response(200, json={"videos": [{"_id": "x"}]})

    context = FeedContext(client=make_client(handler), session=SESSION, notify=lambda n: None)
    feed = ReelFeedController(context)
    assert await feed.load_more() == 0
    assert feed.error == "Failed to load more videos"
    assert feed.videos == []


async def test_create_video_posts_payload():
    def handler(request: httpx.Request):
        assert request.url.path == "/videos"
        assert request.headers["Authorization"] == "Bearer tok"
        assert json.loads(request.content)["title"] == "Sunset"
        return httpx.Response(201, json=VIDEO)

    created = await make_client(handler).create_video({"title": "Sunset"}, SESSION)
    assert created.id == "v1"
    with pytest.raises(UnauthorizedError):
        await make_client(handler).create_video({"title": "Sunset"}, None)


async def test_get_profile():
    def handler(request: httpx.Request):
        assert request.url.path == "/users/maker"
        return httpx.Response(200, json={
            "_id": "u2",
            "email": "author@example.com",
            "username": "maker",
            "videos": [VIDEO],
            "stats": {"videos": 1, "followers": 2, "following": 0},
        })

    profile = await make_client(handler).get_profile("maker")
    assert profile.id == "u2"
    assert [v.id for v in profile.videos] == ["v1"]
    assert profile.stats.followers == 2


async def test_register_and_verify_email():
    seen = []

    def handler(request: httpx.Request):
        seen.append((request.url.path, json.loads(request.content)))
        if request.url.path == "/auth/register":
            return httpx.Response(201, json={"message": "ok", "requiresVerification": True})
        return httpx.Response(200, json={"message": "Email verified successfully"})

    client = make_client(handler)
    assert (await client.register("a@example.com", "pw", "maker"))["requiresVerification"] is True
    assert (await client.verify_email("t0k"))["message"] == "Email verified successfully"
    assert seen == [
        ("/auth/register", {"email": "a@example.com", "password": "pw", "username": "maker"}),
        ("/auth/verify-email", {"token": "t0k"}),
    ]


async def test_register_conflict_is_server_error():
    def handler(request):
        return httpx.Response(409, json={"detail": "Email already exists"})

    with pytest.raises(NetworkOrServerError, match="Email already exists"):
        await make_client(handler).register("a@example.com", "pw")
